import argparse
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .endpoint import TrackAttachment

DEFAULT_TEST_PAGE = "https://fippo.github.io/adapter/testpage.html"

# getUserMedia can take a long time on a cloud grid
DEFAULT_SCRIPT_TIMEOUT = 600.0

DEFAULT_SETTLE_TIME = 3.0

BROWSERS = ["chrome", "firefox"]

# Chrome can add the new track to the existing local stream, Firefox needs a
# separate stream, see https://bugzilla.mozilla.org/show_bug.cgi?id=1245983
TRACK_ATTACHMENTS = {
    "chrome": TrackAttachment.SAME_STREAM,
    "firefox": TrackAttachment.NEW_STREAM,
}


@dataclass
class HarnessConfiguration:
    """
    The :class:`HarnessConfiguration` describes where and how browsers are
    started.
    """

    browser: str = "chrome"
    "The browser used by single-browser scenarios."
    version: str = ""
    "The requested browser version, empty for any."
    platform: Optional[str] = None
    sauce_username: Optional[str] = None
    "Sauce Labs credentials, a remote grid is used when they are set."
    sauce_access_key: Optional[str] = None
    tunnel_identifier: Optional[str] = None
    test_page: str = DEFAULT_TEST_PAGE
    script_timeout: float = DEFAULT_SCRIPT_TIMEOUT
    settle_time: float = DEFAULT_SETTLE_TIME
    headless: bool = False
    attachments: dict[str, TrackAttachment] = field(
        default_factory=lambda: dict(TRACK_ATTACHMENTS)
    )

    @classmethod
    def from_environ(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "HarnessConfiguration":
        if environ is None:
            environ = os.environ
        return cls(
            browser=environ.get("BROWSER") or "chrome",
            version=environ.get("BVER", ""),
            sauce_username=environ.get("SAUCE_USERNAME") or None,
            sauce_access_key=environ.get("SAUCE_ACCESS_KEY") or None,
            tunnel_identifier=environ.get("TRAVIS_JOB_NUMBER") or None,
        )

    @property
    def remote_url(self) -> Optional[str]:
        """
        The WebDriver hub to use, or `None` to start browsers locally.

        The hub is reached through the Sauce Connect tunnel.
        """
        if not self.sauce_username:
            return None
        return "http://%s:%s@localhost:4445/wd/hub" % (
            self.sauce_username,
            self.sauce_access_key or "",
        )

    def attachment_for(self, browser: str) -> TrackAttachment:
        return self.attachments.get(browser, TrackAttachment.SAME_STREAM)


def add_harness_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add browser selection arguments to an argparse.ArgumentParser.
    """
    parser.add_argument("--browser", "-b", choices=BROWSERS, help="Browser to use")
    parser.add_argument("--browser-version", help="Browser version to request")
    parser.add_argument("--test-page", help="Page loaded before injecting scripts")
    parser.add_argument(
        "--settle-time",
        type=float,
        help="Seconds to wait for media to flow after each negotiation",
    )
    parser.add_argument("--headless", action="store_true", help="Run headless")


def create_configuration(
    args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None
) -> HarnessConfiguration:
    """
    Create a configuration from the environment, overridden by command-line
    arguments.
    """
    config = HarnessConfiguration.from_environ(environ)
    if args.browser:
        config.browser = args.browser
    if args.browser_version:
        config.version = args.browser_version
    if args.test_page:
        config.test_page = args.test_page
    if args.settle_time is not None:
        config.settle_time = args.settle_time
    if args.headless:
        config.headless = True
    return config
