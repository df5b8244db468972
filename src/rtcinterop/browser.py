import asyncio
import functools
import logging
from collections.abc import Callable
from typing import Any, Optional, TypeVar

from aiortc import RTCIceCandidate, RTCSessionDescription
from aiortc.sdp import candidate_to_sdp
from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.remote.webdriver import WebDriver

from .config import BROWSERS, HarnessConfiguration
from .endpoint import Endpoint, TrackAttachment
from .exceptions import EndpointError
from .media import Measurement, measure_rgba
from .scenario import Scenario
from .sdp import rename_stream

T = TypeVar("T")

logger = logging.getLogger(__name__)

CHROME_ARGUMENTS = [
    "--allow-file-access-from-files",
    "--use-fake-device-for-media-stream",
    "--use-fake-ui-for-media-stream",
    "--disable-translate",
    "--no-process-singleton-dialog",
    "--mute-audio",
]

FIREFOX_PREFERENCES = {
    "media.navigator.streams.fake": True,
    "media.navigator.permission.disabled": True,
    "xpinstall.signatures.required": False,
}

# Every script starts with this prelude. Peer connections are kept in
# window.rtcinterop keyed by endpoint name, so that several endpoints can
# share a page. Results are passed to the callback, failures as {error: ...}.
PRELUDE = """
var callback = arguments[arguments.length - 1];
var name = arguments[0];
window.rtcinterop = window.rtcinterop || {};

function fail(err) {
  callback({error: String((err && err.message) || err)});
}

function getPeer(create) {
  var peer = window.rtcinterop[name];
  if (!peer && create) {
    var video = document.createElement('video');
    video.id = 'remoteVideo-' + name;
    video.autoplay = true;
    document.body.appendChild(video);

    var pc = new RTCPeerConnection(null);
    peer = {pc: pc, video: video, localStream: null, gathered: null};
    pc.ontrack = function(e) {
      video.srcObject = e.streams[0];
    };
    pc.onicecandidate = function(e) {
      if (!e.candidate && peer.gathered) {
        var gathered = peer.gathered;
        peer.gathered = null;
        gathered(pc.localDescription);
      }
    };
    window.rtcinterop[name] = peer;
  }
  if (!peer) {
    throw new Error('no peer connection named ' + name);
  }
  return peer;
}

function whenGathered(peer) {
  return new Promise(function(resolve) {
    if (peer.pc.iceGatheringState === 'complete') {
      resolve(peer.pc.localDescription);
    } else {
      peer.gathered = resolve;
    }
  });
}

function reply(desc) {
  callback({type: desc.type, sdp: desc.sdp});
}
"""

CREATE_OFFER_SCRIPT = (
    PRELUDE
    + """
var kinds = arguments[1];
try {
  var peer = getPeer(true);
} catch (err) {
  return fail(err);
}
navigator.mediaDevices.getUserMedia({
  audio: kinds.indexOf('audio') !== -1,
  video: kinds.indexOf('video') !== -1
}).then(function(stream) {
  peer.localStream = stream;
  stream.getTracks().forEach(function(track) {
    peer.pc.addTrack(track, stream);
  });
  return peer.pc.createOffer();
}).then(function(offer) {
  return peer.pc.setLocalDescription(offer);
}).then(function() {
  return whenGathered(peer);
}).then(reply).catch(fail);
"""
)

ACCEPT_OFFER_SCRIPT = (
    PRELUDE
    + """
try {
  var peer = getPeer(true);
} catch (err) {
  return fail(err);
}
peer.pc.setRemoteDescription(new RTCSessionDescription(arguments[1]))
.then(function() {
  return peer.pc.createAnswer();
}).then(function(answer) {
  return peer.pc.setLocalDescription(answer);
}).then(function() {
  return whenGathered(peer);
}).then(reply).catch(fail);
"""
)

ACCEPT_ANSWER_SCRIPT = (
    PRELUDE
    + """
try {
  var peer = getPeer(false);
} catch (err) {
  return fail(err);
}
peer.pc.setRemoteDescription(new RTCSessionDescription(arguments[1]))
.then(function() {
  callback(null);
}).catch(fail);
"""
)

ADD_TRACK_SCRIPT = (
    PRELUDE
    + """
var constraints = {};
constraints[arguments[1]] = true;
var attachment = arguments[2];
var added;
try {
  var peer = getPeer(false);
} catch (err) {
  return fail(err);
}
navigator.mediaDevices.getUserMedia(constraints)
.then(function(stream) {
  added = stream;
  var track = stream.getTracks()[0];
  if (attachment === 'same-stream') {
    peer.localStream.addTrack(track);
    peer.pc.addTrack(track, peer.localStream);
  } else {
    peer.pc.addTrack(track, stream);
  }
  return peer.pc.createOffer();
}).then(function(offer) {
  return peer.pc.setLocalDescription(offer);
}).then(function() {
  var desc = peer.pc.localDescription;
  callback({
    type: desc.type,
    sdp: desc.sdp,
    streamId: added.id,
    originalStreamId: peer.localStream.id
  });
}).catch(fail);
"""
)

ADD_ICE_CANDIDATE_SCRIPT = (
    PRELUDE
    + """
var init = arguments[1];
try {
  var peer = getPeer(false);
} catch (err) {
  return fail(err);
}
var added = init ? peer.pc.addIceCandidate(new RTCIceCandidate(init))
                 : peer.pc.addIceCandidate();
added.then(function() {
  callback(null);
}).catch(fail);
"""
)

GET_VIDEO_SCRIPT = (
    PRELUDE
    + """
var peer = window.rtcinterop[name];
var video = peer ? peer.video : null;
if (!video || (video.videoWidth < 10 && video.videoHeight < 10)) {
  return callback({width: 0, height: 0, data: []});
}
var canvas = document.createElement('canvas');
canvas.width = video.videoWidth;
canvas.height = video.videoHeight;
var context = canvas.getContext('2d');
context.drawImage(video, 0, 0, canvas.width, canvas.height);
var data = context.getImageData(0, 0, canvas.width / 10, canvas.height / 10).data;
callback({
  width: video.videoWidth,
  height: video.videoHeight,
  data: Array.prototype.slice.call(data)
});
"""
)

CLOSE_SCRIPT = (
    PRELUDE
    + """
var peer = window.rtcinterop[name];
if (peer) {
  peer.pc.close();
  if (peer.localStream) {
    peer.localStream.getTracks().forEach(function(track) {
      track.stop();
    });
  }
  delete window.rtcinterop[name];
}
callback(null);
"""
)


def chrome_options(config: HarnessConfiguration) -> webdriver.ChromeOptions:
    options = webdriver.ChromeOptions()
    for argument in CHROME_ARGUMENTS:
        options.add_argument(argument)
    if config.headless:
        options.add_argument("--headless=new")
    return options


def firefox_options(config: HarnessConfiguration) -> webdriver.FirefoxOptions:
    options = webdriver.FirefoxOptions()
    for key, value in FIREFOX_PREFERENCES.items():
        options.set_preference(key, value)
    if config.headless:
        options.add_argument("-headless")
    return options


def build_driver(browser: str, config: HarnessConfiguration) -> WebDriver:
    """
    Start a browser with fake media devices, either locally or on the
    remote grid described by `config`.
    """
    options: Any
    if browser == "firefox":
        options = firefox_options(config)
    elif browser == "chrome":
        options = chrome_options(config)
    else:
        raise ValueError(f"Unsupported browser '{browser}'")

    if config.version:
        options.browser_version = config.version
    if config.platform:
        options.platform_name = config.platform

    remote_url = config.remote_url
    if remote_url is not None:
        if config.tunnel_identifier:
            options.set_capability("tunnel-identifier", config.tunnel_identifier)
        driver = webdriver.Remote(command_executor=remote_url, options=options)
    elif browser == "firefox":
        driver = webdriver.Firefox(options=options)
    else:
        driver = webdriver.Chrome(options=options)

    # executeAsyncScript() times out immediately by default
    driver.set_script_timeout(config.script_timeout)
    return driver


class BrowserSession:
    """
    A browser shared by one or more :class:`BrowserEndpoint`.

    The browser is started when the first endpoint opens and quit when the
    last endpoint closes. WebDriver calls block, so they are run in the
    default executor.
    """

    def __init__(
        self,
        browser: str,
        config: HarnessConfiguration,
        driver_factory: Optional[
            Callable[[str, HarnessConfiguration], WebDriver]
        ] = None,
    ) -> None:
        self.browser = browser
        self.__config = config
        self.__driver: Optional[WebDriver] = None
        self.__driver_factory = driver_factory or build_driver
        self.__lock = asyncio.Lock()
        self.__users = 0

    @property
    def driver(self) -> Optional[WebDriver]:
        return self.__driver

    async def open(self) -> None:
        async with self.__lock:
            self.__users += 1
            if self.__driver is not None:
                return
            driver = await self.__run(
                self.__driver_factory, self.browser, self.__config
            )
            self.__driver = driver
            await self.__run(driver.get, self.__config.test_page)
            user_agent = await self.__run(
                driver.execute_script, "return navigator.userAgent;"
            )
            logger.info("BrowserSession(%s) started %s", self.browser, user_agent)

    async def close(self) -> None:
        async with self.__lock:
            self.__users = max(0, self.__users - 1)
            if self.__users or self.__driver is None:
                return
            driver = self.__driver
            self.__driver = None
            try:
                await self.__run(driver.close)
            finally:
                await self.__run(driver.quit)
            logger.info("BrowserSession(%s) stopped", self.browser)

    async def execute_async_script(self, script: str, *args: Any) -> Any:
        if self.__driver is None:
            raise EndpointError(f"BrowserSession({self.browser}) is not open")
        return await self.__run(self.__driver.execute_async_script, script, *args)

    async def __run(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(func, *args))
        except WebDriverException as exc:
            raise EndpointError(
                f"BrowserSession({self.browser}) WebDriver call failed: {exc.msg}"
            ) from exc


class BrowserEndpoint(Endpoint):
    """
    An endpoint whose peer connection lives in a browser page.

    Offers and answers are only returned once candidate gathering has
    completed, so they already contain every candidate and the endpoint
    never emits ``icecandidate``. :meth:`add_ice_candidate` still accepts
    candidates trickled by the remote endpoint.
    """

    def __init__(
        self,
        session: BrowserSession,
        name: str,
        attachment: TrackAttachment = TrackAttachment.SAME_STREAM,
    ) -> None:
        super().__init__(name)
        self.attachment = attachment
        self.session = session
        self.__opened = False

    def __repr__(self) -> str:
        return f"BrowserEndpoint({self.session.browser}, {self.name})"

    async def open(self) -> None:
        if not self.__opened:
            await self.session.open()
            self.__opened = True

    async def create_offer(self, kinds: list[str]) -> RTCSessionDescription:
        result = await self.__execute(CREATE_OFFER_SCRIPT, kinds)
        return description_from_result(result)

    async def accept_offer(
        self, description: RTCSessionDescription
    ) -> RTCSessionDescription:
        result = await self.__execute(
            ACCEPT_OFFER_SCRIPT, description_to_init(description)
        )
        return description_from_result(result)

    async def accept_answer(self, description: RTCSessionDescription) -> None:
        await self.__execute(ACCEPT_ANSWER_SCRIPT, description_to_init(description))

    async def add_track(self, kind: str) -> RTCSessionDescription:
        result = await self.__execute(ADD_TRACK_SCRIPT, kind, self.attachment.value)
        description = description_from_result(result)
        if self.attachment == TrackAttachment.NEW_STREAM:
            # present a single remote stream to the remote side
            description = RTCSessionDescription(
                sdp=rename_stream(
                    description.sdp, result["streamId"], result["originalStreamId"]
                ),
                type=description.type,
            )
        return description

    async def add_ice_candidate(self, candidate: Optional[RTCIceCandidate]) -> None:
        await self.__execute(ADD_ICE_CANDIDATE_SCRIPT, candidate_to_init(candidate))

    async def measure_video(self) -> Measurement:
        result = await self.__execute(GET_VIDEO_SCRIPT)
        return measure_rgba(result["data"], result["width"], result["height"])

    async def close(self) -> None:
        if not self.__opened:
            return
        self.__opened = False
        try:
            await self.__execute(CLOSE_SCRIPT)
        finally:
            await self.session.close()

    async def __execute(self, script: str, *args: Any) -> Any:
        result = await self.session.execute_async_script(script, self.name, *args)
        if isinstance(result, dict) and "error" in result:
            raise EndpointError(f"{self!r} {result['error']}")
        return result


def candidate_to_init(candidate: Optional[RTCIceCandidate]) -> Optional[dict]:
    if candidate is None:
        return None
    return {
        "candidate": "candidate:" + candidate_to_sdp(candidate),
        "sdpMid": candidate.sdpMid,
        "sdpMLineIndex": candidate.sdpMLineIndex,
    }


def description_from_result(result: Any) -> RTCSessionDescription:
    if not isinstance(result, dict) or "sdp" not in result:
        raise EndpointError(f"Expected a session description, got {result!r}")
    try:
        return RTCSessionDescription(sdp=result["sdp"], type=result["type"])
    except (KeyError, ValueError) as exc:
        raise EndpointError(f"Invalid session description: {exc}") from exc


def description_to_init(description: RTCSessionDescription) -> dict:
    return {"sdp": description.sdp, "type": description.type}


def loopback_scenario(config: HarnessConfiguration) -> Scenario:
    """
    Two peer connections in the same page of a single browser.
    """

    async def endpoints() -> tuple[Endpoint, Endpoint]:
        session = BrowserSession(config.browser, config)
        attachment = config.attachment_for(config.browser)
        return (
            BrowserEndpoint(session, "pc1", attachment),
            BrowserEndpoint(session, "pc2", attachment),
        )

    return Scenario(name="basic", endpoints=endpoints)


def interop_scenario(
    browser_a: str, browser_b: str, config: HarnessConfiguration
) -> Scenario:
    """
    One peer connection in each of two browsers.
    """

    async def endpoints() -> tuple[Endpoint, Endpoint]:
        return (
            BrowserEndpoint(
                BrowserSession(browser_a, config),
                "pc1",
                config.attachment_for(browser_a),
            ),
            BrowserEndpoint(
                BrowserSession(browser_b, config),
                "pc1",
                config.attachment_for(browser_b),
            ),
        )

    return Scenario(name=f"interop {browser_a} {browser_b}", endpoints=endpoints)


def interop_matrix(
    config: HarnessConfiguration, browsers: Optional[list[str]] = None
) -> list[Scenario]:
    if browsers is None:
        browsers = BROWSERS
    return [interop_scenario(a, b, config) for a in browsers for b in browsers]
