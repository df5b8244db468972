import argparse
import asyncio
import logging
import sys
from typing import Optional

from aiortc import RTCConfiguration

from .config import (
    BROWSERS,
    HarnessConfiguration,
    add_harness_arguments,
    create_configuration,
)
from .scenario import Scenario, ScenarioResult, run_scenarios
from .sdp import mangle


def build_scenarios(
    args: argparse.Namespace, config: HarnessConfiguration
) -> list[Scenario]:
    if args.command == "native":
        from .native import native_scenario

        return [native_scenario(RTCConfiguration(iceServers=[]))]

    from .browser import interop_matrix, loopback_scenario

    if args.command == "basic":
        return [loopback_scenario(config)]
    else:
        return interop_matrix(config, args.browsers)


def report(result: ScenarioResult) -> None:
    if result.error is not None:
        print(f"not ok - {result.name}: {result.error}")
        return
    status = "ok" if result.ok else "not ok"
    m = result.measurement
    print(
        f"{status} - {result.name}: {len(result.deliveries)} descriptions, "
        f"{m.width}x{m.height}, accumulated luma {m.luma:.0f}"
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="WebRTC renegotiation interop")
    parser.add_argument("--verbose", "-v", action="count")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_mangle = subparsers.add_parser(
        "mangle", help="Add both msid flavours to a session description"
    )
    parser_mangle.add_argument("file", nargs="?", help="Read from a file, not stdin")

    for command, help in [
        ("basic", "Renegotiate between two peer connections in one browser"),
        ("interop", "Renegotiate between two browsers"),
        ("native", "Renegotiate between two aiortc peer connections"),
    ]:
        subparser = subparsers.add_parser(command, help=help)
        add_harness_arguments(subparser)
        if command == "interop":
            subparser.add_argument(
                "--browsers", nargs="+", choices=BROWSERS, default=BROWSERS
            )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    if args.command == "mangle":
        if args.file:
            with open(args.file, newline="") as fp:
                sdp = fp.read()
        else:
            sdp = sys.stdin.read()
        # descriptions pasted in a terminal use LF
        if "\r\n" not in sdp:
            sdp = sdp.replace("\n", "\r\n")
        sys.stdout.write(mangle(sdp).replace("\r\n", "\n"))
        return 0

    config = create_configuration(args)
    results = asyncio.run(
        run_scenarios(build_scenarios(args, config), settle_time=config.settle_time)
    )
    for result in results:
        report(result)
    return 0 if all(result.ok for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
