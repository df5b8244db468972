import asyncio
import functools
import logging
import os
import sys
import unittest
from collections.abc import Callable, Coroutine
from typing import Optional, TypeVar, cast

if sys.version_info >= (3, 10):
    from typing import ParamSpec
else:
    from typing_extensions import ParamSpec

from aiortc import RTCIceCandidate, RTCSessionDescription
from rtcinterop.endpoint import Endpoint
from rtcinterop.exceptions import EndpointError
from rtcinterop.media import Measurement

P = ParamSpec("P")
T = TypeVar("T")


def lf2crlf(x: str) -> str:
    return x.replace("\n", "\r\n")


def make_description(kinds: list[str], plan_b: bool, ssrc: int = 1000) -> str:
    """
    A minimal description with one section per kind, carrying the stream /
    track association the Chrome (`plan_b`) or the Firefox way.
    """
    sdp = "v=0\no=- 1 1 IN IP4 0.0.0.0\ns=-\nt=0 0\n"
    for index, kind in enumerate(kinds):
        sdp += f"m={kind} 9 UDP/TLS/RTP/SAVPF 0\na=mid:{index}\n"
        if plan_b:
            sdp += f"a=ssrc:{ssrc + index} cname:cname\n"
            sdp += f"a=ssrc:{ssrc + index} msid:stream {kind}-track\n"
        else:
            sdp += f"a=msid:stream {kind}-track\n"
            sdp += f"a=ssrc:{ssrc + index} cname:cname\n"
    return lf2crlf(sdp)


class FakeEndpoint(Endpoint):
    """
    An endpoint which records the descriptions it is given and answers with
    canned descriptions.
    """

    def __init__(self, name: str, plan_b: bool = False) -> None:
        super().__init__(name)
        self.calls: list[tuple[str, object]] = []
        self.candidates: list[Optional[RTCIceCandidate]] = []
        self.closed = False
        self.fail_on: Optional[str] = None
        self.kinds: list[str] = []
        self.measurement = Measurement(width=640, height=480, luma=1234.0)
        self.opened = False
        self.plan_b = plan_b

    def _step(self, name: str, argument: object) -> None:
        self.calls.append((name, argument))
        if self.fail_on == name:
            raise EndpointError(f"{self.name} refused {name}")

    def _local(self, type: str) -> RTCSessionDescription:
        return RTCSessionDescription(
            sdp=make_description(self.kinds, plan_b=self.plan_b), type=type
        )

    async def open(self) -> None:
        self._step("open", None)
        self.opened = True

    async def create_offer(self, kinds: list[str]) -> RTCSessionDescription:
        self._step("create_offer", kinds)
        self.kinds = list(kinds)
        return self._local("offer")

    async def accept_offer(
        self, description: RTCSessionDescription
    ) -> RTCSessionDescription:
        self._step("accept_offer", description)
        self.kinds = [
            line[2:].split()[0]
            for line in description.sdp.split("\r\n")
            if line.startswith("m=")
        ]
        return self._local("answer")

    async def accept_answer(self, description: RTCSessionDescription) -> None:
        self._step("accept_answer", description)

    async def add_track(self, kind: str) -> RTCSessionDescription:
        self._step("add_track", kind)
        self.kinds.append(kind)
        return self._local("offer")

    async def add_ice_candidate(self, candidate: Optional[RTCIceCandidate]) -> None:
        await asyncio.sleep(0)
        self._step("add_ice_candidate", candidate)
        self.candidates.append(candidate)

    async def measure_video(self) -> Measurement:
        self._step("measure_video", None)
        return self.measurement

    async def close(self) -> None:
        self.calls.append(("close", None))
        self.closed = True


class TestCase(unittest.TestCase):
    def ensureIsInstance(self, obj: object, cls: type[T]) -> T:
        self.assertIsInstance(obj, cls)
        return cast(T, obj)


def asynctest(
    coro: Callable[P, Coroutine[None, None, None]],
) -> Callable[P, None]:
    @functools.wraps(coro)
    def wrap(*args: P.args, **kwargs: P.kwargs) -> None:
        asyncio.run(coro(*args, **kwargs))

    return wrap


async def no_delay(seconds: float) -> None:
    await asyncio.sleep(0)


if os.environ.get("RTCINTEROP_DEBUG"):
    logging.basicConfig(level=logging.DEBUG)
