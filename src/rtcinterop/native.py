import asyncio
import logging
from collections.abc import Awaitable
from typing import Optional, TypeVar

from aiortc import (
    AudioStreamTrack,
    MediaStreamError,
    MediaStreamTrack,
    RTCConfiguration,
    RTCIceCandidate,
    RTCPeerConnection,
    RTCSessionDescription,
    VideoStreamTrack,
)
from aiortc.exceptions import (
    InternalError,
    InvalidAccessError,
    InvalidStateError,
    OperationError,
)

from .endpoint import Endpoint
from .exceptions import EndpointError
from .media import Measurement, measure_video_frame
from .scenario import Scenario

T = TypeVar("T")

FRAME_TIMEOUT = 5.0

TRACK_CLASSES = {
    "audio": AudioStreamTrack,
    "video": VideoStreamTrack,
}

logger = logging.getLogger(__name__)


class NativeEndpoint(Endpoint):
    """
    An endpoint backed by an in-process aiortc peer connection.

    Local tracks are aiortc's dummy tracks: silence for audio and green
    frames for video. aiortc gathers all candidates during
    `setLocalDescription`, so no ``icecandidate`` events are emitted.
    """

    def __init__(
        self, name: str, configuration: Optional[RTCConfiguration] = None
    ) -> None:
        super().__init__(name)
        self.__configuration = configuration
        self.__local_tracks: list[MediaStreamTrack] = []
        self.__pc: Optional[RTCPeerConnection] = None
        self.__remote_video: Optional[MediaStreamTrack] = None

    async def open(self) -> None:
        if self.__pc is not None:
            return
        pc = RTCPeerConnection(self.__configuration)

        @pc.on("track")
        def on_track(track: MediaStreamTrack) -> None:
            logger.debug("%r received %s track %s", self, track.kind, track.id)
            if track.kind == "video" and self.__remote_video is None:
                self.__remote_video = track

        self.__pc = pc

    async def create_offer(self, kinds: list[str]) -> RTCSessionDescription:
        pc = self.__peer_connection()
        for kind in kinds:
            self.__add_local_track(pc, kind)
        return await self.__call("create offer", self.__set_local(pc, "offer"))

    async def accept_offer(
        self, description: RTCSessionDescription
    ) -> RTCSessionDescription:
        pc = self.__peer_connection()
        await self.__call("accept offer", pc.setRemoteDescription(description))
        return await self.__call("create answer", self.__set_local(pc, "answer"))

    async def accept_answer(self, description: RTCSessionDescription) -> None:
        pc = self.__peer_connection()
        await self.__call("accept answer", pc.setRemoteDescription(description))

    async def add_track(self, kind: str) -> RTCSessionDescription:
        # aiortc puts every local track in the same stream
        pc = self.__peer_connection()
        self.__add_local_track(pc, kind)
        return await self.__call("create offer", self.__set_local(pc, "offer"))

    async def add_ice_candidate(self, candidate: Optional[RTCIceCandidate]) -> None:
        if candidate is None:
            return
        pc = self.__peer_connection()
        await self.__call("add candidate", pc.addIceCandidate(candidate))

    async def measure_video(self) -> Measurement:
        if self.__remote_video is None:
            return Measurement.zero()
        try:
            frame = await asyncio.wait_for(self.__remote_video.recv(), FRAME_TIMEOUT)
        except (asyncio.TimeoutError, MediaStreamError):
            return Measurement.zero()
        return measure_video_frame(frame)

    async def close(self) -> None:
        for track in self.__local_tracks:
            track.stop()
        self.__local_tracks = []
        if self.__pc is not None:
            await self.__pc.close()
            self.__pc = None

    def __add_local_track(self, pc: RTCPeerConnection, kind: str) -> None:
        try:
            track = TRACK_CLASSES[kind]()
        except KeyError:
            raise EndpointError(f"{self!r} cannot create a {kind} track")
        self.__local_tracks.append(track)
        try:
            pc.addTrack(track)
        except (InternalError, InvalidStateError) as exc:
            raise EndpointError(f"{self!r} failed to add track: {exc}") from exc

    async def __call(self, step: str, coro: Awaitable[T]) -> T:
        try:
            return await coro
        except (
            InternalError,
            InvalidAccessError,
            InvalidStateError,
            OperationError,
            ValueError,
        ) as exc:
            raise EndpointError(f"{self!r} failed to {step}: {exc}") from exc

    def __peer_connection(self) -> RTCPeerConnection:
        if self.__pc is None:
            raise EndpointError(f"{self!r} is not open")
        return self.__pc

    async def __set_local(
        self, pc: RTCPeerConnection, type: str
    ) -> RTCSessionDescription:
        if type == "offer":
            description = await pc.createOffer()
        else:
            description = await pc.createAnswer()
        await pc.setLocalDescription(description)
        return pc.localDescription


def native_scenario(configuration: Optional[RTCConfiguration] = None) -> Scenario:
    """
    A scenario between two aiortc endpoints, which needs no browser.
    """

    async def endpoints() -> tuple[Endpoint, Endpoint]:
        return (
            NativeEndpoint("native-a", configuration),
            NativeEndpoint("native-b", configuration),
        )

    return Scenario(name="native", endpoints=endpoints)
