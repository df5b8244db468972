import enum
from abc import ABCMeta, abstractmethod
from typing import Optional

from aiortc import RTCIceCandidate, RTCSessionDescription
from pyee.asyncio import AsyncIOEventEmitter

from .media import Measurement


class TrackAttachment(enum.Enum):
    """
    How an endpoint attaches a track added during renegotiation.
    """

    SAME_STREAM = "same-stream"
    "Add the track to the stream which was negotiated first."

    NEW_STREAM = "new-stream"
    """
    Add the track in a new stream, then rewrite the offer so that the
    remote side still sees a single stream.
    """


class Endpoint(AsyncIOEventEmitter, metaclass=ABCMeta):
    """
    One side of a negotiation, backed by a real peer connection.

    Each negotiation step is a single request / response call. Locally
    gathered candidates are emitted as ``icecandidate`` events, `None`
    signals the end of candidates.
    """

    def __init__(self, name: str) -> None:
        super().__init__()
        self.name = name

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"

    async def open(self) -> None:
        pass

    @abstractmethod
    async def create_offer(self, kinds: list[str]) -> RTCSessionDescription:
        """
        Acquire local tracks of the given `kinds` and return the local offer.
        """

    @abstractmethod
    async def accept_offer(
        self, description: RTCSessionDescription
    ) -> RTCSessionDescription:
        """
        Apply a remote offer and return the local answer.
        """

    @abstractmethod
    async def accept_answer(self, description: RTCSessionDescription) -> None: ...

    @abstractmethod
    async def add_track(self, kind: str) -> RTCSessionDescription:
        """
        Add a local track of the given `kind` and return the new local offer.
        """

    @abstractmethod
    async def add_ice_candidate(self, candidate: Optional[RTCIceCandidate]) -> None:
        ...

    @abstractmethod
    async def measure_video(self) -> Measurement: ...

    @abstractmethod
    async def close(self) -> None: ...
