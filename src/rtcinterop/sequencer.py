import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional

from aiortc import RTCIceCandidate, RTCSessionDescription
from pyee.asyncio import AsyncIOEventEmitter

from .config import DEFAULT_SETTLE_TIME
from .endpoint import Endpoint
from .exceptions import NegotiationError
from .sdp import mangle

logger = logging.getLogger(__name__)

Delay = Callable[[float], Awaitable[None]]


class NegotiationState(enum.Enum):
    INIT = "init"
    OFFER_CREATED = "offer-created"
    ANSWER_PENDING = "answer-pending"
    CONNECTED = "connected"
    RENEGOTIATION_OFFER_CREATED = "renegotiation-offer-created"
    RENEGOTIATION_ANSWER_PENDING = "renegotiation-answer-pending"
    RENEGOTIATION_COMPLETE = "renegotiation-complete"
    TERMINAL = "terminal"
    FAILED = "failed"


@dataclass
class Delivery:
    """
    A session description which crossed the wire, as it was delivered.
    """

    description: RTCSessionDescription
    sender: str
    receiver: str


class NegotiationSequencer(AsyncIOEventEmitter):
    """
    Relays an audio offer / answer, then a renegotiation adding video,
    between two endpoints. Every description is mangled on its way so that
    both stream / track association dialects are present.

    Candidates are relayed as they are emitted, independently of the
    offer / answer exchange.

    :param delay: Coroutine function used to wait for media to flow, called
        with `settle_time`.
    :param readiness: Coroutine function which returns once media flows,
        used instead of `delay` when given.
    """

    def __init__(
        self,
        endpoint_a: Endpoint,
        endpoint_b: Endpoint,
        *,
        mangler: Callable[[str], str] = mangle,
        delay: Delay = asyncio.sleep,
        settle_time: float = DEFAULT_SETTLE_TIME,
        readiness: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        super().__init__()
        self.__a = endpoint_a
        self.__b = endpoint_b
        self.__candidates: list[tuple[str, Optional[RTCIceCandidate]]] = []
        self.__deliveries: list[Delivery] = []
        self.__delay = delay
        self.__mangler = mangler
        self.__readiness = readiness
        self.__relays: set[asyncio.Future[None]] = set()
        self.__settle_time = settle_time
        self.__state = NegotiationState.INIT

        self.__listeners = [
            (endpoint_a, self.__relay_from(endpoint_a, endpoint_b)),
            (endpoint_b, self.__relay_from(endpoint_b, endpoint_a)),
        ]
        for endpoint, listener in self.__listeners:
            endpoint.on("icecandidate", listener)

    @property
    def candidates(self) -> list[tuple[str, Optional[RTCIceCandidate]]]:
        """
        The relayed candidates, as `(sender name, candidate)` tuples.
        """
        return list(self.__candidates)

    @property
    def deliveries(self) -> list[Delivery]:
        return list(self.__deliveries)

    @property
    def state(self) -> NegotiationState:
        return self.__state

    async def run(self) -> list[Delivery]:
        """
        Run the whole exchange and return the delivered descriptions.

        Any failure aborts the exchange and is raised as a
        :class:`NegotiationError`.
        """
        if self.__state != NegotiationState.INIT:
            raise NegotiationError(
                "Negotiation has already run", state=self.__state.value
            )

        a, b = self.__a, self.__b
        try:
            # initial audio session
            offer = await a.create_offer(["audio"])
            self.__setState(NegotiationState.OFFER_CREATED)
            offer = self.__deliver(offer, a, b)
            self.__setState(NegotiationState.ANSWER_PENDING)
            answer = await b.accept_offer(offer)
            await a.accept_answer(self.__deliver(answer, b, a))
            self.__setState(NegotiationState.CONNECTED)

            await self.__wait()

            # renegotiation adding video
            offer = await a.add_track("video")
            self.__setState(NegotiationState.RENEGOTIATION_OFFER_CREATED)
            offer = self.__deliver(offer, a, b)
            self.__setState(NegotiationState.RENEGOTIATION_ANSWER_PENDING)
            answer = await b.accept_offer(offer)
            await a.accept_answer(self.__deliver(answer, b, a))
            self.__setState(NegotiationState.RENEGOTIATION_COMPLETE)

            await self.__flush()
            await self.__wait()
            await self.__flush()
            self.__setState(NegotiationState.TERMINAL)
        except Exception as exc:
            failed = self.__state
            self.__setState(NegotiationState.FAILED)
            raise NegotiationError(
                f"Negotiation failed in state {failed.value}: {exc}",
                state=failed.value,
            ) from exc
        finally:
            self.__detach()

        return self.deliveries

    def __deliver(
        self, description: RTCSessionDescription, sender: Endpoint, receiver: Endpoint
    ) -> RTCSessionDescription:
        mangled = RTCSessionDescription(
            sdp=self.__mangler(description.sdp), type=description.type
        )
        self.__deliveries.append(
            Delivery(description=mangled, sender=sender.name, receiver=receiver.name)
        )
        self.__log_debug(
            "%s %s -> %s", description.type, sender.name, receiver.name
        )
        return mangled

    def __detach(self) -> None:
        for endpoint, listener in self.__listeners:
            endpoint.remove_listener("icecandidate", listener)
        for relay in self.__relays:
            relay.cancel()

    async def __flush(self) -> None:
        # candidates must reach the other side before negotiation completes,
        # only a failed negotiation cancels pending deliveries
        while self.__relays:
            await asyncio.gather(*self.__relays, return_exceptions=True)

    def __log_debug(self, msg: str, *args: object) -> None:
        logger.debug(
            f"NegotiationSequencer(%s, %s) {msg}", self.__a.name, self.__b.name, *args
        )

    def __relay_from(
        self, sender: Endpoint, receiver: Endpoint
    ) -> Callable[[Optional[RTCIceCandidate]], None]:
        def relay(candidate: Optional[RTCIceCandidate]) -> None:
            self.__candidates.append((sender.name, candidate))
            self.__log_debug("candidate %s -> %s", sender.name, receiver.name)

            future = asyncio.ensure_future(receiver.add_ice_candidate(candidate))
            self.__relays.add(future)

            def done(future: asyncio.Future[None]) -> None:
                self.__relays.discard(future)
                if not future.cancelled() and future.exception() is not None:
                    logger.warning(
                        "Failed to add candidate from %s to %s: %s",
                        sender.name,
                        receiver.name,
                        future.exception(),
                    )

            future.add_done_callback(done)

        return relay

    def __setState(self, state: NegotiationState) -> None:
        self.__log_debug("- %s -> %s", self.__state.value, state.value)
        self.__state = state
        self.emit("statechange", state)

    async def __wait(self) -> None:
        if self.__readiness is not None:
            await self.__readiness()
        else:
            await self.__delay(self.__settle_time)
