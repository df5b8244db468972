import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Optional

from .config import DEFAULT_SETTLE_TIME
from .endpoint import Endpoint
from .media import Measurement
from .sequencer import Delay, Delivery, NegotiationSequencer

logger = logging.getLogger(__name__)

EndpointFactory = Callable[[], Awaitable[tuple[Endpoint, Endpoint]]]


@dataclass
class Scenario:
    """
    A single interoperability probe.

    :param endpoints: Coroutine function returning the offering and the
        answering endpoint. The scenario owns both of them.
    """

    name: str
    endpoints: EndpointFactory


@dataclass
class ScenarioResult:
    name: str
    deliveries: list[Delivery] = field(default_factory=list)
    measurement: Measurement = field(default_factory=Measurement.zero)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.measurement.is_live()


async def run_scenario(
    scenario: Scenario,
    *,
    delay: Delay = asyncio.sleep,
    settle_time: float = DEFAULT_SETTLE_TIME,
) -> ScenarioResult:
    """
    Negotiate between the scenario's endpoints, then measure the video
    received by the answering endpoint.

    Both endpoints are closed whatever the outcome.
    """
    result = ScenarioResult(name=scenario.name)
    endpoint_a: Optional[Endpoint] = None
    endpoint_b: Optional[Endpoint] = None
    try:
        endpoint_a, endpoint_b = await scenario.endpoints()
        await endpoint_a.open()
        await endpoint_b.open()

        sequencer = NegotiationSequencer(
            endpoint_a, endpoint_b, delay=delay, settle_time=settle_time
        )
        try:
            await sequencer.run()
        finally:
            result.deliveries = sequencer.deliveries

        result.measurement = await endpoint_b.measure_video()
        logger.info("Scenario %s measured %s", scenario.name, result.measurement)
    except Exception as exc:
        logger.warning("Scenario %s failed: %s", scenario.name, exc)
        result.error = exc
    finally:
        for endpoint in [endpoint_a, endpoint_b]:
            if endpoint is not None:
                await _close(endpoint)

    return result


async def run_scenarios(
    scenarios: list[Scenario],
    *,
    delay: Delay = asyncio.sleep,
    settle_time: float = DEFAULT_SETTLE_TIME,
) -> list[ScenarioResult]:
    """
    Run independent scenarios concurrently.
    """
    return list(
        await asyncio.gather(
            *[
                run_scenario(scenario, delay=delay, settle_time=settle_time)
                for scenario in scenarios
            ]
        )
    )


async def _close(endpoint: Endpoint) -> None:
    try:
        await endpoint.close()
    except Exception as exc:
        logger.warning("Failed to close %r: %s", endpoint, exc)
