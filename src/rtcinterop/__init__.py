# ruff: noqa: F401
import logging

from .endpoint import Endpoint, TrackAttachment
from .exceptions import EndpointError, InteropError, NegotiationError
from .media import Measurement
from .scenario import Scenario, ScenarioResult, run_scenario, run_scenarios
from .sdp import mangle, mangle_description, rename_stream
from .sequencer import Delivery, NegotiationSequencer, NegotiationState

__version__ = "0.1.0"

# Set default logging handler to avoid "No handler found" warnings.
logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Delivery",
    "Endpoint",
    "EndpointError",
    "InteropError",
    "Measurement",
    "NegotiationError",
    "NegotiationSequencer",
    "NegotiationState",
    "Scenario",
    "ScenarioResult",
    "TrackAttachment",
    "mangle",
    "mangle_description",
    "rename_stream",
    "run_scenario",
    "run_scenarios",
]
