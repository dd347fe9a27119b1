"""Client-side orchestration of the analyze -> name -> preview flow."""

__version__ = "0.3.0"

from .core_client import (
    CoreClient,
    CoreClientError,
    CoreClientHTTPError,
    ProgressConnection,
    ProgressStreamTimeout,
)
from .figma_url import ParsedFigmaUrl, extract_file_key, parse_figma_url
from .flow_controller import FlowController, FlowState, NamingParams
from .flow_state_machine import FlowStatus, InvalidTransitionError, can_transition, holds_results
from .progress import (
    INITIAL_SNAPSHOT,
    MalformedEventError,
    ProgressSnapshot,
    apply_event,
    parse_event,
)
from .stream_session import StreamSession, StreamSessionError

__all__ = [
    "__version__",
    "CoreClient",
    "CoreClientError",
    "CoreClientHTTPError",
    "ProgressConnection",
    "ProgressStreamTimeout",
    "ParsedFigmaUrl",
    "extract_file_key",
    "parse_figma_url",
    "FlowController",
    "FlowState",
    "NamingParams",
    "FlowStatus",
    "InvalidTransitionError",
    "can_transition",
    "holds_results",
    "INITIAL_SNAPSHOT",
    "MalformedEventError",
    "ProgressSnapshot",
    "apply_event",
    "parse_event",
    "StreamSession",
    "StreamSessionError",
]
