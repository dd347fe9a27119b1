"""v1 wire contracts for the naming server API."""

__version__ = "1.0.0"

from .schemas import (
    EVENT_TYPES,
    TERMINAL_EVENT_TYPES,
    AllCompleteEvent,
    AnalyzeRequest,
    AnalyzeResult,
    BatchCompleteEvent,
    BatchStartedEvent,
    BoundingBox,
    ConnectedEvent,
    ErrorEvent,
    ImageExportedEvent,
    NameRequest,
    NameResponse,
    NamerConfigOverrides,
    NamingResult,
    NodeMetadata,
    PageCompleteEvent,
    PageInfo,
    PageStartedEvent,
    ProgressEvent,
    SomRenderedEvent,
    StructureAnalysis,
    StructureAnalysisCompleteEvent,
    StructureAnalysisStartedEvent,
    VlmCalledEvent,
    dump_wire,
)

__all__ = [
    "__version__",
    "EVENT_TYPES",
    "TERMINAL_EVENT_TYPES",
    "AllCompleteEvent",
    "AnalyzeRequest",
    "AnalyzeResult",
    "BatchCompleteEvent",
    "BatchStartedEvent",
    "BoundingBox",
    "ConnectedEvent",
    "ErrorEvent",
    "ImageExportedEvent",
    "NameRequest",
    "NameResponse",
    "NamerConfigOverrides",
    "NamingResult",
    "NodeMetadata",
    "PageCompleteEvent",
    "PageInfo",
    "PageStartedEvent",
    "ProgressEvent",
    "SomRenderedEvent",
    "StructureAnalysis",
    "StructureAnalysisCompleteEvent",
    "StructureAnalysisStartedEvent",
    "VlmCalledEvent",
    "dump_wire",
]
