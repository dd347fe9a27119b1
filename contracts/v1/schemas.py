"""Pydantic contracts for the v1 naming server API."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    """Base model for server payloads: camelCase on the wire, lenient on extras."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class _StrictModel(_WireModel):
    """Base model for client-built request bodies that rejects unknown fields."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class BoundingBox(_WireModel):
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0


class NodeMetadata(_WireModel):
    """A nameable design node as reported by ``/api/analyze``.

    Unknown keys are kept so cached nodes can be sent back to ``/api/name``
    exactly as the server produced them.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str
    original_name: str = ""
    node_type: str = ""
    bounding_box: BoundingBox | None = None
    depth: int = 0
    parent_id: str | None = None
    text_content: str | None = None
    bound_variables: list[str] = Field(default_factory=list)
    component_properties: dict[str, str] = Field(default_factory=dict)
    has_children: bool = False
    child_count: int = 0
    layout_mode: str | None = None


class PageInfo(_WireModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    node_id: str
    name: str = ""
    page_role: str = ""
    is_auxiliary: bool = False
    node_ids_to_name: list[str] = Field(default_factory=list)
    nodes: list[NodeMetadata] = Field(default_factory=list)
    bounding_box: BoundingBox | None = None


class StructureAnalysis(_WireModel):
    file_type: str = "unknown"
    reasoning: str = ""
    pages: list[PageInfo] = Field(default_factory=list)
    analysis_model: str | None = None


class AnalyzeResult(_WireModel):
    root_name: str = "Untitled"
    total_nodes: int = Field(default=0, ge=0)
    nodes_by_type: dict[str, int] = Field(default_factory=dict)
    nodes: list[NodeMetadata] = Field(default_factory=list)
    estimated_batches: int = 0
    root_node_id: str | None = None
    structure_analysis: StructureAnalysis | None = None
    pages: list[PageInfo] | None = None
    total_pages: int | None = None


class NamingResult(_WireModel):
    node_id: str
    mark_id: int
    original_name: str = ""
    suggested_name: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class NamerConfigOverrides(_StrictModel):
    """Partial naming configuration; only explicitly set keys reach the server."""

    vlm_provider: str | None = None
    api_endpoint: str | None = None
    batch_size: int | None = Field(default=None, gt=0)
    export_scale: float | None = Field(default=None, gt=0)
    highlight_color: str | None = None
    label_font_size: int | None = Field(default=None, gt=0)
    include_locked: bool | None = None
    include_invisible: bool | None = None
    min_node_area: float | None = Field(default=None, ge=0)
    include_node_types: list[str] | None = None


class AnalyzeRequest(_StrictModel):
    figma_url: str
    figma_token: str
    vlm_api_key: str | None = None
    global_context: str | None = None
    config: NamerConfigOverrides | None = None


class NameRequest(_StrictModel):
    pages: list[PageInfo] | None = None
    nodes: list[NodeMetadata] | None = None
    figma_token: str
    file_key: str | None = None
    root_node_id: str | None = None
    vlm_provider: str
    vlm_api_key: str
    global_context: str = ""
    platform: str = ""
    config: NamerConfigOverrides | None = None


class NameResponse(_WireModel):
    session_id: str = Field(min_length=1)
    total_batches: int | None = None
    total_nodes: int | None = None


# ---------------------------------------------------------------------------
# Progress stream events (``GET /api/progress/{sessionId}``)
# ---------------------------------------------------------------------------

class _EventModel(_WireModel):
    session_id: str | None = None
    message: str | None = None


class ConnectedEvent(_EventModel):
    type: Literal["connected"]


class StructureAnalysisStartedEvent(_EventModel):
    type: Literal["structure_analysis_started"]


class StructureAnalysisCompleteEvent(_EventModel):
    type: Literal["structure_analysis_complete"]
    structure_analysis: StructureAnalysis | None = None


class PageStartedEvent(_EventModel):
    type: Literal["page_started"]
    page_index: int | None = None
    total_pages: int | None = None
    page_name: str | None = None


class PageCompleteEvent(_EventModel):
    type: Literal["page_complete"]
    page_index: int | None = None
    page_name: str | None = None


class BatchStartedEvent(_EventModel):
    type: Literal["batch_started"]
    batch_index: int | None = None
    total_batches: int | None = None
    page_index: int | None = None
    total_pages: int | None = None
    page_name: str | None = None


class ImageExportedEvent(_EventModel):
    type: Literal["image_exported"]
    clean_image_base64: str | None = None
    frame_image_base64: str | None = None


class SomRenderedEvent(_EventModel):
    type: Literal["som_rendered"]
    som_image_base64: str | None = None
    clean_image_base64: str | None = None


class VlmCalledEvent(_EventModel):
    type: Literal["vlm_called"]


class BatchCompleteEvent(_EventModel):
    type: Literal["batch_complete"]
    batch_index: int | None = None
    total_batches: int | None = None
    completed_nodes: int | None = None
    total_nodes: int | None = None
    page_name: str | None = None
    results: list[NamingResult] | None = None


class AllCompleteEvent(_EventModel):
    type: Literal["all_complete"]
    results: list[NamingResult] | None = None


class ErrorEvent(_EventModel):
    type: Literal["error"]


ProgressEvent = Annotated[
    Union[
        ConnectedEvent,
        StructureAnalysisStartedEvent,
        StructureAnalysisCompleteEvent,
        PageStartedEvent,
        PageCompleteEvent,
        BatchStartedEvent,
        ImageExportedEvent,
        SomRenderedEvent,
        VlmCalledEvent,
        BatchCompleteEvent,
        AllCompleteEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

EVENT_TYPES: frozenset[str] = frozenset(
    {
        "connected",
        "structure_analysis_started",
        "structure_analysis_complete",
        "page_started",
        "page_complete",
        "batch_started",
        "image_exported",
        "som_rendered",
        "vlm_called",
        "batch_complete",
        "all_complete",
        "error",
    }
)

TERMINAL_EVENT_TYPES: frozenset[str] = frozenset({"all_complete", "error"})


def dump_wire(model: BaseModel) -> dict[str, Any]:
    """Serialize a contract model into its camelCase JSON body, dropping unset fields."""
    return model.model_dump(by_alias=True, exclude_none=True, mode="json")
