"""Progress-stream event interpreter.

Turns raw push messages into typed events and folds each event into an
immutable ``ProgressSnapshot``. Every application returns a new snapshot, so
holders of an older snapshot never observe later changes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from typing import Callable

from pydantic import TypeAdapter, ValidationError

from contracts.v1.schemas import (
    EVENT_TYPES,
    AllCompleteEvent,
    BatchCompleteEvent,
    BatchStartedEvent,
    ConnectedEvent,
    ErrorEvent,
    ImageExportedEvent,
    NamingResult,
    PageCompleteEvent,
    PageStartedEvent,
    ProgressEvent,
    SomRenderedEvent,
    StructureAnalysis,
    StructureAnalysisCompleteEvent,
    StructureAnalysisStartedEvent,
    VlmCalledEvent,
)

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown error"


class MalformedEventError(ValueError):
    """Raised when a raw stream message is not a well-formed progress event."""


@dataclass(frozen=True)
class ProgressSnapshot:
    """Live progress of one naming session as seen by the client."""

    is_connected: bool = False
    current_batch: int = 0
    total_batches: int = 0
    completed_nodes: int = 0
    total_nodes: int = 0
    latest_message: str = ""
    latest_som_image: str | None = None
    latest_clean_image: str | None = None
    frame_image: str | None = None
    batch_results: tuple[NamingResult, ...] = ()
    all_complete: bool = False
    error: str | None = None
    current_page: int = 0
    total_pages: int = 0
    current_page_name: str = ""
    structure_analysis: StructureAnalysis | None = None
    # Debug-only: raw messages discarded as unparseable.
    dropped_messages: int = 0


INITIAL_SNAPSHOT = ProgressSnapshot()
CONNECTING_SNAPSHOT = ProgressSnapshot(latest_message="Connecting...")

_EVENT_ADAPTER: TypeAdapter = TypeAdapter(ProgressEvent)


def parse_event(raw: str | bytes) -> ProgressEvent | None:
    """Parse one raw stream message.

    Returns None for a well-formed message of an unrecognized kind.
    Raises MalformedEventError when the message is not a JSON object with a
    string ``type`` or when a known kind carries fields of the wrong shape.
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedEventError(f"Progress message is not valid JSON: {e}") from e

    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        raise MalformedEventError("Progress message has no string 'type' field")

    if payload["type"] not in EVENT_TYPES:
        return None

    try:
        return _EVENT_ADAPTER.validate_python(payload)
    except ValidationError as e:
        raise MalformedEventError(f"Invalid '{payload['type']}' event: {e}") from e


def apply_event(snapshot: ProgressSnapshot, event: ProgressEvent) -> ProgressSnapshot:
    """Return the snapshot that results from applying ``event`` to ``snapshot``."""
    handler = _HANDLERS.get(event.type)
    if handler is None:
        return snapshot
    logger.debug("Applying progress event: %s", event.type)
    return handler(snapshot, event)


def record_dropped(snapshot: ProgressSnapshot) -> ProgressSnapshot:
    """Count one discarded raw message."""
    return replace(snapshot, dropped_messages=snapshot.dropped_messages + 1)


def mark_connected(snapshot: ProgressSnapshot, connected: bool) -> ProgressSnapshot:
    if snapshot.is_connected == connected:
        return snapshot
    return replace(snapshot, is_connected=connected)


def _apply_connected(snapshot: ProgressSnapshot, event: ConnectedEvent) -> ProgressSnapshot:
    return replace(snapshot, latest_message="Connected to server")


def _apply_structure_analysis_started(
    snapshot: ProgressSnapshot, event: StructureAnalysisStartedEvent
) -> ProgressSnapshot:
    return replace(snapshot, latest_message=event.message or "Analyzing file structure...")


def _apply_structure_analysis_complete(
    snapshot: ProgressSnapshot, event: StructureAnalysisCompleteEvent
) -> ProgressSnapshot:
    return replace(
        snapshot,
        structure_analysis=event.structure_analysis or snapshot.structure_analysis,
        latest_message=event.message or "Structure analysis complete",
    )


def _apply_page_started(snapshot: ProgressSnapshot, event: PageStartedEvent) -> ProgressSnapshot:
    page_name = event.page_name or snapshot.current_page_name
    return replace(
        snapshot,
        current_page=event.page_index or 0,
        total_pages=event.total_pages or snapshot.total_pages,
        current_page_name=page_name,
        latest_message=event.message or f"Starting page: {page_name}",
    )


def _apply_page_complete(snapshot: ProgressSnapshot, event: PageCompleteEvent) -> ProgressSnapshot:
    page_name = event.page_name or snapshot.current_page_name
    return replace(snapshot, latest_message=event.message or f"Page complete: {page_name}")


def _apply_batch_started(snapshot: ProgressSnapshot, event: BatchStartedEvent) -> ProgressSnapshot:
    batch_index = event.batch_index or 0
    return replace(
        snapshot,
        current_batch=batch_index,
        total_batches=event.total_batches or 0,
        current_page=event.page_index if event.page_index is not None else snapshot.current_page,
        total_pages=event.total_pages or snapshot.total_pages,
        current_page_name=event.page_name or snapshot.current_page_name,
        latest_message=event.message or f"Processing batch {batch_index + 1}",
    )


def _apply_image_exported(snapshot: ProgressSnapshot, event: ImageExportedEvent) -> ProgressSnapshot:
    return replace(
        snapshot,
        latest_clean_image=event.clean_image_base64 or snapshot.latest_clean_image,
        frame_image=event.frame_image_base64 or snapshot.frame_image,
        latest_message="Image exported, rendering SoM marks...",
    )


def _apply_som_rendered(snapshot: ProgressSnapshot, event: SomRenderedEvent) -> ProgressSnapshot:
    return replace(
        snapshot,
        latest_som_image=event.som_image_base64 or snapshot.latest_som_image,
        latest_clean_image=event.clean_image_base64 or snapshot.latest_clean_image,
        latest_message="SoM overlay rendered, calling AI model...",
    )


def _apply_vlm_called(snapshot: ProgressSnapshot, event: VlmCalledEvent) -> ProgressSnapshot:
    return replace(snapshot, latest_message="AI model responded, parsing results...")


def _apply_batch_complete(snapshot: ProgressSnapshot, event: BatchCompleteEvent) -> ProgressSnapshot:
    batch_number = (event.batch_index or 0) + 1
    total_batches = event.total_batches or 0
    if event.page_name:
        message = f'Page "{event.page_name}" - Batch {batch_number}/{total_batches} complete'
    else:
        message = f"Batch {batch_number} of {total_batches} complete"

    results = snapshot.batch_results
    if event.results:
        results = results + tuple(event.results)

    return replace(
        snapshot,
        completed_nodes=event.completed_nodes or 0,
        total_nodes=event.total_nodes or 0,
        batch_results=results,
        latest_message=message,
    )


def _apply_all_complete(snapshot: ProgressSnapshot, event: AllCompleteEvent) -> ProgressSnapshot:
    # A carried result list is authoritative over the incremental one.
    results = tuple(event.results) if event.results is not None else snapshot.batch_results
    return replace(
        snapshot,
        all_complete=True,
        batch_results=results,
        is_connected=False,
        latest_message="All batches complete!",
    )


def _apply_error(snapshot: ProgressSnapshot, event: ErrorEvent) -> ProgressSnapshot:
    message = event.message or UNKNOWN_ERROR_MESSAGE
    return replace(
        snapshot,
        error=message,
        is_connected=False,
        latest_message=f"Error: {message}",
    )


_HANDLERS: dict[str, Callable[[ProgressSnapshot, ProgressEvent], ProgressSnapshot]] = {
    "connected": _apply_connected,
    "structure_analysis_started": _apply_structure_analysis_started,
    "structure_analysis_complete": _apply_structure_analysis_complete,
    "page_started": _apply_page_started,
    "page_complete": _apply_page_complete,
    "batch_started": _apply_batch_started,
    "image_exported": _apply_image_exported,
    "som_rendered": _apply_som_rendered,
    "vlm_called": _apply_vlm_called,
    "batch_complete": _apply_batch_complete,
    "all_complete": _apply_all_complete,
    "error": _apply_error,
}
