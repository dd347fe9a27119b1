"""Naming-flow controller: analyze -> name -> preview over the stateless server."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable

from contracts.v1.schemas import (
    AnalyzeRequest,
    AnalyzeResult,
    NameRequest,
    NamerConfigOverrides,
    NamingResult,
    NodeMetadata,
    PageInfo,
    ProgressEvent,
    StructureAnalysis,
)

from .core_client import CoreClient, CoreClientError, CoreClientHTTPError
from .figma_url import extract_file_key
from .flow_state_machine import FlowStatus, InvalidTransitionError, can_transition, require_operation
from .progress import INITIAL_SNAPSHOT, ProgressSnapshot
from .stream_session import StreamSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowState:
    """Everything the presentation layer observes about one naming flow.

    ``status`` decides which of ``analyze_result``, ``results`` and ``error``
    are meaningful; the rest are stale for that status.
    """

    status: FlowStatus = FlowStatus.IDLE
    error: str | None = None
    analyze_result: AnalyzeResult | None = None
    session_id: str | None = None
    file_key: str | None = None
    root_node_id: str | None = None
    results: tuple[NamingResult, ...] = ()
    progress: ProgressSnapshot = INITIAL_SNAPSHOT

    @property
    def current_batch(self) -> int:
        return self.progress.current_batch

    @property
    def total_batches(self) -> int:
        return self.progress.total_batches

    @property
    def current_page(self) -> int:
        return self.progress.current_page

    @property
    def total_pages(self) -> int:
        return self.progress.total_pages

    @property
    def current_page_name(self) -> str:
        return self.progress.current_page_name

    @property
    def completed_nodes(self) -> int:
        return self.progress.completed_nodes

    @property
    def total_nodes(self) -> int:
        return self.progress.total_nodes

    @property
    def progress_message(self) -> str:
        return self.progress.latest_message

    @property
    def som_preview_image(self) -> str | None:
        return self.progress.latest_som_image

    @property
    def clean_preview_image(self) -> str | None:
        return self.progress.latest_clean_image

    @property
    def frame_preview_image(self) -> str | None:
        return self.progress.frame_image

    @property
    def structure_analysis(self) -> StructureAnalysis | None:
        if self.progress.structure_analysis is not None:
            return self.progress.structure_analysis
        if self.analyze_result is not None:
            return self.analyze_result.structure_analysis
        return None


@dataclass(frozen=True)
class NamingParams:
    """Inputs for ``FlowController.start_naming``."""

    figma_token: str
    vlm_provider: str
    vlm_api_key: str
    global_context: str = ""
    platform: str = ""
    config: NamerConfigOverrides | None = None
    # Explicit page subset; None means "use the pages from the last analysis".
    pages: list[PageInfo] | None = None


FlowListener = Callable[[FlowState], None]


class FlowController:
    """Finite-state controller for one logical naming flow.

    Issues the analyze and naming requests through ``CoreClient``, drives a
    ``StreamSession`` for progress, and promotes to ``previewing`` exactly
    once when the stream reports completion.
    """

    def __init__(self, *, core_client: CoreClient, stream_session: StreamSession | None = None):
        self.core_client = core_client
        self.stream = stream_session or StreamSession(core_client)
        self._state = FlowState()
        self._nodes: list[NodeMetadata] = []
        self._pages: list[PageInfo] = []
        self._listeners: list[FlowListener] = []
        self.stream.subscribe(self._on_stream_update)

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def status(self) -> FlowStatus:
        return self._state.status

    def subscribe(self, listener: FlowListener) -> Callable[[], None]:
        """Register a listener called with every new ``FlowState``; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def analyze(
        self,
        figma_url: str,
        figma_token: str,
        vlm_api_key: str | None = None,
        global_context: str | None = None,
        config: NamerConfigOverrides | None = None,
    ) -> FlowState:
        """Analyze a design file; ``counted`` on success, ``idle`` with an error otherwise."""
        require_operation("analyze", self._state.status)
        self._nodes = []
        self._pages = []
        self._set_state(replace(self._state, status=FlowStatus.ANALYZING, error=None, analyze_result=None))

        req = AnalyzeRequest(
            figma_url=figma_url,
            figma_token=figma_token,
            vlm_api_key=vlm_api_key,
            global_context=global_context,
            config=config,
        )
        try:
            result = self.core_client.analyze(req)
        except CoreClientError as e:
            message = _request_error_message(e, "Analysis")
            logger.warning("Analyze failed: %s", message)
            self._set_state(FlowState(status=FlowStatus.IDLE, error=message))
            return self._state

        self._nodes = list(result.nodes)
        self._pages = list(result.pages or [])
        logger.info(
            "Analyzed '%s': %d nodes, %d pages",
            result.root_name,
            result.total_nodes,
            len(self._pages),
        )
        self._set_state(
            FlowState(
                status=FlowStatus.COUNTED,
                analyze_result=result,
                file_key=extract_file_key(figma_url),
                root_node_id=result.root_node_id,
            )
        )
        return self._state

    def start_naming(self, params: NamingParams) -> FlowState:
        """Request a naming session and start streaming its progress.

        On request failure the flow returns to ``counted`` with the analysis
        intact so the caller can retry.
        """
        require_operation("start naming", self._state.status)
        self.stream.disconnect()
        self._set_state(
            replace(
                self._state,
                status=FlowStatus.NAMING,
                error=None,
                session_id=None,
                results=(),
                progress=INITIAL_SNAPSHOT,
            )
        )

        pages = params.pages if params.pages is not None else self._pages
        use_pages = len(pages) > 0
        req = NameRequest(
            pages=list(pages) if use_pages else None,
            nodes=None if use_pages else list(self._nodes),
            figma_token=params.figma_token,
            file_key=self._state.file_key,
            root_node_id=self._state.root_node_id,
            vlm_provider=params.vlm_provider,
            vlm_api_key=params.vlm_api_key,
            global_context=params.global_context,
            platform=params.platform,
            config=params.config,
        )
        try:
            response = self.core_client.start_naming(req)
        except CoreClientError as e:
            message = _request_error_message(e, "Naming")
            logger.warning("Start naming failed: %s", message)
            self._set_state(replace(self._state, status=FlowStatus.COUNTED, error=message))
            return self._state

        logger.info(
            "Naming session %s started (%s mode)",
            response.session_id,
            "page" if use_pages else "node",
        )
        self._set_state(replace(self._state, session_id=response.session_id))
        self.stream.connect(response.session_id)
        return self._state

    def wait(self) -> FlowState:
        """Consume progress events until the live stream ends."""
        self.stream.listen()
        return self._state

    def go_to_preview(self) -> FlowState:
        """Promote early to ``previewing`` with the results streamed so far.

        No-op unless the flow is ``naming`` and at least one result arrived.
        """
        if self._state.status != FlowStatus.NAMING:
            return self._state
        results = self.stream.snapshot.batch_results
        if not results:
            return self._state
        self.stream.disconnect()
        self._set_state(replace(self._state, status=FlowStatus.PREVIEWING, results=results))
        return self._state

    def finish(self) -> FlowState:
        """Accept the previewed results."""
        require_operation("finish", self._state.status)
        self._set_state(replace(self._state, status=FlowStatus.DONE))
        return self._state

    def reset(self) -> FlowState:
        """Return to the canonical ``idle`` state from any status."""
        self.stream.disconnect()
        self._nodes = []
        self._pages = []
        self._set_state(FlowState(), force=True)
        return self._state

    # ------------------------------------------------------------------
    # Stream notifications
    # ------------------------------------------------------------------

    def _on_stream_update(self, snapshot: ProgressSnapshot, event: ProgressEvent | None) -> None:
        if self._state.status != FlowStatus.NAMING:
            return

        state = replace(self._state, progress=snapshot)
        if event is not None and event.type == "all_complete":
            state = replace(state, status=FlowStatus.PREVIEWING, results=snapshot.batch_results)
        elif event is not None and event.type == "error":
            logger.warning("Naming session %s reported an error: %s", state.session_id, snapshot.error)
            state = replace(state, error=snapshot.error)
        self._set_state(state)

    def _set_state(self, state: FlowState, *, force: bool = False) -> None:
        previous = self._state.status
        if not force and state.status != previous and not can_transition(previous, state.status):
            raise InvalidTransitionError(f"move to '{state.status.value}'", previous)
        if state.status != previous:
            logger.info("Flow status: %s -> %s", previous.value, state.status.value)
        self._state = state
        for listener in list(self._listeners):
            listener(state)


def _request_error_message(exc: CoreClientError, action: str) -> str:
    if isinstance(exc, CoreClientHTTPError):
        return exc.server_message or f"{action} failed ({exc.status_code})"
    return str(exc)
