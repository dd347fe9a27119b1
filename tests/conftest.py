"""
Shared fixtures for figma-namer tests.
"""

import json

import pytest

from contracts.v1.schemas import AnalyzeResult, NameResponse
from namer_platform.core_client import CoreClientHTTPError


def event(type_: str, **fields) -> str:
    """Build the raw ``data`` payload of one progress event."""
    return json.dumps({"type": type_, **fields})


def result_rows(count: int, start: int = 0) -> list[dict]:
    """Wire-shaped NamingResult rows with sequential ids."""
    return [
        {
            "nodeId": f"1:{i}",
            "markId": i + 1,
            "originalName": f"Frame {i}",
            "suggestedName": f"card/item-{i}",
            "confidence": 0.9,
        }
        for i in range(start, start + count)
    ]


class FakeProgressConnection:
    """In-memory stand-in for ``ProgressConnection``.

    Yields ``messages`` in order, then raises ``error`` (if given) to
    simulate a dropped transport.
    """

    def __init__(self, session_id: str, messages: list[str], error: Exception | None = None):
        self.session_id = session_id
        self._messages = list(messages)
        self._error = error
        self.closed = False

    def messages(self):
        for message in self._messages:
            if self.closed:
                return
            yield message
        if self._error is not None and not self.closed:
            raise self._error

    def close(self):
        self.closed = True


class FakeCoreClient:
    """Scriptable stand-in for ``CoreClient``.

    ``streams[session_id]`` is a queue: each ``open_progress`` call pops the
    next entry, which is either a list of raw messages, a
    ``FakeProgressConnection``, or an exception to raise.
    """

    def __init__(self):
        self.analyze_payload: dict | None = None
        self.analyze_error: Exception | None = None
        self.name_session_id = "s1"
        self.name_error: Exception | None = None
        self.streams: dict[str, list] = {}
        self.analyze_calls = []
        self.name_calls = []
        self.opened: list[FakeProgressConnection] = []

    def analyze(self, req):
        self.analyze_calls.append(req)
        if self.analyze_error is not None:
            raise self.analyze_error
        return AnalyzeResult.model_validate(self.analyze_payload or {"totalNodes": 0})

    def start_naming(self, req):
        self.name_calls.append(req)
        if self.name_error is not None:
            raise self.name_error
        return NameResponse(session_id=self.name_session_id)

    def open_progress(self, session_id, *, timeout_seconds=None):
        queue = self.streams.get(session_id) or []
        if not queue:
            raise CoreClientHTTPError(404, "Session not found", "Session not found")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        connection = item if isinstance(item, FakeProgressConnection) else FakeProgressConnection(session_id, item)
        self.opened.append(connection)
        return connection


@pytest.fixture
def fake_core():
    return FakeCoreClient()


@pytest.fixture
def sample_nodes():
    return [
        {"id": "1:1", "originalName": "Frame 1", "nodeType": "FRAME", "depth": 1},
        {"id": "1:2", "originalName": "Rectangle 7", "nodeType": "INSTANCE", "depth": 2},
        {"id": "1:3", "originalName": "Text", "nodeType": "TEXT", "depth": 2, "textContent": "Sign in"},
    ]


@pytest.fixture
def sample_analyze_payload(sample_nodes):
    """An ``/api/analyze`` success body without page grouping."""
    return {
        "rootName": "Checkout",
        "totalNodes": 3,
        "nodesByType": {"FRAME": 1, "INSTANCE": 1, "TEXT": 1},
        "nodes": sample_nodes,
        "estimatedBatches": 1,
        "rootNodeId": "0:1",
    }


@pytest.fixture
def paged_analyze_payload(sample_nodes):
    """An ``/api/analyze`` success body with AI page grouping."""
    return {
        "rootName": "Checkout",
        "totalNodes": 3,
        "nodesByType": {"FRAME": 1, "INSTANCE": 1, "TEXT": 1},
        "nodes": sample_nodes,
        "estimatedBatches": 1,
        "structureAnalysis": {"fileType": "app-screens", "reasoning": "Two screens and a legend"},
        "pages": [
            {
                "nodeId": "2:1",
                "name": "Cart",
                "pageRole": "screen",
                "isAuxiliary": False,
                "nodeIdsToName": ["1:1", "1:2"],
                "nodes": sample_nodes[:2],
            },
            {
                "nodeId": "2:2",
                "name": "Legend",
                "pageRole": "annotation",
                "isAuxiliary": True,
                "nodeIdsToName": [],
                "nodes": [],
            },
        ],
        "totalPages": 1,
    }
