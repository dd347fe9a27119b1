"""Tests for the progress stream session lifecycle."""

import pytest

from conftest import FakeProgressConnection, event, result_rows
from namer_platform.core_client import CoreClientError, ProgressStreamTimeout
from namer_platform.stream_session import DISCONNECTED_MESSAGE, StreamSession, StreamSessionError


def _session(fake_core, **kwargs):
    sleeps = []
    kwargs.setdefault("idle_timeout_seconds", 5)
    kwargs.setdefault("reconnect_attempts", 2)
    kwargs.setdefault("reconnect_backoff_seconds", 0.5)
    session = StreamSession(fake_core, sleep=sleeps.append, **kwargs)
    return session, sleeps


def _complete_run(session_id="s1", batches=2, per_batch=3):
    messages = [event("connected", sessionId=session_id)]
    for i in range(batches):
        messages.append(event("batch_started", batchIndex=i, totalBatches=batches))
        messages.append(
            event(
                "batch_complete",
                batchIndex=i,
                totalBatches=batches,
                completedNodes=(i + 1) * per_batch,
                totalNodes=batches * per_batch,
                results=result_rows(per_batch, start=i * per_batch),
            )
        )
    messages.append(event("all_complete"))
    return messages


class TestConnect:
    def test_empty_session_id_is_rejected(self, fake_core):
        session, _ = _session(fake_core)

        with pytest.raises(StreamSessionError):
            session.connect("")

    def test_reopen_without_session_id_is_rejected(self, fake_core):
        session, _ = _session(fake_core)

        with pytest.raises(StreamSessionError):
            session._reconnect(0)

        assert fake_core.opened == []

    def test_connect_marks_connected(self, fake_core):
        fake_core.streams["s1"] = [[event("connected")]]
        session, _ = _session(fake_core)

        session.connect("s1")

        assert session.session_id == "s1"
        assert session.is_connected is True
        assert session.is_live is True
        assert session.snapshot.latest_message == "Connecting..."

    def test_open_failure_is_reported_as_error(self, fake_core):
        session, _ = _session(fake_core)

        session.connect("missing")

        assert session.is_live is False
        assert session.is_connected is False
        assert "Session not found" in session.snapshot.error

    def test_reconnect_closes_previous_connection(self, fake_core):
        fake_core.streams["s1"] = [[event("connected")]]
        fake_core.streams["s2"] = [[event("connected")]]
        session, _ = _session(fake_core)

        session.connect("s1")
        session.connect("s2")

        assert fake_core.opened[0].closed is True
        assert fake_core.opened[1].closed is False
        assert session.session_id == "s2"

    def test_connect_resets_previous_progress(self, fake_core):
        fake_core.streams["s1"] = [_complete_run("s1")]
        fake_core.streams["s2"] = [[event("connected")]]
        session, _ = _session(fake_core)
        session.connect("s1")
        session.listen()

        session.connect("s2")

        assert session.snapshot.batch_results == ()
        assert session.snapshot.all_complete is False


class TestListen:
    def test_listen_without_connection_returns_immediately(self, fake_core):
        session, _ = _session(fake_core)

        assert session.listen() is session.snapshot

    def test_happy_path_accumulates_and_completes(self, fake_core):
        fake_core.streams["s1"] = [_complete_run("s1", batches=2, per_batch=3)]
        session, _ = _session(fake_core)
        session.connect("s1")

        snapshot = session.listen()

        assert snapshot.all_complete is True
        assert snapshot.error is None
        assert snapshot.is_connected is False
        assert [r.node_id for r in snapshot.batch_results] == [f"1:{i}" for i in range(6)]
        assert snapshot.completed_nodes == 6
        assert session.is_live is False
        assert fake_core.opened[0].closed is True

    def test_listeners_see_each_event_in_order(self, fake_core):
        fake_core.streams["s1"] = [_complete_run("s1", batches=1)]
        session, _ = _session(fake_core)
        seen = []
        session.subscribe(lambda snapshot, ev: seen.append(ev.type if ev else None))

        session.connect("s1")
        session.listen()

        assert [t for t in seen if t] == ["connected", "batch_started", "batch_complete", "all_complete"]

    def test_unsubscribe_stops_notifications(self, fake_core):
        fake_core.streams["s1"] = [_complete_run("s1", batches=1)]
        session, _ = _session(fake_core)
        seen = []
        unsubscribe = session.subscribe(lambda snapshot, ev: seen.append(ev))
        unsubscribe()
        unsubscribe()

        session.connect("s1")
        session.listen()

        assert seen == []

    def test_server_error_is_terminal(self, fake_core):
        fake_core.streams["s1"] = [
            [
                event("connected"),
                event("batch_complete", batchIndex=0, totalBatches=2, results=result_rows(2)),
                event("error", message="model timeout"),
                event("batch_complete", batchIndex=1, totalBatches=2, results=result_rows(2, start=2)),
            ]
        ]
        session, _ = _session(fake_core)
        session.connect("s1")

        snapshot = session.listen()

        assert snapshot.error == "model timeout"
        assert snapshot.latest_message == "Error: model timeout"
        assert len(snapshot.batch_results) == 2
        assert snapshot.is_connected is False
        assert len(fake_core.opened) == 1

    def test_malformed_messages_are_counted_and_skipped(self, fake_core):
        fake_core.streams["s1"] = [
            [
                event("connected"),
                "{not json",
                '{"noType": true}',
                event("heartbeat"),
                event("all_complete", results=result_rows(1)),
            ]
        ]
        session, _ = _session(fake_core)
        session.connect("s1")

        snapshot = session.listen()

        assert snapshot.dropped_messages == 2
        assert snapshot.all_complete is True
        assert len(snapshot.batch_results) == 1

    def test_disconnect_from_listener_stops_applying_events(self, fake_core):
        fake_core.streams["s1"] = [_complete_run("s1", batches=3, per_batch=1)]
        session, _ = _session(fake_core)

        def _stop_after_first_batch(snapshot, ev):
            if ev is not None and ev.type == "batch_complete":
                session.disconnect()

        session.subscribe(_stop_after_first_batch)
        session.connect("s1")
        snapshot = session.listen()

        assert len(snapshot.batch_results) == 1
        assert snapshot.all_complete is False
        assert snapshot.is_connected is False
        assert snapshot.error is None

    def test_events_from_replaced_connection_are_not_applied(self, fake_core):
        fake_core.streams["s1"] = [_complete_run("s1", batches=3, per_batch=1)]
        fake_core.streams["s2"] = [
            [event("connected"), event("all_complete", results=result_rows(1, start=50))]
        ]
        session, _ = _session(fake_core)
        switched = []

        def _switch_on_first_batch(snapshot, ev):
            if ev is not None and ev.type == "batch_complete" and not switched:
                switched.append(True)
                session.connect("s2")

        session.subscribe(_switch_on_first_batch)
        session.connect("s1")
        snapshot = session.listen()

        assert session.session_id == "s2"
        assert [r.node_id for r in snapshot.batch_results] == ["1:50"]
        assert fake_core.opened[0].closed is True

    def test_context_manager_disconnects(self, fake_core):
        fake_core.streams["s1"] = [[event("connected")]]
        session, _ = _session(fake_core)

        with session:
            session.connect("s1")

        assert session.is_live is False
        assert fake_core.opened[0].closed is True


class TestReconnect:
    def test_dropped_stream_is_reopened(self, fake_core):
        fake_core.streams["s1"] = [
            FakeProgressConnection(
                "s1",
                [event("connected"), event("batch_complete", batchIndex=0, totalBatches=2, results=result_rows(1))],
                error=CoreClientError("connection reset"),
            ),
            [event("connected"), event("all_complete")],
        ]
        session, sleeps = _session(fake_core)
        session.connect("s1")

        snapshot = session.listen()

        assert snapshot.all_complete is True
        assert snapshot.error is None
        assert len(snapshot.batch_results) == 1
        assert len(fake_core.opened) == 2
        assert sleeps == [0.5]

    def test_end_without_terminal_event_gives_up_after_attempts(self, fake_core):
        fake_core.streams["s1"] = [[event("connected")], [event("connected")], [event("connected")]]
        session, sleeps = _session(fake_core, reconnect_attempts=2)
        session.connect("s1")

        snapshot = session.listen()

        assert snapshot.error == DISCONNECTED_MESSAGE
        assert len(fake_core.opened) == 3
        assert sleeps == [0.5, 1.0]

    def test_failed_reopen_counts_as_attempt(self, fake_core):
        fake_core.streams["s1"] = [[event("connected")], CoreClientError("refused")]
        session, sleeps = _session(fake_core, reconnect_attempts=1)
        session.connect("s1")

        snapshot = session.listen()

        assert snapshot.error == DISCONNECTED_MESSAGE
        assert sleeps == [0.5]

    def test_progress_resets_attempt_budget(self, fake_core):
        drop = CoreClientError("connection reset")
        fake_core.streams["s1"] = [
            FakeProgressConnection("s1", [event("connected"), event("vlm_called")], error=drop),
            FakeProgressConnection("s1", [event("connected"), event("vlm_called")], error=drop),
            [event("connected"), event("all_complete")],
        ]
        session, _ = _session(fake_core, reconnect_attempts=1)
        session.connect("s1")

        snapshot = session.listen()

        assert snapshot.all_complete is True
        assert snapshot.error is None

    def test_zero_attempts_fails_immediately(self, fake_core):
        fake_core.streams["s1"] = [[event("connected")]]
        session, sleeps = _session(fake_core, reconnect_attempts=0)
        session.connect("s1")

        snapshot = session.listen()

        assert snapshot.error == DISCONNECTED_MESSAGE
        assert sleeps == []


def test_silent_stream_is_reported_as_stall(fake_core):
    fake_core.streams["s1"] = [
        FakeProgressConnection("s1", [event("connected")], error=ProgressStreamTimeout("timed out")),
    ]
    session, sleeps = _session(fake_core, idle_timeout_seconds=5)
    session.connect("s1")

    snapshot = session.listen()

    assert snapshot.error == "No progress received for 5s"
    assert snapshot.is_connected is False
    assert session.is_live is False
    assert sleeps == []
