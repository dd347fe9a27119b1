"""Lifetime of the single progress push-stream connection."""

from __future__ import annotations

import logging
import time
from typing import Callable

from contracts.v1.schemas import TERMINAL_EVENT_TYPES, ErrorEvent, ProgressEvent

from . import config
from .core_client import CoreClient, CoreClientError, ProgressConnection, ProgressStreamTimeout
from .progress import (
    CONNECTING_SNAPSHOT,
    INITIAL_SNAPSHOT,
    MalformedEventError,
    ProgressSnapshot,
    apply_event,
    mark_connected,
    parse_event,
    record_dropped,
)

logger = logging.getLogger(__name__)

DISCONNECTED_MESSAGE = "Progress stream disconnected"

StreamListener = Callable[[ProgressSnapshot, "ProgressEvent | None"], None]


class StreamSessionError(Exception):
    """Raised for misuse of a stream session, such as connecting without a session id."""


class StreamSession:
    """Owns zero or one live ``/api/progress/{sessionId}`` connection.

    Events are applied strictly in arrival order; listeners are called
    synchronously with the new snapshot and the event that produced it
    (``None`` for connection-state changes and dropped messages).
    """

    def __init__(
        self,
        core_client: CoreClient,
        *,
        idle_timeout_seconds: float | None = None,
        reconnect_attempts: int | None = None,
        reconnect_backoff_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.core_client = core_client
        self.idle_timeout_seconds = (
            idle_timeout_seconds if idle_timeout_seconds is not None else config.stream_idle_timeout_seconds()
        )
        self.reconnect_attempts = max(
            0, reconnect_attempts if reconnect_attempts is not None else config.reconnect_attempts()
        )
        self.reconnect_backoff_seconds = max(
            0.0,
            reconnect_backoff_seconds
            if reconnect_backoff_seconds is not None
            else config.reconnect_backoff_seconds(),
        )
        self._sleep = sleep
        self._listeners: list[StreamListener] = []
        self._snapshot = INITIAL_SNAPSHOT
        self._session_id: str | None = None
        self._connection: ProgressConnection | None = None
        # Bumped whenever the live connection is replaced or released, so a
        # consumer loop reading an older connection stops applying its events.
        self._generation = 0

    @property
    def snapshot(self) -> ProgressSnapshot:
        return self._snapshot

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def is_connected(self) -> bool:
        return self._snapshot.is_connected

    @property
    def is_live(self) -> bool:
        """True while a connection is held, including before its first message."""
        return self._connection is not None

    def subscribe(self, listener: StreamListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def connect(self, session_id: str) -> None:
        """Close any live connection, reset progress, and open a stream for ``session_id``.

        A failure to open is reported through the snapshot's ``error`` field,
        not raised.
        """
        if not session_id:
            raise StreamSessionError("Cannot open a progress stream without a session id")

        self.disconnect()
        self._session_id = session_id
        self._set_snapshot(CONNECTING_SNAPSHOT, None)

        try:
            self._open()
        except CoreClientError as e:
            logger.warning("Could not open progress stream %s: %s", session_id, e)
            self._fail(str(e))

    def disconnect(self) -> None:
        """Close the live connection, if any."""
        had_connection = self._release_connection()
        if had_connection:
            logger.info("Progress stream disconnected: %s", self._session_id)
        if self._snapshot.is_connected:
            self._set_snapshot(mark_connected(self._snapshot, False), None)

    def listen(self) -> ProgressSnapshot:
        """Consume the live stream until it ends, then return the final snapshot.

        Returns immediately when no connection is live. An abnormal end (read
        failure, or EOF before a terminal event) is retried up to
        ``reconnect_attempts`` times against the same session id; a silent
        stream past ``idle_timeout_seconds`` is reported as a stall.
        """
        failures = 0
        while self._connection is not None:
            connection = self._connection
            generation = self._generation
            try:
                for raw in connection.messages():
                    if generation != self._generation:
                        break
                    event = self._handle_raw(raw)
                    if event is not None and event.type != "connected":
                        failures = 0
                    if generation != self._generation:
                        break
            except ProgressStreamTimeout:
                if generation == self._generation:
                    logger.warning("Progress stream %s stalled", self._session_id)
                    self._fail(f"No progress received for {self.idle_timeout_seconds:g}s")
                continue
            except CoreClientError as e:
                if generation != self._generation:
                    continue
                logger.warning("Progress stream %s dropped: %s", self._session_id, e)
            else:
                if generation != self._generation:
                    continue
                logger.warning("Progress stream %s ended without a terminal event", self._session_id)

            self._release_connection()
            self._set_snapshot(mark_connected(self._snapshot, False), None)
            attempt = self._reconnect(failures)
            if attempt is None:
                self._fail(DISCONNECTED_MESSAGE)
                return self._snapshot
            failures = attempt

        return self._snapshot

    def _reconnect(self, failures: int) -> int | None:
        """Reopen the stream; returns the attempt number that succeeded, or None."""
        attempt = failures
        while attempt < self.reconnect_attempts:
            attempt += 1
            delay = self.reconnect_backoff_seconds * attempt
            logger.warning(
                "Reconnecting progress stream %s in %.1fs (attempt %d/%d)",
                self._session_id,
                delay,
                attempt,
                self.reconnect_attempts,
            )
            if delay > 0:
                self._sleep(delay)
            try:
                self._open()
                return attempt
            except CoreClientError as e:
                logger.warning("Reconnect to progress stream %s failed: %s", self._session_id, e)
        return None

    def _open(self) -> None:
        if not self._session_id:
            raise StreamSessionError("Cannot open a progress stream without a session id")
        connection = self.core_client.open_progress(
            self._session_id,
            timeout_seconds=self.idle_timeout_seconds,
        )
        self._generation += 1
        self._connection = connection
        logger.info("Progress stream connected: %s", self._session_id)
        self._set_snapshot(mark_connected(self._snapshot, True), None)

    def _release_connection(self) -> bool:
        connection = self._connection
        self._connection = None
        self._generation += 1
        if connection is None:
            return False
        connection.close()
        return True

    def _handle_raw(self, raw: str) -> ProgressEvent | None:
        try:
            event = parse_event(raw)
        except MalformedEventError as e:
            logger.debug("Dropping malformed progress message: %s", e)
            self._set_snapshot(record_dropped(self._snapshot), None)
            return None

        if event is None:
            logger.debug("Ignoring progress message of unrecognized type")
            return None

        snapshot = apply_event(self._snapshot, event)
        if event.type in TERMINAL_EVENT_TYPES:
            self._release_connection()
            logger.info("Progress stream %s finished with '%s'", self._session_id, event.type)
        self._set_snapshot(snapshot, event)
        return event

    def _fail(self, message: str) -> None:
        self._release_connection()
        event = ErrorEvent(type="error", session_id=self._session_id, message=message)
        self._set_snapshot(apply_event(self._snapshot, event), event)

    def _set_snapshot(self, snapshot: ProgressSnapshot, event: ProgressEvent | None) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            listener(snapshot, event)

    def __enter__(self) -> "StreamSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()
