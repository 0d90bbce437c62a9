"""Confirm commands by waiting for matching events on an independent log stream.

A wait never owns the stream's reader: it registers a listener plus a timer
and hands back a :class:`PendingConfirmation` that the caller blocks on when
it is ready to. Whichever of "event matched", "timer fired" or "cancelled"
happens first settles the wait, and every path releases both the listener
and the timer.
"""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from concurrent.futures import Future
from functools import lru_cache

from .errors import CorrelationTimeout
from .events import EventStream, LogEvent, Subscription

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000

DEFAULT_TIMEOUTS: dict[str, int] = {
    # Block interaction
    "break_block": 5000,
    "place_block": 5000,
    "interact_with_block": 3000,
    # Movement
    "move_player": 2000,
    "teleport_player": 2000,
    "look_at": 1000,
    "navigate_to": 15000,
    # Entities
    "spawn_entity": 3000,
    "kill_entity": 3000,
    "attack_entity": 3000,
    # Inventory
    "give_item": 2000,
    "remove_item": 2000,
    "equip_item": 2000,
    "use_item": 2000,
    # Commands and chat
    "server_command": 3000,
    "execute_rcon_command": 3000,
    "execute_player_command": 3000,
    "send_chat_message": 2000,
    "wait_for_chat_message": 2000,
}


def default_timeout(kind: str | None) -> int:
    """Default confirmation timeout in milliseconds for an action kind."""

    if kind is None:
        return DEFAULT_TIMEOUT_MS
    return DEFAULT_TIMEOUTS.get(kind, DEFAULT_TIMEOUT_MS)


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a glob: ``*`` is any run of characters, ``?`` exactly one.

    The whole text must match and case is ignored.
    """

    body = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(body, re.IGNORECASE | re.DOTALL)


def glob_match(text: str | None, pattern: str) -> bool:
    if not text:
        return False
    return glob_to_regex(pattern).fullmatch(text) is not None


def event_matches(event: LogEvent, pattern: str, actor: str | None = None) -> bool:
    if actor is not None:
        if event.actor is None or event.actor.lower() != actor.lower():
            return False
    if glob_match(event.kind, pattern) or glob_match(event.message, pattern):
        return True
    if event.data:
        return glob_match(json.dumps(dict(event.data), sort_keys=True), pattern)
    return False


class PendingConfirmation:
    """An outstanding wait: a future settled by a match, a timeout or a cancel."""

    def __init__(
        self,
        pattern: str,
        timeout: float,
        *,
        invert: bool = False,
        actor: str | None = None,
    ) -> None:
        self.pattern = pattern
        self.timeout = timeout
        self.invert = invert
        self.actor = actor
        self.started_at = time.monotonic()
        self._future: Future[LogEvent | None] = Future()
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._subscription: Subscription | None = None
        self._settled = False

    def start(self, stream: EventStream) -> PendingConfirmation:
        with self._lock:
            if self._settled or self._timer is not None:
                msg = "Confirmation wait has already been started"
                raise RuntimeError(msg)
            self._subscription = stream.subscribe(self._on_event)
            self._timer = threading.Timer(self.timeout, self._on_timeout)
            self._timer.daemon = True
            self._timer.start()
        return self

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    def done(self) -> bool:
        return self._future.done()

    def cancelled(self) -> bool:
        return self._future.cancelled()

    def result(self, timeout: float | None = None) -> LogEvent | None:
        """Block until settled.

        Returns the matching event, or ``None`` when an inverted wait ran out
        its timeout without seeing one. Raises :class:`CorrelationTimeout`
        when a normal wait expires and ``CancelledError`` after :meth:`cancel`.
        """

        return self._future.result(timeout)

    def cancel(self) -> bool:
        with self._lock:
            if self._settled:
                return False
            self._settled = True
        self._release()
        self._future.cancel()
        logger.debug("Cancelled wait for '%s'", self.pattern)
        return True

    def _on_event(self, event: LogEvent) -> None:
        if not event_matches(event, self.pattern, self.actor):
            return
        if self._settle(result=event):
            logger.debug("Event matched '%s': %s", self.pattern, event.message)

    def _on_timeout(self) -> None:
        if self.invert:
            self._settle(result=None)
        else:
            self._settle(error=CorrelationTimeout(self.pattern, self.timeout))

    def _settle(
        self,
        *,
        result: LogEvent | None = None,
        error: BaseException | None = None,
    ) -> bool:
        # Listener and timer are gone before any caller wakes.
        with self._lock:
            if self._settled:
                return False
            self._settled = True
        self._release()
        if error is not None:
            self._future.set_exception(error)
        else:
            self._future.set_result(result)
        return True

    def _release(self) -> None:
        timer, subscription = self._timer, self._subscription
        if timer is not None:
            timer.cancel()
        if subscription is not None:
            subscription.unsubscribe()


class CorrelationWaiter:
    """Factory for confirmation waits on one event stream.

    Without a stream (a backend that cannot observe the server log) waits
    still honour their timeout; nothing ever matches, so a normal wait times
    out and an inverted wait succeeds.
    """

    def __init__(self, stream: EventStream | None = None) -> None:
        self._stream = stream if stream is not None else EventStream(history_size=0)

    @property
    def stream(self) -> EventStream:
        return self._stream

    def wait(
        self,
        pattern: str,
        timeout: float,
        *,
        invert: bool = False,
        actor: str | None = None,
    ) -> PendingConfirmation:
        if timeout <= 0:
            msg = f"Timeout must be positive, got {timeout}"
            raise ValueError(msg)
        pending = PendingConfirmation(pattern, timeout, invert=invert, actor=actor)
        logger.debug(
            "Waiting up to %.0fms for %s'%s'",
            timeout * 1000,
            "absence of " if invert else "",
            pattern,
        )
        return pending.start(self._stream)
