"""Server log events and the fan-out stream that carries them."""

from __future__ import annotations

import logging
import re
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

logger = logging.getLogger(__name__)

Listener = Callable[["LogEvent"], None]
Extractor = Callable[["re.Match[str]"], dict[str, Any]]

METADATA_RE = re.compile(r"^\[(\d{2}:\d{2}:\d{2})\]\s+\[([^\]]+)/(INFO|WARN|ERROR|DEBUG)\]:\s*")
CLOCK_RE = re.compile(r"^\[(\d{2}:\d{2}:\d{2})\]\s*")


@dataclass(frozen=True, slots=True)
class LogEvent:
    message: str
    timestamp: float = field(default_factory=time.time)
    actor: str | None = None
    kind: str | None = None
    data: Mapping[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "kind": self.kind,
            "data": dict(self.data) if self.data is not None else None,
        }


class Subscription:
    """Handle returned by :meth:`EventStream.subscribe`; unsubscribing twice is harmless."""

    def __init__(self, stream: EventStream, listener: Listener) -> None:
        self._stream = stream
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, event: LogEvent) -> None:
        if self._active:
            self._listener(event)

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._stream._discard(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.unsubscribe()


class EventStream:
    """Thread-safe fan-out of log events to every active subscriber.

    Events are never buffered for late subscribers; a bounded history is
    kept only for inspection.
    """

    def __init__(self, history_size: int = 1000) -> None:
        self._subscriptions: list[Subscription] = []
        self._history: deque[LogEvent] = deque(maxlen=history_size)
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        subscription = Subscription(self, listener)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: LogEvent) -> None:
        with self._lock:
            self._history.append(event)
            targets = list(self._subscriptions)
        for subscription in targets:
            try:
                subscription.deliver(event)
            except Exception:
                logger.exception("Event listener failed on %r", event.message)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def recent(self, limit: int | None = None) -> list[LogEvent]:
        with self._lock:
            events = list(self._history)
        if limit is not None:
            return events[-limit:] if limit > 0 else []
        return events

    def _discard(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)


@dataclass(slots=True)
class LogPattern:
    name: str
    regex: re.Pattern[str]
    extract: Extractor
    priority: int


def _player(match: re.Match[str]) -> dict[str, Any]:
    return {"player": match.group(1)}


def _death(cause: str) -> Extractor:
    def extract(match: re.Match[str]) -> dict[str, Any]:
        return {"player": match.group(1), "cause": cause}

    return extract


def _teleport(match: re.Match[str]) -> dict[str, Any]:
    coords = [float(value) for value in match.groups()[1:]]
    return {
        "player": match.group(1),
        "from": {"x": coords[0], "y": coords[1], "z": coords[2]},
        "to": {"x": coords[3], "y": coords[4], "z": coords[5]},
    }


_NUMBER = r"([\d.-]+)"

DEFAULT_PATTERNS: tuple[tuple[str, str, Extractor, int], ...] = (
    (
        "movement.teleport",
        rf"Teleported\s+(\w+)\s+from\s+{_NUMBER},\s*{_NUMBER},\s*{_NUMBER}\s+to\s+{_NUMBER},\s*{_NUMBER},\s*{_NUMBER}",
        _teleport,
        10,
    ),
    (
        "entity.death.slain",
        r"(\w+)\s+was\s+slain\s+by\s+(.+)",
        lambda m: {"player": m.group(1), "killer": m.group(2).strip(), "cause": "entity_attack"},
        8,
    ),
    ("entity.death.fall", r"(\w+)\s+fell\s+from\s+a\s+high\s+place", _death("fall"), 8),
    (
        "entity.death.fire",
        r"(\w+)\s+(?:burned\s+to\s+death|was\s+burnt\s+to\s+a\s+crisp)",
        _death("fire"),
        8,
    ),
    (
        "entity.death.lava",
        r"(\w+)\s+(?:tried\s+to\s+swim\s+in\s+lava|was\s+killed\s+by\s+(?:Magma|Lava)(?:\s+Block)?)",
        _death("lava"),
        8,
    ),
    ("entity.death.drown", r"(\w+)\s+drowned", _death("drown"), 8),
    ("entity.death.generic", r"(\w+)\s+died", _death("unknown"), 7),
    ("chat.message", r"^<([^>]+)>\s+(.*)$", lambda m: {"player": m.group(1), "message": m.group(2)}, 9),
    ("entity.join", r"([^\s]+)\s+joined\s+the\s+game", _player, 6),
    (
        "entity.leave",
        r"(\w+)\s+(?:lost\s+connection:\s*(.+)|left\s+the\s+game)",
        lambda m: {"player": m.group(1), "reason": (m.group(2) or "Left the game").strip()},
        6,
    ),
    (
        "command.issued",
        r"(\w+)\s+issued\s+server\s+command:\s*(.+)",
        lambda m: {"player": m.group(1), "command": m.group(2).strip()},
        6,
    ),
    (
        "entity.spawn",
        r"UUID\s+of\s+player\s+(\w+)\s+is\s+([a-f0-9-]{36})",
        lambda m: {"player": m.group(1), "uuid": m.group(2)},
        6,
    ),
    ("world.time", r"Changing\s+the\s+time\s+to\s+(\d+)", lambda m: {"time": int(m.group(1))}, 4),
    ("world.weather", r"Changing\s+the\s+weather\s+to\s+(\w+)", lambda m: {"weather": m.group(1)}, 4),
    (
        "world.gamemode",
        r"(?:The\s+game\s+mode|Gamemode)\s+has\s+been\s+updated\s+to\s+(\w+)",
        lambda m: {"gamemode": m.group(1)},
        4,
    ),
    ("world.save.complete", r"Saved\s+the\s+game", lambda m: {}, 4),
    (
        "status.start",
        r"Starting\s+minecraft\s+server\s+version\s+(.+)",
        lambda m: {"version": m.group(1).strip()},
        2,
    ),
    ("status.done", r"Done\s+\([^)]+\)!\s+For\s+help,\s+type\s+\"help\"", lambda m: {}, 2),
)


class LogLineParser:
    """Turn raw server log lines into :class:`LogEvent` records.

    Patterns are tried from the highest priority down; patterns with equal
    priority keep their registration order. A line that matches no pattern
    still becomes an event, with ``kind=None``.
    """

    def __init__(self, *, include_defaults: bool = True) -> None:
        self._patterns: list[LogPattern] = []
        if include_defaults:
            for name, regex, extract, priority in DEFAULT_PATTERNS:
                self.add_pattern(name, regex, extract, priority)

    @property
    def pattern_names(self) -> list[str]:
        return [pattern.name for pattern in self._patterns]

    def add_pattern(
        self,
        name: str,
        regex: str | re.Pattern[str],
        extract: Extractor | None = None,
        priority: int = 0,
    ) -> None:
        if any(pattern.name == name for pattern in self._patterns):
            msg = f"Pattern '{name}' is already registered"
            raise ValueError(msg)
        compiled = re.compile(regex) if isinstance(regex, str) else regex
        entry = LogPattern(name, compiled, extract or (lambda match: {}), priority)
        position = len(self._patterns)
        for index, existing in enumerate(self._patterns):
            if existing.priority < priority:
                position = index
                break
        self._patterns.insert(position, entry)

    def remove_pattern(self, name: str) -> bool:
        for index, pattern in enumerate(self._patterns):
            if pattern.name == name:
                del self._patterns[index]
                return True
        return False

    def parse(self, line: str, *, timestamp: float | None = None) -> LogEvent | None:
        text = line.strip()
        if not text:
            return None

        data: dict[str, Any] = {}
        body = text
        metadata = METADATA_RE.match(text)
        if metadata:
            data.update(clock=metadata.group(1), thread=metadata.group(2), level=metadata.group(3))
            body = text[metadata.end():]
        else:
            clock = CLOCK_RE.match(text)
            if clock:
                data["clock"] = clock.group(1)
                body = text[clock.end():]

        kind: str | None = None
        for pattern in self._patterns:
            match = pattern.regex.search(body)
            if match:
                kind = pattern.name
                data.update(pattern.extract(match))
                break

        return LogEvent(
            message=body,
            timestamp=timestamp if timestamp is not None else time.time(),
            actor=data.get("player"),
            kind=kind,
            data=data,
        )


class EventPump(threading.Thread):
    """Background thread that drains a line source into an event stream."""

    def __init__(
        self,
        source: Iterable[str],
        stream: EventStream,
        parser: LogLineParser | None = None,
    ) -> None:
        super().__init__(daemon=True)
        self._source = source
        self._stream = stream
        self._parser = parser or LogLineParser()
        self._stop_event = threading.Event()
        self.published = 0

    def run(self) -> None:
        for line in self._source:
            if self._stop_event.is_set():
                break
            event = self._parser.parse(line)
            if event is None:
                continue
            self._stream.publish(event)
            self.published += 1

    def stop(self) -> None:
        self._stop_event.set()
