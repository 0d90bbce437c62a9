from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

from .correlation import default_timeout
from .state import DEFAULT_DISPLAY_LIMIT


@dataclass(slots=True)
class RunConfig:
    """Knobs for one story run. A story's ``config:`` block uses the same keys."""

    display_limit: int = DEFAULT_DISPLAY_LIMIT
    default_wait_ms: int = 1000
    correlation_timeout_ms: int | None = None
    detect_moves: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.display_limit < 0:
            msg = "display_limit must not be negative"
            raise ValueError(msg)
        if self.default_wait_ms < 0:
            msg = "default_wait_ms must not be negative"
            raise ValueError(msg)
        if self.correlation_timeout_ms is not None and self.correlation_timeout_ms <= 0:
            msg = "correlation_timeout_ms must be positive"
            raise ValueError(msg)

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(item.name for item in fields(cls))

    def timeout_for(self, kind: str | None) -> int:
        """Confirmation timeout in milliseconds for an action kind."""

        if self.correlation_timeout_ms is not None:
            return self.correlation_timeout_ms
        return default_timeout(kind)

    def merged(self, values: Mapping[str, Any]) -> RunConfig:
        current = {item.name: getattr(self, item.name) for item in fields(self)}
        current.update(values)
        return RunConfig(**current)
