from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from .actions import Action
from .results import Phase


@dataclass(frozen=True, slots=True)
class Story:
    """One test scenario: ordered setup, steps and cleanup actions."""

    name: str
    setup: tuple[Action, ...] = ()
    steps: tuple[Action, ...] = ()
    cleanup: tuple[Action, ...] = ()
    description: str | None = None
    backend: str | None = None
    config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for phase in ("setup", "steps", "cleanup"):
            object.__setattr__(self, phase, tuple(getattr(self, phase)))

    def phase(self, phase: Phase) -> tuple[Action, ...]:
        return getattr(self, phase.value)

    def actions(self) -> Iterator[tuple[Phase, Action]]:
        for phase in Phase:
            for action in self.phase(phase):
                yield phase, action

    def __len__(self) -> int:
        return len(self.setup) + len(self.steps) + len(self.cleanup)
