from __future__ import annotations

import logging
from typing import Iterable

from .actions import Action, ActionKind, kind_name
from .backend import Backend
from .config import RunConfig
from .executors import (
    AssertionExecutor,
    ClientExecutor,
    CorrelationExecutor,
    EntityExecutor,
    Executor,
    InventoryExecutor,
    PlayerExecutor,
    ServerExecutor,
    StateExecutor,
    WorldExecutor,
    unsupported,
)
from .results import ActionResult
from .state import StateManager

logger = logging.getLogger(__name__)


def default_executors(config: RunConfig | None = None) -> list[Executor]:
    """One instance of every built-in family, sharing ``config``."""

    return [
        PlayerExecutor(config),
        InventoryExecutor(config),
        EntityExecutor(config),
        WorldExecutor(config),
        ClientExecutor(config),
        ServerExecutor(config),
        StateExecutor(config),
        AssertionExecutor(config),
        CorrelationExecutor(config),
    ]


class ExecutorRegistry:
    """Maps action kinds to the executor that serves them.

    Registration is additive. When a kind is already covered the later
    executor takes it over and the override is logged.
    """

    def __init__(
        self,
        executors: Iterable[Executor] | None = None,
        *,
        config: RunConfig | None = None,
    ) -> None:
        self._by_kind: dict[str, Executor] = {}
        for executor in default_executors(config) if executors is None else executors:
            self.register_executor(executor)

    def register_executor(self, executor: Executor) -> None:
        for kind in executor.get_supported_types():
            name = kind_name(kind)
            previous = self._by_kind.get(name)
            if previous is not None and previous is not executor:
                logger.info("Executor %s overrides %s for '%s'", executor.name, previous.name, name)
            self._by_kind[name] = executor

    def get_executor(self, kind: ActionKind) -> Executor | None:
        return self._by_kind.get(kind_name(kind))

    def has_executor(self, kind: ActionKind) -> bool:
        return kind_name(kind) in self._by_kind

    def covered_action_type_count(self) -> int:
        return len(self._by_kind)

    def covered_action_types(self) -> list[str]:
        return sorted(self._by_kind)

    @property
    def executors(self) -> list[Executor]:
        seen: list[Executor] = []
        for executor in self._by_kind.values():
            if not any(executor is known for known in seen):
                seen.append(executor)
        return seen

    def execute(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        executor = self.get_executor(action.kind)
        if executor is None:
            logger.debug("No executor registered for '%s'", kind_name(action.kind))
            return unsupported(action.kind)
        return executor.execute(action, backend, state)
