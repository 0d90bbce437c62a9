"""Drive a story through the executor registry and collect a :class:`TestResult`.

The run is a strict sequence of states::

    IDLE -> STORY_LOADED -> BACKEND_INITIALIZING -> SETUP_EXECUTING
         -> STEPS_EXECUTING -> CLEANUP_EXECUTING -> COMPLETED

A failed action in setup or steps aborts the rest of both phases. Cleanup
actions then run best-effort and the backend is always released, including
when its initialization failed.
"""

from __future__ import annotations

import dataclasses
import logging
import re
import time
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Mapping

from .actions import Action, is_assertion, kind_name
from .backend import Backend
from .config import RunConfig
from .dsl import build_run_config, load_story
from .errors import ActionFailedError, BackendInitializationError, ParameterError, StoryAbortedError
from .registry import ExecutorRegistry
from .report import summarize
from .results import ActionResult, ErrorKind, Phase, ResultKind, StepRecord, TestResult
from .state import StateManager
from .story import Story

logger = logging.getLogger(__name__)

StepHook = Callable[[StepRecord], None]

REFERENCE_RE = re.compile(r"^\{([A-Za-z_][\w.-]*)\}$")


class OrchestratorState(str, Enum):
    IDLE = "idle"
    STORY_LOADED = "story_loaded"
    BACKEND_INITIALIZING = "backend_initializing"
    SETUP_EXECUTING = "setup_executing"
    STEPS_EXECUTING = "steps_executing"
    CLEANUP_EXECUTING = "cleanup_executing"
    COMPLETED = "completed"


_PHASE_STATES = {
    Phase.SETUP: OrchestratorState.SETUP_EXECUTING,
    Phase.STEPS: OrchestratorState.STEPS_EXECUTING,
    Phase.CLEANUP: OrchestratorState.CLEANUP_EXECUTING,
}


def resolve_references(value: Any, state: StateManager) -> Any:
    """Replace ``"{name}"`` strings with the stored value called ``name``."""

    if isinstance(value, str):
        match = REFERENCE_RE.match(value)
        if match is None:
            return value
        name = match.group(1)
        if not state.exists(name):
            available = ", ".join(state.keys()) or "(none)"
            msg = f'Variable "{name}" not found. Available variables: {available}'
            raise ParameterError(name, message=msg)
        return state.retrieve(name)
    if isinstance(value, Mapping):
        return {key: resolve_references(item, state) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve_references(item, state) for item in value]
    return value


class StoryOrchestrator:
    """Runs one story at a time against one backend.

    Each run owns a fresh :class:`StateManager`; the backend instance must not
    be shared with another orchestrator running concurrently.
    """

    def __init__(
        self,
        backend: Backend,
        registry: ExecutorRegistry | None = None,
        *,
        config: RunConfig | None = None,
        on_step: StepHook | Iterable[StepHook] | None = None,
    ) -> None:
        self._backend = backend
        self._registry = registry
        self._base_config = config
        if on_step is None:
            self._hooks: list[StepHook] = []
        elif callable(on_step):
            self._hooks = [on_step]
        else:
            self._hooks = list(on_step)
        self.state = OrchestratorState.IDLE
        self.history: list[OrchestratorState] = [OrchestratorState.IDLE]
        self.story: Story | None = None
        self.config = config or RunConfig()

    @property
    def backend(self) -> Backend:
        return self._backend

    def add_step_hook(self, hook: StepHook) -> None:
        self._hooks.append(hook)

    def load(
        self,
        source: Story | Path | str | Mapping[str, Any],
        overrides: Mapping[str, Any] | None = None,
    ) -> Story:
        if self.state not in (OrchestratorState.IDLE, OrchestratorState.COMPLETED):
            msg = f"Cannot load a story while {self.state.value}"
            raise RuntimeError(msg)
        story = source if isinstance(source, Story) else load_story(source)
        self.config = build_run_config(story, overrides, base=self._base_config)
        self.story = story
        self.history = [OrchestratorState.IDLE]
        self.state = OrchestratorState.IDLE
        self._transition(OrchestratorState.STORY_LOADED)
        return story

    def execute(
        self,
        source: Story | Path | str | Mapping[str, Any],
        overrides: Mapping[str, Any] | None = None,
    ) -> TestResult:
        self.load(source, overrides)
        return self.run()

    def run(self) -> TestResult:
        if self.state is not OrchestratorState.STORY_LOADED or self.story is None:
            msg = "No story loaded"
            raise RuntimeError(msg)
        story = self.story
        result = TestResult(story_name=story.name)
        state = StateManager(display_limit=self.config.display_limit, detect_moves=self.config.detect_moves)
        registry = self._registry or ExecutorRegistry(config=self.config)
        self._log(result, f"Starting story: {story.name}", logging.INFO)

        try:
            with self._backend_session(result):
                try:
                    for phase in (Phase.SETUP, Phase.STEPS):
                        self._run_phase(phase, story, registry, state, result)
                except StoryAbortedError as exc:
                    result.fail(str(exc))
                    self._log(result, str(exc), logging.ERROR)
                finally:
                    self._run_phase(Phase.CLEANUP, story, registry, state, result)
        except BackendInitializationError as exc:
            result.fail(str(exc))
            self._log(result, str(exc), logging.ERROR)
        finally:
            self._transition(OrchestratorState.COMPLETED)

        status = "PASSED" if result.success else "FAILED"
        self._log(result, f"Story {story.name} {status} ({result.elapsed_ms:.0f}ms)", logging.INFO)
        self._log(result, summarize(result), logging.DEBUG)
        return result.finalize(state.snapshot())

    @contextmanager
    def _backend_session(self, result: TestResult) -> Iterator[Backend]:
        backend = self._backend
        self._transition(OrchestratorState.BACKEND_INITIALIZING)
        self._log(result, f"Initializing backend '{backend.name}'")
        try:
            backend.initialize()
        except Exception as exc:
            self._release(result)
            raise BackendInitializationError(backend.name, exc) from exc
        try:
            yield backend
        finally:
            self._release(result)

    def _release(self, result: TestResult) -> None:
        if self.state is not OrchestratorState.CLEANUP_EXECUTING:
            self._transition(OrchestratorState.CLEANUP_EXECUTING)
        try:
            self._backend.cleanup()
        except Exception as exc:
            logger.debug("Backend cleanup failed", exc_info=True)
            self._log(result, f"Backend '{self._backend.name}' cleanup failed: {exc}", logging.WARNING)

    def _run_phase(
        self,
        phase: Phase,
        story: Story,
        registry: ExecutorRegistry,
        state: StateManager,
        result: TestResult,
    ) -> None:
        self._transition(_PHASE_STATES[phase])
        actions = story.phase(phase)
        for index, action in enumerate(actions):
            self._log(result, f"{phase.value} {index + 1}/{len(actions)}: {action.label}")
            record, outcome = self._execute(phase, index, action, registry, state, result)
            if record.success:
                continue
            if phase is Phase.CLEANUP:
                self._log(result, f"Cleanup action failed: {kind_name(action.kind)}: {outcome.error}", logging.WARNING)
            elif record.assertion:
                self._log(result, outcome.error or "Assertion failed", logging.WARNING)
            else:
                raise ActionFailedError(action, outcome)

    def _execute(
        self,
        phase: Phase,
        index: int,
        action: Action,
        registry: ExecutorRegistry,
        state: StateManager,
        result: TestResult,
    ) -> tuple[StepRecord, ActionResult]:
        started = time.time()
        try:
            resolved = dataclasses.replace(action, params=resolve_references(action.params, state))
            outcome = registry.execute(resolved, self._backend, state)
        except ParameterError as exc:
            outcome = ActionResult.failure(str(exc), ErrorKind.PARAMETER, assertion=is_assertion(action.kind))
        except Exception as exc:
            logger.exception("Executor raised for %s", action.describe())
            outcome = ActionResult.failure(f"{type(exc).__name__}: {exc}", ErrorKind.BACKEND)
        finished = time.time()

        if outcome.succeeded:
            self._persist(action, outcome, state, result)

        record = StepRecord(
            phase=phase,
            index=index,
            name=action.label,
            kind=kind_name(action.kind),
            player=action.player,
            started_at=started,
            finished_at=finished,
            success=outcome.succeeded,
            response=outcome.response,
            error=outcome.error,
            error_kind=outcome.error_kind,
            assertion=outcome.assertion or is_assertion(action.kind),
            store_as=action.store_as,
        )
        if outcome.comparison is not None:
            record.before = outcome.comparison.before
            record.after = outcome.comparison.after
            record.diff = [operation.to_dict() for operation in outcome.comparison.diff]

        result.record_step(record)
        if outcome.response:
            self._log(result, f"RESPONSE: {outcome.response}")
        if not outcome.succeeded:
            self._log(result, f"{action.label} failed: {outcome.error}", logging.WARNING)
        for hook in self._hooks:
            try:
                hook(record)
            except Exception as exc:
                logger.exception("Step hook %r failed for %s", hook, action.describe())
                result.log(f"Step hook failed for {action.label}: {type(exc).__name__}: {exc}", "WARNING")
        return record, outcome

    def _persist(self, action: Action, outcome: ActionResult, state: StateManager, result: TestResult) -> None:
        if outcome.kind is ResultKind.STORE and outcome.store_key:
            state.store(outcome.store_key, outcome.store_value)
            self._log(result, f"Stored result as \"{outcome.store_key}\"")
            if action.store_as == outcome.store_key:
                return
        if action.store_as:
            state.store(action.store_as, outcome.payload())
            self._log(result, f"Stored result as \"{action.store_as}\"")

    def _transition(self, target: OrchestratorState) -> None:
        logger.debug("Orchestrator %s -> %s", self.state.value, target.value)
        self.state = target
        self.history.append(target)

    def _log(self, result: TestResult, message: str, level: int = logging.DEBUG) -> None:
        if level == logging.DEBUG and self.config.verbose:
            level = logging.INFO
        logger.log(level, message)
        result.log(message, logging.getLevelName(level))
