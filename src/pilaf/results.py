from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from .state import ComparisonResult


class ResultKind(str, Enum):
    PLAIN = "plain"
    STORE = "store"
    EXTRACTION = "extraction"
    COMPARISON = "comparison"
    FAILURE = "failure"


class ErrorKind(str, Enum):
    """Why an action failed; lets callers tell a rejected command from an unconfirmed one."""

    PARAMETER = "parameter"
    BACKEND = "backend"
    CORRELATION_TIMEOUT = "correlation_timeout"
    UNEXPECTED_EVENT = "unexpected_event"
    VALIDATION = "validation"
    ASSERTION = "assertion"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Immutable outcome of one executed action.

    Exactly one payload variant is populated for a success: a plain response,
    a ``(store_key, store_value)`` pair, an extraction (raw response plus the
    decoded structure) or a comparison. Failures carry only an error message,
    optionally alongside the raw response that caused them.
    """

    kind: ResultKind
    response: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    store_key: str | None = None
    store_value: Any = None
    extracted_json: str | None = None
    parsed_data: Any = None
    comparison: ComparisonResult | None = None
    assertion: bool = False

    def __post_init__(self) -> None:
        payloads = {
            ResultKind.STORE: self.store_key is not None,
            ResultKind.EXTRACTION: self.extracted_json is not None or self.parsed_data is not None,
            ResultKind.COMPARISON: self.comparison is not None,
        }
        if self.kind is ResultKind.FAILURE:
            if not self.error:
                msg = "A failure result requires an error message"
                raise ValueError(msg)
            if any(payloads.values()):
                msg = "A failure result cannot carry a stored, extracted or compared payload"
                raise ValueError(msg)
            return
        if self.error is not None or self.error_kind is not None:
            msg = "A successful result cannot carry an error"
            raise ValueError(msg)
        for variant, present in payloads.items():
            if present and variant is not self.kind:
                msg = f"{self.kind.value} result cannot carry a {variant.value} payload"
                raise ValueError(msg)
        if self.kind in payloads and not payloads[self.kind]:
            msg = f"{self.kind.value} result is missing its payload"
            raise ValueError(msg)

    @classmethod
    def success(cls, response: str = "", *, assertion: bool = False) -> ActionResult:
        return cls(ResultKind.PLAIN, response=response, assertion=assertion)

    @classmethod
    def with_state(cls, key: str, value: Any, response: str | None = None) -> ActionResult:
        return cls(ResultKind.STORE, response=response, store_key=key, store_value=value)

    @classmethod
    def extracted(
        cls,
        response: str,
        parsed_data: Any,
        extracted_json: str | None = None,
    ) -> ActionResult:
        return cls(
            ResultKind.EXTRACTION,
            response=response,
            parsed_data=parsed_data,
            extracted_json=extracted_json,
        )

    @classmethod
    def compared(cls, comparison: ComparisonResult) -> ActionResult:
        return cls(ResultKind.COMPARISON, response=comparison.summary(), comparison=comparison)

    @classmethod
    def failure(
        cls,
        message: str,
        kind: ErrorKind = ErrorKind.BACKEND,
        *,
        response: str | None = None,
        assertion: bool = False,
    ) -> ActionResult:
        return cls(
            ResultKind.FAILURE,
            response=response,
            error=message,
            error_kind=kind,
            assertion=assertion,
        )

    @property
    def succeeded(self) -> bool:
        return self.kind is not ResultKind.FAILURE

    @property
    def has_changes(self) -> bool:
        return self.comparison is not None and self.comparison.has_changes

    def payload(self) -> Any:
        """The value persisted when the action declares ``store_as``."""

        if self.kind is ResultKind.STORE:
            return self.store_value
        if self.kind is ResultKind.EXTRACTION:
            return self.parsed_data
        if self.comparison is not None:
            return self.comparison.to_dict()
        return self.response

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "success": self.succeeded}
        if self.response is not None:
            data["response"] = self.response
        if self.error is not None:
            data["error"] = self.error
            data["error_kind"] = self.error_kind.value if self.error_kind else None
        if self.kind is ResultKind.STORE:
            data["store_key"] = self.store_key
            data["store_value"] = self.store_value
        elif self.kind is ResultKind.EXTRACTION:
            data["parsed_data"] = self.parsed_data
        elif self.kind is ResultKind.COMPARISON and self.comparison is not None:
            data["comparison"] = self.comparison.to_dict()
        if self.assertion:
            data["assertion"] = True
        return data


class Phase(str, Enum):
    SETUP = "setup"
    STEPS = "steps"
    CLEANUP = "cleanup"


@dataclass(slots=True)
class StepRecord:
    phase: Phase
    index: int
    name: str
    kind: str
    player: str | None
    started_at: float
    finished_at: float
    success: bool
    response: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    assertion: bool = False
    store_as: str | None = None
    before: Any = None
    after: Any = None
    diff: list[dict[str, Any]] | None = None

    @property
    def duration_ms(self) -> float:
        return (self.finished_at - self.started_at) * 1000

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["phase"] = self.phase.value
        data["error_kind"] = self.error_kind.value if self.error_kind else None
        data["duration_ms"] = round(self.duration_ms, 3)
        return data


@dataclass(slots=True)
class LogEntry:
    timestamp: float
    level: str
    message: str


@dataclass(slots=True)
class TestResult:
    """Aggregated outcome of one story run.

    The orchestrator mutates it while the story runs and finalizes it when
    the run completes; any later mutation raises ``RuntimeError``.
    """

    __test__ = False

    story_name: str
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    steps: list[StepRecord] = field(default_factory=list)
    actions_executed: int = 0
    assertions_passed: int = 0
    assertions_failed: int = 0
    logs: list[LogEntry] = field(default_factory=list)
    error: str | None = None
    state: dict[str, Any] = field(default_factory=dict)
    finalized: bool = False

    @property
    def success(self) -> bool:
        return self.assertions_failed == 0 and self.error is None

    @property
    def elapsed_ms(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.time()
        return (end - self.started_at) * 1000

    def log(self, message: str, level: str = "INFO") -> None:
        self._ensure_open()
        self.logs.append(LogEntry(timestamp=time.time(), level=level, message=message))

    def record_step(self, step: StepRecord) -> None:
        self._ensure_open()
        self.steps.append(step)
        self.actions_executed += 1
        if step.assertion:
            if step.success:
                self.assertions_passed += 1
            else:
                self.assertions_failed += 1

    def fail(self, message: str) -> None:
        self._ensure_open()
        if self.error is None:
            self.error = message

    def finalize(self, state: dict[str, Any] | None = None) -> TestResult:
        self._ensure_open()
        if state is not None:
            self.state = state
        self.finished_at = time.time()
        self.finalized = True
        return self

    def failed_steps(self) -> list[StepRecord]:
        return [step for step in self.steps if not step.success]

    def to_dict(self) -> dict[str, Any]:
        return {
            "story": self.story_name,
            "success": self.success,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "elapsed_ms": round(self.elapsed_ms, 3),
            "actions_executed": self.actions_executed,
            "assertions_passed": self.assertions_passed,
            "assertions_failed": self.assertions_failed,
            "error": self.error,
            "steps": [step.to_dict() for step in self.steps],
            "logs": [asdict(entry) for entry in self.logs],
            "state": self.state,
        }

    def _ensure_open(self) -> None:
        if self.finalized:
            msg = f"TestResult for '{self.story_name}' is finalized"
            raise RuntimeError(msg)
