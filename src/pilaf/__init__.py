"""Pilaf: declarative stories for driving a game server and verifying outcomes."""

from .actions import ASSERTION_TYPES, Action, ActionType, is_assertion, kind_name
from .backend import Backend
from .config import RunConfig
from .correlation import CorrelationWaiter, PendingConfirmation, glob_match
from .decode import DecodeResult, DecodeStatus, decode_response
from .errors import (
    ActionFailedError,
    BackendError,
    BackendInitializationError,
    CorrelationTimeout,
    ParameterError,
    PilafError,
    StoryAbortedError,
    StoryValidationError,
    UnsupportedActionError,
)
from .events import EventPump, EventStream, LogEvent, LogLineParser
from .memory import InMemoryBackend
from .orchestrator import OrchestratorState, StoryOrchestrator
from .registry import ExecutorRegistry, default_executors
from .report import summarize, write_json_report
from .results import ActionResult, ErrorKind, Phase, ResultKind, StepRecord, TestResult
from .state import ComparisonResult, DiffOperation, StateManager, diff_values
from .story import Story

__all__ = [
    "ASSERTION_TYPES",
    "Action",
    "ActionFailedError",
    "ActionResult",
    "ActionType",
    "Backend",
    "BackendError",
    "BackendInitializationError",
    "ComparisonResult",
    "CorrelationTimeout",
    "CorrelationWaiter",
    "DecodeResult",
    "DecodeStatus",
    "DiffOperation",
    "ErrorKind",
    "EventPump",
    "EventStream",
    "ExecutorRegistry",
    "InMemoryBackend",
    "LogEvent",
    "LogLineParser",
    "OrchestratorState",
    "ParameterError",
    "PendingConfirmation",
    "Phase",
    "PilafError",
    "ResultKind",
    "RunConfig",
    "StateManager",
    "StepRecord",
    "Story",
    "StoryAbortedError",
    "StoryOrchestrator",
    "StoryValidationError",
    "TestResult",
    "UnsupportedActionError",
    "decode_response",
    "default_executors",
    "diff_values",
    "glob_match",
    "is_assertion",
    "kind_name",
    "summarize",
    "write_json_report",
]
