from __future__ import annotations

from typing import Any

from ..actions import Action, ActionType
from ..backend import Backend
from ..decode import decode_response
from ..results import ActionResult, ErrorKind
from ..state import StateManager, pretty_json, resolve_path
from .base import Executor


class StateExecutor(Executor):
    """Variables: storing, comparing, printing and extracting."""

    name = "StateExecutor"
    handlers = {
        ActionType.STORE_STATE: "store",
        ActionType.COMPARE_STATES: "compare",
        ActionType.PRINT_STORED_STATE: "print_stored",
        ActionType.PRINT_STATE_COMPARISON: "print_comparison",
        ActionType.EXTRACT_WITH_JSONPATH: "extract",
        ActionType.GET_CHAT_HISTORY: "chat_history",
    }

    def store(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        key = action.store_as or action.require_text("variable_name")
        source = action.text("source")
        if source is not None:
            if not state.exists(source):
                return ActionResult.failure(f"No stored value named '{source}'", ErrorKind.PARAMETER)
            value = state.retrieve(source)
        else:
            value = action.require("value")
        return ActionResult.with_state(key, value, f"Stored value in {key}")

    def compare(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        before = action.require_text("state1")
        after = action.require_text("state2")
        return ActionResult.compared(state.compare(before, after))

    def print_stored(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        name = action.require_text("variable_name")
        return ActionResult.success(f"Stored State: {name}\n\n{self._render(state, name)}")

    def print_comparison(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        name = action.require_text("variable_name")
        value = state.retrieve(name)
        lines = [f"State Comparison: {name}", ""]
        if isinstance(value, dict) and isinstance(value.get("diff"), list):
            changes = value["diff"]
            lines.append(f"{len(changes)} change(s)" if changes else "No changes")
            lines.extend(f"  {change.get('op')} {change.get('path') or '(root)'}" for change in changes)
        else:
            lines.append(self._render(state, name))
        return ActionResult.success("\n".join(lines))

    def extract(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        source = action.require_text("source")
        path = action.text("json_path") or action.require_text("path")
        if not state.exists(source):
            return ActionResult.failure(f"No stored value named '{source}'", ErrorKind.PARAMETER)
        document: Any = state.retrieve(source)
        if isinstance(document, str):
            decoded = decode_response(document)
            if decoded.decoded:
                document = decoded.value
        try:
            value = resolve_path(document, path)
        except ValueError as exc:
            return ActionResult.failure(str(exc), ErrorKind.PARAMETER)
        except LookupError as exc:
            return ActionResult.failure(f"Path '{path}' not found in '{source}': {exc.args[0]}", ErrorKind.VALIDATION)
        return self.fetched(action, value)

    def chat_history(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        return self.fetched(action, backend.get_chat_history(action.player))

    def _render(self, state: StateManager, name: str) -> str:
        if not state.exists(name):
            return "(null or not found)"
        return self.shorten(pretty_json(state.retrieve(name)))
