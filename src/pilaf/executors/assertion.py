"""Assertions over stored values.

Every assertion reads a value captured earlier in the run; none of them query
the backend again. Each outcome carries a report with the expected value and
the actual one, truncated for display but never dropped.
"""

from __future__ import annotations

import operator
from typing import Any, Callable, Iterator

from ..actions import Action, ActionType, kind_name
from ..backend import Backend
from ..errors import ParameterError
from ..results import ActionResult, ErrorKind
from ..state import StateManager, canonical_json, diff_values, resolve_path, to_plain
from .base import Executor

NUMERIC_CONDITIONS: dict[str, Callable[[float, float], bool]] = {
    "equals": operator.eq,
    "not_equals": operator.ne,
    "less_than": operator.lt,
    "greater_than": operator.gt,
    "less_than_or_equals": operator.le,
    "greater_than_or_equals": operator.ge,
}
CONDITION_SYMBOLS = {
    "==": "equals",
    "=": "equals",
    "!=": "not_equals",
    "<": "less_than",
    ">": "greater_than",
    "<=": "less_than_or_equals",
    ">=": "greater_than_or_equals",
}

ITEM_KEYS = ("item", "id", "name", "type")
ENTITY_KEYS = ("name", "custom_name", "CustomName", "type", "id", "uuid")
COUNT_KEYS = ("count", "Count")

_NOT_STORED = "(not stored)"


def item_key(name: str) -> str:
    name = name.strip().lower()
    return name.split(":", 1)[1] if name.startswith("minecraft:") else name


def _walk(value: Any) -> Iterator[Any]:
    yield value
    if isinstance(value, dict):
        for child in value.values():
            yield from _walk(child)
    elif isinstance(value, list):
        for child in value:
            yield from _walk(child)


def count_items(value: Any, item: str) -> int:
    """Total count of ``item`` in an inventory-like structure or console text."""

    wanted = item_key(item)
    if isinstance(value, str):
        return 1 if wanted in value.lower() else 0
    total = 0
    for node in _walk(value):
        if not isinstance(node, dict):
            continue
        if not any(isinstance(node.get(key), str) and item_key(node[key]) == wanted for key in ITEM_KEYS):
            continue
        count = next((node[key] for key in COUNT_KEYS if isinstance(node.get(key), (int, float))), 1)
        total += int(count)
    return total


def find_entity(value: Any, name: str) -> bool:
    wanted = name.strip().lower()
    if isinstance(value, str):
        return wanted in value.lower()
    for node in _walk(value):
        if isinstance(node, str) and node.lower() == wanted:
            return True
        if isinstance(node, dict):
            for key in ENTITY_KEYS:
                field = node.get(key)
                if isinstance(field, str) and (field.lower() == wanted or item_key(field) == wanted):
                    return True
    return False


def normalise_condition(condition: str) -> str:
    text = condition.strip()
    return CONDITION_SYMBOLS.get(text, text.lower())


class AssertionExecutor(Executor):
    name = "AssertionExecutor"
    assertions = True
    handlers = {
        ActionType.ASSERT_RESPONSE_CONTAINS: "response_contains",
        ActionType.ASSERT_ENTITY_EXISTS: "entity_exists",
        ActionType.ASSERT_ENTITY_MISSING: "entity_missing",
        ActionType.ASSERT_PLAYER_HAS_ITEM: "player_has_item",
        ActionType.ASSERT_JSON_EQUALS: "json_equals",
        ActionType.ASSERT_NUMERIC: "numeric",
    }

    def response_contains(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        source = action.require_text("source")
        expected = action.require_text("contains")
        negated = action.flag("negated")
        actual = self._stored_text(state, source)
        passed = (expected not in actual) if negated else (expected in actual)
        title = f"Response {'does NOT contain' if negated else 'contains'} '{expected}'"
        return self._outcome(passed, title, source, repr(expected), self.shorten(actual))

    def entity_exists(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        return self._entity_presence(action, state, expect_present=True)

    def entity_missing(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        return self._entity_presence(action, state, expect_present=False)

    def player_has_item(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        source = action.require_text("source")
        item = action.require_text("item")
        minimum = self.count(action)
        owner = f"Player '{action.player}'" if action.player else f"'{source}'"
        title = f"{owner} has at least {minimum} x '{item}'"
        if not state.exists(source):
            return self._outcome(False, title, source, f"{item} x{minimum}", _NOT_STORED)
        value = state.retrieve(source)
        found = count_items(value, item)
        actual = f"found {found}; inventory: {self._as_text(value)}"
        return self._outcome(found >= minimum, title, source, f"{item} x{minimum}", actual)

    def json_equals(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        first = action.require_text("state1")
        second = action.text("state2")
        if second is not None:
            expected = state.retrieve(second)
            label = f"'{first}' equals '{second}'"
        elif "expected" in action.params:
            expected = to_plain(action.get("expected"))
            label = f"'{first}' equals the expected value"
        else:
            raise ParameterError("state2", kind_name(action.kind))
        actual = state.retrieve(first)
        changes = diff_values(expected, actual)
        report = self._as_text(actual)
        if changes:
            details = "; ".join(change.describe(self.display_limit) for change in changes[:10])
            if len(changes) > 10:
                details += f"; ... {len(changes) - 10} more"
            report = f"{report}\nDifferences: {details}"
        return self._outcome(not changes, f"JSON equality: {label}", first, self._as_text(expected), report)

    def numeric(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        source = action.require_text("source")
        condition = normalise_condition(action.require_text("condition"))
        compare = NUMERIC_CONDITIONS.get(condition)
        if compare is None:
            msg = f"Unknown condition '{action.get('condition')}' for {kind_name(action.kind)}"
            raise ParameterError("condition", kind_name(action.kind), message=msg)
        expected = action.number("value")
        if expected is None:
            raise ParameterError("value", kind_name(action.kind))
        title = f"'{source}' {condition} {expected:g}"
        if not state.exists(source):
            return self._outcome(False, title, source, f"{condition} {expected:g}", _NOT_STORED)
        value = state.retrieve(source)
        path = action.text("path")
        if path:
            try:
                value = resolve_path(value, path)
            except LookupError as exc:
                return self._outcome(False, title, source, f"{condition} {expected:g}", f"{exc.args[0]}")
        actual = _as_number(value)
        if actual is None:
            return self._outcome(
                False, title, source, f"{condition} {expected:g}", f"non-numeric {self._as_text(value)}"
            )
        return self._outcome(compare(actual, expected), title, source, f"{condition} {expected:g}", f"{actual:g}")

    def _entity_presence(self, action: Action, state: StateManager, *, expect_present: bool) -> ActionResult:
        source = action.require_text("source")
        entity = action.text("entity") or action.require_text("name")
        title = f"Entity '{entity}' {'exists' if expect_present else 'does NOT exist'}"
        expected = "present" if expect_present else "absent"
        if not state.exists(source):
            return self._outcome(False, title, source, f"{entity} {expected}", _NOT_STORED)
        value = state.retrieve(source)
        present = find_entity(value, entity)
        return self._outcome(present == expect_present, title, source, f"{entity} {expected}", self._as_text(value))

    def _stored_text(self, state: StateManager, source: str) -> str:
        if not state.exists(source):
            return "null"
        value = state.retrieve(source)
        return value if isinstance(value, str) else canonical_json(value)

    def _as_text(self, value: Any) -> str:
        text = value if isinstance(value, str) else canonical_json(value)
        return self.shorten(text)

    def _outcome(self, passed: bool, title: str, source: str, expected: str, actual: str) -> ActionResult:
        report = "\n".join(
            [
                f"Assertion: {title}",
                f"Source: {source}",
                f"Result: {'PASSED' if passed else 'FAILED'}",
                f"Expected: {expected}",
                f"Actual: {actual}",
            ]
        )
        if passed:
            return ActionResult.success(report, assertion=True)
        return ActionResult.failure(report, ErrorKind.ASSERTION, assertion=True)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None
