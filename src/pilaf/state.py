"""Run-scoped variable store and the structural diff engine behind ``compare_states``."""

from __future__ import annotations

import copy
import dataclasses
import json
import logging
import re
from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import Enum
from typing import Any, Iterator, Literal, Mapping, Sequence

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_LIMIT = 500

PathPart = str | int
DiffOp = Literal["add", "remove", "replace", "move"]

_PATH_TOKEN_RE = re.compile(r"\.([^.\[\]]+)|\[(\d+)\]")


def truncate(text: str, limit: int = DEFAULT_DISPLAY_LIMIT) -> str:
    """Shorten ``text`` for display, keeping an explicit marker with the full length."""

    if limit <= 0 or len(text) <= limit:
        return text
    return f"{text[:limit]}...truncated, {len(text)} total chars"


def to_plain(value: Any) -> Any:
    """Convert ``value`` into JSON-compatible data.

    Mappings become dicts with string keys, sequences and sets become lists,
    dataclasses are expanded and enums are replaced by their values. Anything
    else that JSON cannot represent is stored as its string form.
    """

    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, Enum):
        return to_plain(value.value)
    if isinstance(value, Mapping):
        return {str(key): to_plain(item) for key, item in value.items()}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_plain(dataclasses.asdict(value))
    if isinstance(value, (set, frozenset)):
        return sorted((to_plain(item) for item in value), key=canonical_json)
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return str(value)


def canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def pretty_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, indent=2, ensure_ascii=False)


def format_path(parts: Sequence[PathPart]) -> str:
    """Render a path: the root is empty, keys append ``.key``, indices ``[i]``."""

    rendered: list[str] = []
    for part in parts:
        if isinstance(part, int):
            rendered.append(f"[{part}]")
        else:
            rendered.append(f".{part}")
    return "".join(rendered)


def parse_path(path: str) -> list[PathPart]:
    text = path.strip()
    if text.startswith("$"):
        text = text[1:]
    if text and text[0] not in ".[":
        text = "." + text
    parts: list[PathPart] = []
    position = 0
    for match in _PATH_TOKEN_RE.finditer(text):
        if match.start() != position:
            break
        key, index = match.groups()
        parts.append(int(index) if index is not None else key)
        position = match.end()
    if position != len(text):
        msg = f"Invalid path expression: {path!r}"
        raise ValueError(msg)
    return parts


def resolve_path(value: Any, path: str) -> Any:
    """Follow ``path`` into ``value``; raises ``LookupError`` when it does not exist."""

    current = value
    for part in parse_path(path):
        if isinstance(part, int):
            if not isinstance(current, list) or part >= len(current):
                msg = f"No element {format_path([part])} in {path!r}"
                raise IndexError(msg)
            current = current[part]
        else:
            if not isinstance(current, dict) or part not in current:
                msg = f"No key '{part}' in {path!r}"
                raise KeyError(msg)
            current = current[part]
    return current


@dataclass(frozen=True, slots=True)
class DiffOperation:
    op: DiffOp
    path: str
    old: Any = None
    new: Any = None
    from_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"op": self.op, "path": self.path}
        if self.op in ("remove", "replace"):
            data["old_value"] = self.old
        if self.op in ("add", "replace", "move"):
            data["value"] = self.new
        if self.op == "move":
            data["from"] = self.from_path
        return data

    def describe(self, limit: int = DEFAULT_DISPLAY_LIMIT) -> str:
        location = self.path or "(root)"
        if self.op == "add":
            return f"add {location}: {_display(self.new, limit)}"
        if self.op == "remove":
            return f"remove {location}: {_display(self.old, limit)}"
        if self.op == "move":
            return f"move {self.from_path} -> {location}: {_display(self.new, limit)}"
        return f"replace {location}: {_display(self.old, limit)} -> {_display(self.new, limit)}"


def _display(value: Any, limit: int) -> str:
    return truncate(canonical_json(value), limit)


def diff_values(before: Any, after: Any, *, detect_moves: bool = False) -> list[DiffOperation]:
    """Compute a patch-style diff between two JSON-compatible values.

    Maps are compared by key. Arrays are compared index by index; with
    ``detect_moves`` they are aligned first, so insertions and deletions in
    the middle of an array do not cascade into replacements, and a removed
    element that reappears elsewhere is reported as a single ``move``.
    """

    operations: list[DiffOperation] = []
    _diff(before, after, [], operations, detect_moves)
    return operations


def _diff(
    before: Any,
    after: Any,
    parts: list[PathPart],
    out: list[DiffOperation],
    detect_moves: bool,
) -> None:
    if isinstance(before, dict) and isinstance(after, dict):
        for key in sorted(set(before) | set(after)):
            child = [*parts, key]
            if key not in after:
                out.append(DiffOperation("remove", format_path(child), old=before[key]))
            elif key not in before:
                out.append(DiffOperation("add", format_path(child), new=after[key]))
            else:
                _diff(before[key], after[key], child, out, detect_moves)
        return

    if isinstance(before, list) and isinstance(after, list):
        if detect_moves:
            _diff_aligned(before, after, parts, out, detect_moves)
        else:
            _diff_indexed(before, after, parts, out, detect_moves)
        return

    if not _leaf_equal(before, after):
        out.append(DiffOperation("replace", format_path(parts), old=before, new=after))


def _leaf_equal(left: Any, right: Any) -> bool:
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _diff_indexed(
    before: list[Any],
    after: list[Any],
    parts: list[PathPart],
    out: list[DiffOperation],
    detect_moves: bool,
) -> None:
    common = min(len(before), len(after))
    for index in range(common):
        _diff(before[index], after[index], [*parts, index], out, detect_moves)
    for index in range(common, len(after)):
        out.append(DiffOperation("add", format_path([*parts, index]), new=after[index]))
    # Highest index first so the removals stay valid when applied in order.
    for index in reversed(range(common, len(before))):
        out.append(DiffOperation("remove", format_path([*parts, index]), old=before[index]))


def _diff_aligned(
    before: list[Any],
    after: list[Any],
    parts: list[PathPart],
    out: list[DiffOperation],
    detect_moves: bool,
) -> None:
    # Removals and replacements are addressed by their index in the old
    # array, additions by their index in the new one.
    old_keys = [canonical_json(item) for item in before]
    new_keys = [canonical_json(item) for item in after]
    matcher = SequenceMatcher(a=old_keys, b=new_keys, autojunk=False)

    removed: list[int] = []
    added: list[int] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        paired = min(i2 - i1, j2 - j1) if tag == "replace" else 0
        for offset in range(paired):
            _diff(before[i1 + offset], after[j1 + offset], [*parts, i1 + offset], out, detect_moves)
        removed.extend(range(i1 + paired, i2))
        added.extend(range(j1 + paired, j2))

    for new_index in list(added):
        candidates = [index for index in removed if old_keys[index] == new_keys[new_index]]
        if not candidates:
            continue
        old_index = min(candidates)
        removed.remove(old_index)
        added.remove(new_index)
        out.append(
            DiffOperation(
                "move",
                format_path([*parts, new_index]),
                old=before[old_index],
                new=after[new_index],
                from_path=format_path([*parts, old_index]),
            )
        )

    for index in sorted(removed, reverse=True):
        out.append(DiffOperation("remove", format_path([*parts, index]), old=before[index]))
    for index in added:
        out.append(DiffOperation("add", format_path([*parts, index]), new=after[index]))


@dataclass(frozen=True, slots=True)
class ComparisonResult:
    """Derived view of two stored snapshots and the diff between them."""

    before_name: str
    after_name: str
    before: Any
    after: Any
    diff: tuple[DiffOperation, ...]

    @property
    def has_changes(self) -> bool:
        return bool(self.diff)

    @property
    def before_json(self) -> str:
        return pretty_json(self.before)

    @property
    def after_json(self) -> str:
        return pretty_json(self.after)

    @property
    def diff_json(self) -> str:
        return pretty_json([operation.to_dict() for operation in self.diff])

    def summary(self) -> str:
        if self.has_changes:
            return f"{len(self.diff)} change(s) between '{self.before_name}' and '{self.after_name}'"
        return f"No changes between '{self.before_name}' and '{self.after_name}'"

    def describe(self, limit: int = DEFAULT_DISPLAY_LIMIT) -> str:
        lines = [self.summary()]
        lines.extend(f"  {operation.describe(limit)}" for operation in self.diff)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "before": self.before,
            "after": self.after,
            "diff": [operation.to_dict() for operation in self.diff],
            "has_changes": self.has_changes,
        }


class StateManager:
    """Named values captured during a single story run.

    Values are snapshotted into JSON-compatible form when stored, so later
    mutation of the original object never leaks into the store. Storing
    under an existing name replaces the previous value.
    """

    def __init__(
        self,
        *,
        display_limit: int = DEFAULT_DISPLAY_LIMIT,
        detect_moves: bool = False,
    ) -> None:
        self.display_limit = display_limit
        self.detect_moves = detect_moves
        self._values: dict[str, Any] = {}

    def store(self, name: str, value: Any) -> None:
        if not name:
            msg = "State name must not be empty"
            raise ValueError(msg)
        snapshot = to_plain(value)
        self._values[name] = snapshot
        logger.debug("Stored %r = %s", name, truncate(canonical_json(snapshot), self.display_limit))

    def retrieve(self, name: str) -> Any:
        if name not in self._values:
            return None
        return copy.deepcopy(self._values[name])

    def retrieve_json(self, name: str) -> str:
        return pretty_json(self._values.get(name))

    def exists(self, name: str) -> bool:
        return name in self._values

    def remove(self, name: str) -> bool:
        return self._values.pop(name, _ABSENT) is not _ABSENT

    def clear(self) -> None:
        self._values.clear()

    def keys(self) -> list[str]:
        return list(self._values)

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._values)

    def compare(self, before_name: str, after_name: str) -> ComparisonResult:
        before = self.retrieve(before_name)
        after = self.retrieve(after_name)
        operations = diff_values(before, after, detect_moves=self.detect_moves)
        result = ComparisonResult(
            before_name=before_name,
            after_name=after_name,
            before=before,
            after=after,
            diff=tuple(operations),
        )
        logger.debug("%s", result.summary())
        return result

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._values))


_ABSENT = object()
