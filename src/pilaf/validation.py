from __future__ import annotations

import re
from dataclasses import dataclass, field

from .actions import Action

ERROR_PATTERNS: tuple[str, ...] = (
    "No entity was found",
    "No player was found",
    "No block was found",
    "Test failed",
    "Unknown command",
    "Invalid",
    "Error",
    "Failed to",
    "Could not find",
    "does not exist",
    "is not valid",
    "Incorrect argument",
)


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    reason: str | None = None
    errors: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(True)

    @classmethod
    def failed(cls, errors: list[str]) -> ValidationResult:
        return cls(False, errors[0], tuple(errors))


def find_error_pattern(response: str | None) -> str | None:
    """Return the first well-known console error phrase found in ``response``."""

    if not response:
        return None
    for pattern in ERROR_PATTERNS:
        if pattern in response:
            return pattern
    return None


def validate_response(response: str | None, action: Action) -> ValidationResult:
    """Check a command response against the expectations declared on ``action``.

    Error phrase detection runs first and short-circuits, unless the action
    sets ``fail_on_error: false``. The remaining checks are all evaluated and
    reported together; the first one becomes the primary reason.
    """

    text = response or ""

    if action.flag("fail_on_error", True):
        matched = find_error_pattern(text)
        if matched is not None:
            return ValidationResult(
                False,
                f"Response contains error: '{matched}'",
                (f"Detected error pattern: {matched}",),
            )

    errors: list[str] = []

    expect = action.get("expect")
    if expect is not None and text != str(expect):
        errors.append(f"Expected exact: '{expect}' but got: '{text}'")

    contains = action.get("expect_contains")
    if contains is not None and str(contains) not in text:
        errors.append(f"Expected response to contain: '{contains}'")

    pattern = action.get("expect_matches")
    if pattern is not None:
        try:
            if not re.search(str(pattern), text):
                errors.append(f"Expected response to match pattern: '{pattern}'")
        except re.error as exc:
            errors.append(f"Invalid regex pattern: '{pattern}' - {exc}")

    not_contains = action.get("expect_not_contains")
    if not_contains is not None and str(not_contains) in text:
        errors.append(f"Expected response NOT to contain: '{not_contains}'")

    if errors:
        return ValidationResult.failed(errors)
    return ValidationResult.ok()
