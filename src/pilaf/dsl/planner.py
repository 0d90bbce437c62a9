from __future__ import annotations

from typing import Any, Mapping

from ..config import RunConfig
from ..errors import StoryValidationError
from ..story import Story
from .loader import snake_case


def build_run_config(
    story: Story,
    overrides: Mapping[str, Any] | None = None,
    *,
    base: RunConfig | None = None,
) -> RunConfig:
    """Merge defaults, then the story's ``config`` block, then caller overrides."""

    values: dict[str, Any] = {}
    values.update(_normalise(story.config, f"story '{story.name}'"))
    if overrides:
        values.update(_normalise(overrides, "overrides"))
    try:
        return (base or RunConfig()).merged(values)
    except (TypeError, ValueError) as exc:
        msg = f"Invalid run configuration for story '{story.name}': {exc}"
        raise StoryValidationError(msg) from exc


def _normalise(values: Mapping[str, Any], origin: str) -> dict[str, Any]:
    known = RunConfig.field_names()
    normalised = {snake_case(str(key)): value for key, value in values.items()}
    unknown = sorted(set(normalised) - known)
    if unknown:
        msg = f"Unknown config key(s) in {origin}: {', '.join(unknown)}"
        raise StoryValidationError(msg)
    return normalised
