from __future__ import annotations

from .loader import KIND_ALIASES, load_story, parse_action, resolve_kind, story_from_dict
from .planner import build_run_config
from .schema import STORY_SCHEMA, validate_story

__all__ = [
    "KIND_ALIASES",
    "STORY_SCHEMA",
    "build_run_config",
    "load_story",
    "parse_action",
    "resolve_kind",
    "story_from_dict",
    "validate_story",
]
