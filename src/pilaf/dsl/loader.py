from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Mapping

import yaml

from ..actions import Action, ActionKind, ActionType
from ..errors import StoryValidationError
from ..story import Story
from .schema import validate_story

logger = logging.getLogger(__name__)

KIND_ALIASES: dict[str, ActionType] = {
    "has_item": ActionType.ASSERT_PLAYER_HAS_ITEM,
    "assert_has_item": ActionType.ASSERT_PLAYER_HAS_ITEM,
    "assert_contains": ActionType.ASSERT_RESPONSE_CONTAINS,
    "assert_equals": ActionType.ASSERT_JSON_EQUALS,
    "assert_entity": ActionType.ASSERT_ENTITY_EXISTS,
    "rcon": ActionType.EXECUTE_RCON_COMMAND,
    "execute_command": ActionType.EXECUTE_RCON_COMMAND,
    "command": ActionType.SERVER_COMMAND,
    "chat": ActionType.SEND_CHAT_MESSAGE,
    "send_chat": ActionType.SEND_CHAT_MESSAGE,
    "op": ActionType.MAKE_OPERATOR,
    "teleport": ActionType.TELEPORT_PLAYER,
    "get_player_inventory": ActionType.GET_INVENTORY,
    "get_equipment": ActionType.GET_PLAYER_EQUIPMENT,
    "store": ActionType.STORE_STATE,
    "compare": ActionType.COMPARE_STATES,
    "extract": ActionType.EXTRACT_WITH_JSONPATH,
    "wait_for_chat": ActionType.WAIT_FOR_CHAT_MESSAGE,
}

KEY_ALIASES = {
    "wait": "duration",
    "arguments": "args",
}

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")


def snake_case(key: str) -> str:
    return _CAMEL_RE.sub(r"_\1", key).replace("-", "_").lower()


def resolve_kind(raw: str) -> ActionKind:
    """Map a kind name from a story onto a built-in kind.

    Matching ignores case and accepts camelCase or dashes. Names that are
    neither built-in nor an alias are returned unchanged so that executors
    registered at runtime can serve them.
    """

    normalised = snake_case(raw.strip()).replace(" ", "_")
    try:
        return ActionType(normalised)
    except ValueError:
        pass
    alias = KIND_ALIASES.get(normalised)
    if alias is not None:
        return alias
    logger.debug("Action kind '%s' is not built in; keeping it verbatim", raw)
    return raw


def parse_action(record: Mapping[str, Any]) -> Action:
    # "type" names the kind only when "action" is absent; otherwise it is a parameter.
    kind_key = "action" if "action" in record else "type"
    raw_kind = record.get(kind_key)
    if not isinstance(raw_kind, str) or not raw_kind.strip():
        msg = f"Action record has no kind: {dict(record)!r}"
        raise StoryValidationError(msg)

    params: dict[str, Any] = {}
    store_as: str | None = None
    for key, value in record.items():
        if key == kind_key:
            continue
        normalised = KEY_ALIASES.get(snake_case(str(key)), snake_case(str(key)))
        if normalised == "store_as":
            store_as = str(value) if value else None
        else:
            params[normalised] = value

    name = record.get("name")
    return Action(
        kind=resolve_kind(raw_kind),
        params=params,
        store_as=store_as,
        name=str(name) if name else None,
    )


def _session_actions(session: Mapping[str, Any], *, connect: bool) -> list[Action]:
    kind = ActionType.CONNECT_PLAYER if connect else ActionType.DISCONNECT_PLAYER
    verb = "Connect" if connect else "Disconnect"
    return [
        Action(kind, {"player": player["username"]}, name=f"{verb} {player.get('name') or player['username']}")
        for player in session.get("players") or ()
    ]


def _phase(value: Any, *, connect: bool) -> list[Action]:
    if value is None:
        return []
    if isinstance(value, Mapping):
        return _session_actions(value, connect=connect)
    return [parse_action(record) for record in value]


def story_from_dict(data: Mapping[str, Any]) -> Story:
    validate_story(dict(data))
    if "cleanup" in data and "teardown" in data:
        msg = "A story may declare either 'cleanup' or 'teardown', not both"
        raise StoryValidationError(msg)

    setup_raw = data.get("setup")
    cleanup_raw = data.get("cleanup", data.get("teardown"))
    # A session-style teardown disconnects the players a session-style setup connected.
    if isinstance(cleanup_raw, Mapping) and isinstance(setup_raw, Mapping) and "players" not in cleanup_raw:
        cleanup_raw = {"players": setup_raw.get("players") or []}

    return Story(
        name=data["name"],
        description=data.get("description"),
        backend=data.get("backend"),
        config=dict(data.get("config") or {}),
        setup=_phase(setup_raw, connect=True),
        steps=_phase(data.get("steps"), connect=True),
        cleanup=_phase(cleanup_raw, connect=False),
    )


def load_story(source: Path | str | Mapping[str, Any]) -> Story:
    """Load a story from a mapping, a YAML or JSON file, or YAML text.

    A :class:`~pathlib.Path` is read from disk; a plain string is parsed as
    the document itself.
    """

    if isinstance(source, Path):
        text = source.read_text(encoding="utf-8")
        origin = str(source)
    elif isinstance(source, str):
        text = source
        origin = "<string>"
    else:
        return story_from_dict(source)

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"Failed to parse story from {origin}: {exc}"
        raise StoryValidationError(msg) from exc
    if not isinstance(data, Mapping):
        msg = f"Story document in {origin} must be a mapping, got {type(data).__name__}"
        raise StoryValidationError(msg)
    story = story_from_dict(data)
    logger.info("Loaded story '%s' from %s (%d actions)", story.name, origin, len(story))
    return story
