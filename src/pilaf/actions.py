from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from .errors import ParameterError


class ActionType(str, Enum):
    """Built-in action kinds. Executors may register additional string kinds."""

    # Player lifecycle
    CONNECT_PLAYER = "connect_player"
    DISCONNECT_PLAYER = "disconnect_player"
    MAKE_OPERATOR = "make_operator"
    GET_PLAYER_POSITION = "get_player_position"
    GET_PLAYER_HEALTH = "get_player_health"
    MOVE_PLAYER = "move_player"
    TELEPORT_PLAYER = "teleport_player"
    KILL_PLAYER = "kill_player"
    SET_SPAWN_POINT = "set_spawn_point"
    GAMEMODE_CHANGE = "gamemode_change"
    EXECUTE_PLAYER_COMMAND = "execute_player_command"
    EXECUTE_PLAYER_RAW = "execute_player_raw"
    SEND_CHAT_MESSAGE = "send_chat_message"

    # Inventory
    GIVE_ITEM = "give_item"
    REMOVE_ITEM = "remove_item"
    EQUIP_ITEM = "equip_item"
    GET_INVENTORY = "get_inventory"
    GET_PLAYER_EQUIPMENT = "get_player_equipment"
    CLEAR_INVENTORY = "clear_inventory"

    # Entities
    SPAWN_ENTITY = "spawn_entity"
    GET_ENTITIES = "get_entities"
    GET_ENTITY_BY_NAME = "get_entity_by_name"
    GET_ENTITY_HEALTH = "get_entity_health"
    SET_ENTITY_HEALTH = "set_entity_health"
    KILL_ENTITY = "kill_entity"
    REMOVE_ENTITIES = "remove_entities"

    # World / environment
    GET_WORLD_TIME = "get_world_time"
    SET_TIME = "set_time"
    GET_WEATHER = "get_weather"
    SET_WEATHER = "set_weather"

    # Client interaction
    USE_ITEM = "use_item"
    ATTACK_ENTITY = "attack_entity"
    LOOK_AT = "look_at"

    # Server commands
    SERVER_COMMAND = "server_command"
    EXECUTE_RCON_COMMAND = "execute_rcon_command"
    EXECUTE_RCON_WITH_CAPTURE = "execute_rcon_with_capture"
    WAIT = "wait"
    CLEAR_ENTITIES = "clear_entities"
    PLACE_BLOCK = "place_block"
    GET_SERVER_INFO = "get_server_info"

    # State
    STORE_STATE = "store_state"
    COMPARE_STATES = "compare_states"
    PRINT_STORED_STATE = "print_stored_state"
    PRINT_STATE_COMPARISON = "print_state_comparison"
    EXTRACT_WITH_JSONPATH = "extract_with_jsonpath"
    GET_CHAT_HISTORY = "get_chat_history"

    # Assertions
    ASSERT_RESPONSE_CONTAINS = "assert_response_contains"
    ASSERT_ENTITY_EXISTS = "assert_entity_exists"
    ASSERT_ENTITY_MISSING = "assert_entity_missing"
    ASSERT_PLAYER_HAS_ITEM = "assert_player_has_item"
    ASSERT_JSON_EQUALS = "assert_json_equals"
    ASSERT_NUMERIC = "assert_numeric"

    # Cross-channel correlation
    WAIT_FOR_EVENT = "wait_for_event"
    WAIT_FOR_CHAT_MESSAGE = "wait_for_chat_message"
    EXECUTE_WITH_CONFIRMATION = "execute_with_confirmation"


ActionKind = ActionType | str

ASSERTION_TYPES: frozenset[ActionType] = frozenset(
    {
        ActionType.ASSERT_RESPONSE_CONTAINS,
        ActionType.ASSERT_ENTITY_EXISTS,
        ActionType.ASSERT_ENTITY_MISSING,
        ActionType.ASSERT_PLAYER_HAS_ITEM,
        ActionType.ASSERT_JSON_EQUALS,
        ActionType.ASSERT_NUMERIC,
    }
)
_ASSERTION_NAMES = frozenset(kind.value for kind in ASSERTION_TYPES)


def kind_name(kind: ActionKind) -> str:
    if isinstance(kind, ActionType):
        return kind.value
    return str(kind)


def is_assertion(kind: ActionKind) -> bool:
    return kind_name(kind) in _ASSERTION_NAMES


@dataclass(frozen=True, slots=True)
class Action:
    """A single declarative instruction: a kind tag plus a flat parameter bag."""

    kind: ActionKind
    params: Mapping[str, Any] = field(default_factory=dict)
    store_as: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def label(self) -> str:
        return self.name or kind_name(self.kind)

    @property
    def player(self) -> str | None:
        return self.text("player")

    def get(self, key: str, default: Any = None) -> Any:
        return self.params.get(key, default)

    def text(self, key: str) -> str | None:
        """Return a parameter as a string, treating empty values as absent."""

        value = self.params.get(key)
        if value is None:
            return None
        text = str(value)
        return text if text else None

    def require(self, key: str) -> Any:
        value = self.params.get(key)
        if value is None or (isinstance(value, str) and not value):
            raise ParameterError(key, kind_name(self.kind))
        return value

    def require_text(self, key: str) -> str:
        return str(self.require(key))

    def number(self, key: str, default: float | None = None) -> float | None:
        value = self.params.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError) as exc:
            msg = f"Parameter '{key}' for {kind_name(self.kind)} must be numeric, got {value!r}"
            raise ParameterError(key, kind_name(self.kind), message=msg) from exc

    def flag(self, key: str, default: bool = False) -> bool:
        value = self.params.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    def describe(self) -> str:
        details = ", ".join(f"{key}={value!r}" for key, value in self.params.items())
        return f"{kind_name(self.kind)}({details})"
