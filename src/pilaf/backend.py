from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, NoReturn

from .errors import BackendError
from .events import EventStream

Position = Mapping[str, float]


class Backend(ABC):
    """Capability interface between executors and the system under test.

    Only the lifecycle hooks and the two raw command channels are mandatory.
    The remaining operations raise :class:`BackendError` unless a concrete
    backend provides them, which executors report as an ordinary failure.
    """

    name = "backend"

    @property
    def events(self) -> EventStream | None:
        """Log events observed on the server, when this backend can see them."""

        return None

    @abstractmethod
    def initialize(self) -> None: ...

    @abstractmethod
    def cleanup(self) -> None: ...

    @abstractmethod
    def execute_server_command(self, command: str) -> str: ...

    @abstractmethod
    def execute_rcon_with_capture(self, command: str) -> str: ...

    # Player lifecycle

    def connect_player(self, player: str) -> str:
        self._unsupported("connect_player")

    def disconnect_player(self, player: str) -> str:
        self._unsupported("disconnect_player")

    def get_player_position(self, player: str) -> dict[str, float]:
        self._unsupported("get_player_position")

    def get_player_health(self, player: str) -> float:
        self._unsupported("get_player_health")

    def move_player(self, player: str, destination: Position) -> dict[str, float]:
        self._unsupported("move_player")

    def send_chat(self, player: str, message: str) -> None:
        self._unsupported("send_chat")

    def execute_player_command(self, player: str, command: str) -> str:
        self._unsupported("execute_player_command")

    def get_chat_history(self, player: str | None = None) -> list[dict[str, Any]]:
        self._unsupported("get_chat_history")

    # Inventory

    def give_item(self, player: str, item: str, count: int = 1) -> str:
        self._unsupported("give_item")

    def remove_item(self, player: str, item: str, count: int | None = None) -> str:
        self._unsupported("remove_item")

    def equip_item(self, player: str, item: str, slot: str = "mainhand") -> str:
        self._unsupported("equip_item")

    def get_inventory(self, player: str) -> dict[str, Any]:
        self._unsupported("get_inventory")

    def get_equipment(self, player: str) -> dict[str, Any]:
        self._unsupported("get_equipment")

    # Entities

    def spawn_entity(
        self,
        entity_type: str,
        name: str | None = None,
        position: Position | None = None,
    ) -> dict[str, Any]:
        self._unsupported("spawn_entity")

    def get_entities(self, near: str | None = None, radius: float | None = None) -> list[dict[str, Any]]:
        self._unsupported("get_entities")

    def get_entity(self, name: str) -> dict[str, Any] | None:
        self._unsupported("get_entity")

    def get_entity_health(self, name: str) -> float:
        self._unsupported("get_entity_health")

    def set_entity_health(self, name: str, health: float) -> str:
        self._unsupported("set_entity_health")

    def kill_entity(self, name: str) -> str:
        self._unsupported("kill_entity")

    def remove_all_test_entities(self) -> int:
        self._unsupported("remove_all_test_entities")

    # World

    def get_world_time(self) -> int:
        self._unsupported("get_world_time")

    def set_world_time(self, value: int | str) -> str:
        self._unsupported("set_world_time")

    def get_weather(self) -> str:
        self._unsupported("get_weather")

    def set_weather(self, weather: str) -> str:
        self._unsupported("set_weather")

    # Client interaction

    def use_item(self, player: str, target: str | None = None) -> str:
        self._unsupported("use_item")

    def attack_entity(self, player: str, entity: str) -> str:
        self._unsupported("attack_entity")

    def look_at(self, player: str, target: Position | str) -> str:
        self._unsupported("look_at")

    def _unsupported(self, operation: str) -> NoReturn:
        msg = f"Backend '{self.name}' does not support {operation}"
        raise BackendError(msg)


def parse_position(value: Position | str | list | tuple) -> dict[str, float]:
    """Accept ``{"x":..,"y":..,"z":..}``, ``"x y z"``, ``"x, y, z"`` or a 3-item sequence."""

    if isinstance(value, Mapping):
        try:
            return {axis: float(value[axis]) for axis in ("x", "y", "z")}
        except (KeyError, TypeError, ValueError) as exc:
            msg = f"Invalid position: {value!r}"
            raise BackendError(msg) from exc
    parts = value.replace(",", " ").split() if isinstance(value, str) else list(value)
    if len(parts) != 3:
        msg = f"Invalid position: {value!r}"
        raise BackendError(msg)
    try:
        x, y, z = (float(part) for part in parts)
    except (TypeError, ValueError) as exc:
        msg = f"Invalid position: {value!r}"
        raise BackendError(msg) from exc
    return {"x": x, "y": y, "z": z}


def format_position(position: Position) -> str:
    return " ".join(f"{position[axis]:g}" for axis in ("x", "y", "z"))
