"""A simulated server that satisfies :class:`~pilaf.backend.Backend` in memory.

Useful for dry runs of a story and for tests: it keeps players, entities and
world settings in plain dictionaries, answers a useful subset of console
commands the way a vanilla server does and publishes the matching log lines
on its own :class:`~pilaf.events.EventStream`.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping

from .backend import Backend, Position, parse_position
from .errors import BackendError
from .events import EventStream, LogLineParser

logger = logging.getLogger(__name__)

SPAWN = {"x": 0.5, "y": 64.0, "z": 0.5}
TIME_NAMES = {"day": 1000, "noon": 6000, "sunset": 12000, "night": 13000, "midnight": 18000, "sunrise": 23000}
WEATHER_TYPES = ("clear", "rain", "thunder")
MAX_PLAYERS = 20


def item_id(name: str) -> str:
    name = name.strip().lower()
    return name if ":" in name else f"minecraft:{name}"


def display_name(identifier: str) -> str:
    return identifier.split(":", 1)[-1].replace("_", " ").title()


@dataclass(slots=True)
class SimulatedPlayer:
    name: str
    position: dict[str, float] = field(default_factory=lambda: dict(SPAWN))
    health: float = 20.0
    inventory: list[dict[str, Any]] = field(default_factory=list)
    equipment: dict[str, str | None] = field(
        default_factory=lambda: {"mainhand": None, "offhand": None, "head": None, "chest": None, "legs": None, "feet": None}
    )
    gamemode: str = "survival"
    operator: bool = False
    spawn_point: dict[str, float] | None = None
    looking_at: Any = None


@dataclass(slots=True)
class SimulatedEntity:
    name: str
    entity_type: str
    position: dict[str, float]
    health: float = 20.0
    uuid: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.entity_type,
            "position": dict(self.position),
            "health": self.health,
            "uuid": self.uuid,
        }


class InMemoryBackend(Backend):
    name = "memory"

    def __init__(self, *, stream: EventStream | None = None, parser: LogLineParser | None = None) -> None:
        self._stream = stream or EventStream()
        self._parser = parser or LogLineParser()
        self._lock = threading.RLock()
        self.players: dict[str, SimulatedPlayer] = {}
        self.entities: dict[str, SimulatedEntity] = {}
        self.blocks: dict[tuple[float, float, float], str] = {}
        self.world_time = 1000
        self.weather = "clear"
        self.chat: list[dict[str, Any]] = []
        self.commands: list[str] = []
        self.initialized = False
        self.initialize_calls = 0
        self.cleanup_calls = 0

    @property
    def events(self) -> EventStream:
        return self._stream

    # Lifecycle

    def initialize(self) -> None:
        self.initialize_calls += 1
        self.initialized = True
        self.emit("Done (0.001s)! For help, type \"help\"")

    def cleanup(self) -> None:
        self.cleanup_calls += 1
        with self._lock:
            for player in list(self.players):
                self.disconnect_player(player)
            self.entities.clear()
        self.initialized = False

    def emit(self, message: str, *, thread: str = "Server thread", level: str = "INFO") -> None:
        """Publish ``message`` as if the server had written it to its log."""

        clock = time.strftime("%H:%M:%S")
        event = self._parser.parse(f"[{clock}] [{thread}/{level}]: {message}")
        if event is not None:
            self._stream.publish(event)

    # Player lifecycle

    def connect_player(self, player: str) -> str:
        with self._lock:
            if player in self.players:
                return f"{player} is already connected"
            self.players[player] = SimulatedPlayer(player)
        self.emit(f"{player} joined the game")
        return f"{player} joined the game"

    def disconnect_player(self, player: str) -> str:
        with self._lock:
            self._player(player)
            del self.players[player]
        self.emit(f"{player} left the game")
        return f"{player} left the game"

    def get_player_position(self, player: str) -> dict[str, float]:
        with self._lock:
            return dict(self._player(player).position)

    def get_player_health(self, player: str) -> float:
        with self._lock:
            return self._player(player).health

    def move_player(self, player: str, destination: Position) -> dict[str, float]:
        target = parse_position(destination)
        with self._lock:
            state = self._player(player)
            origin = state.position
            state.position = target
        self.emit(
            f"Teleported {player} from {origin['x']}, {origin['y']}, {origin['z']} "
            f"to {target['x']}, {target['y']}, {target['z']}"
        )
        return dict(target)

    def send_chat(self, player: str, message: str) -> None:
        with self._lock:
            self._player(player)
            self.chat.append({"player": player, "message": message, "timestamp": time.time()})
        self.emit(f"<{player}> {message}", thread="Async Chat Thread - #0")

    def execute_player_command(self, player: str, command: str) -> str:
        text = command.strip().lstrip("/")
        with self._lock:
            self._player(player)
        self.emit(f"{player} issued server command: /{text}")
        resolved = " ".join(player if token in ("@s", "@p") else token for token in text.split())
        return self.execute_rcon_with_capture(resolved)

    def get_chat_history(self, player: str | None = None) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(entry) for entry in self.chat if player is None or entry["player"] == player]

    # Inventory

    def give_item(self, player: str, item: str, count: int = 1) -> str:
        identifier = item_id(item)
        with self._lock:
            inventory = self._player(player).inventory
            for stack in inventory:
                if stack["item"] == identifier:
                    stack["count"] += count
                    break
            else:
                used = {stack["slot"] for stack in inventory}
                slot = next(index for index in range(len(inventory) + 1) if index not in used)
                inventory.append({"slot": slot, "item": identifier, "count": count})
        return f"Gave {count} [{display_name(identifier)}] to {player}"

    def remove_item(self, player: str, item: str, count: int | None = None) -> str:
        identifier = item_id(item)
        removed = 0
        with self._lock:
            state = self._player(player)
            kept: list[dict[str, Any]] = []
            for stack in state.inventory:
                if stack["item"] != identifier or (count is not None and removed >= count):
                    kept.append(stack)
                    continue
                take = stack["count"] if count is None else min(stack["count"], count - removed)
                removed += take
                if stack["count"] > take:
                    kept.append({**stack, "count": stack["count"] - take})
            state.inventory = kept
        if not removed:
            return f"No items were found on player {player}"
        return f"Removed {removed} item(s) from player {player}"

    def clear_inventory(self, player: str) -> str:
        with self._lock:
            state = self._player(player)
            removed = sum(stack["count"] for stack in state.inventory)
            state.inventory = []
        if not removed:
            return f"No items were found on player {player}"
        return f"Removed {removed} item(s) from player {player}"

    def equip_item(self, player: str, item: str, slot: str = "mainhand") -> str:
        identifier = item_id(item)
        with self._lock:
            state = self._player(player)
            if slot not in state.equipment:
                msg = f"Invalid equipment slot: {slot}"
                raise BackendError(msg)
            state.equipment[slot] = identifier
        return f"{player} equipped {display_name(identifier)} in {slot}"

    def get_inventory(self, player: str) -> dict[str, Any]:
        with self._lock:
            state = self._player(player)
            return {
                "player": player,
                "items": [dict(stack) for stack in sorted(state.inventory, key=lambda stack: stack["slot"])],
            }

    def get_equipment(self, player: str) -> dict[str, Any]:
        with self._lock:
            return dict(self._player(player).equipment)

    # Entities

    def spawn_entity(
        self,
        entity_type: str,
        name: str | None = None,
        position: Position | None = None,
    ) -> dict[str, Any]:
        kind = item_id(entity_type)
        with self._lock:
            label = name or f"{kind.split(':', 1)[-1]}_{len(self.entities) + 1}"
            entity = SimulatedEntity(label, kind, parse_position(position) if position else dict(SPAWN))
            self.entities[label] = entity
            return entity.to_dict()

    def get_entities(self, near: str | None = None, radius: float | None = None) -> list[dict[str, Any]]:
        with self._lock:
            entities = list(self.entities.values())
            if near is not None and radius is not None:
                centre = self._player(near).position
                entities = [entity for entity in entities if _distance(entity.position, centre) <= radius]
            return [entity.to_dict() for entity in entities]

    def get_entity(self, name: str) -> dict[str, Any] | None:
        with self._lock:
            entity = self.entities.get(name)
            return entity.to_dict() if entity else None

    def get_entity_health(self, name: str) -> float:
        with self._lock:
            return self._entity(name).health

    def set_entity_health(self, name: str, health: float) -> str:
        with self._lock:
            entity = self._entity(name)
            entity.health = max(0.0, float(health))
            if entity.health == 0:
                del self.entities[name]
        if health <= 0:
            self.emit(f"{name} died")
        return f"Set health of {name} to {max(0.0, float(health))}"

    def kill_entity(self, name: str) -> str:
        with self._lock:
            if name in self.players:
                self.players[name].health = 0.0
            elif name in self.entities:
                del self.entities[name]
            else:
                msg = f"No entity was found: {name}"
                raise BackendError(msg)
        self.emit(f"{name} died")
        return f"Killed {name}"

    def remove_all_test_entities(self) -> int:
        with self._lock:
            count = len(self.entities)
            self.entities.clear()
        return count

    # World

    def get_world_time(self) -> int:
        return self.world_time

    def set_world_time(self, value: int | str) -> str:
        if isinstance(value, str) and not value.lstrip("-").isdigit():
            if value.lower() not in TIME_NAMES:
                msg = f"Invalid time: {value}"
                raise BackendError(msg)
            ticks = TIME_NAMES[value.lower()]
        else:
            ticks = int(value)
        self.world_time = ticks % 24000
        self.emit(f"Changing the time to {self.world_time}")
        return f"Set the time to {self.world_time}"

    def get_weather(self) -> str:
        return self.weather

    def set_weather(self, weather: str) -> str:
        value = weather.lower()
        if value not in WEATHER_TYPES:
            msg = f"Invalid weather: {weather}"
            raise BackendError(msg)
        self.weather = value
        self.emit(f"Changing the weather to {value}")
        return f"Set the weather to {value}"

    # Client interaction

    def use_item(self, player: str, target: str | None = None) -> str:
        with self._lock:
            held = self._player(player).equipment["mainhand"]
        item = display_name(held) if held else "empty hand"
        if target:
            return f"{player} used {item} on {target}"
        return f"{player} used {item}"

    def attack_entity(self, player: str, entity: str) -> str:
        with self._lock:
            self._player(player)
            target = self._entity(entity)
            target.health = max(0.0, target.health - 1.0)
            killed = target.health == 0
            if killed:
                del self.entities[entity]
        if killed:
            self.emit(f"{entity} was slain by {player}")
            return f"{player} killed {entity}"
        return f"{player} attacked {entity}"

    def look_at(self, player: str, target: Position | str) -> str:
        with self._lock:
            state = self._player(player)
            if isinstance(target, str) and target in self.entities:
                state.looking_at = target
            else:
                state.looking_at = parse_position(target)
        return f"{player} is looking at {state.looking_at}"

    # Console

    def execute_server_command(self, command: str) -> str:
        return self.execute_rcon_with_capture(command)

    def execute_rcon_with_capture(self, command: str) -> str:
        text = command.strip().lstrip("/")
        self.commands.append(text)
        logger.debug("rcon> %s", text)
        args = text.split()
        if not args:
            return "Unknown command: (empty)"
        handler = getattr(self, f"_cmd_{args[0].lower()}", None)
        if handler is None:
            return f"Unknown command: {args[0]}"
        try:
            return handler(args[1:])
        except (IndexError, ValueError) as exc:
            return f"Incorrect argument for command: {text} ({exc})"

    def _cmd_list(self, args: list[str]) -> str:
        names = ", ".join(self.players)
        return f"There are {len(self.players)} of a max of {MAX_PLAYERS} players online: {names}"

    def _cmd_give(self, args: list[str]) -> str:
        if args[0] not in self.players:
            return "No player was found"
        return self.give_item(args[0], args[1], int(args[2]) if len(args) > 2 else 1)

    def _cmd_clear(self, args: list[str]) -> str:
        if args[0] not in self.players:
            return "No player was found"
        if len(args) > 1:
            return self.remove_item(args[0], args[1], int(args[2]) if len(args) > 2 else None)
        return self.clear_inventory(args[0])

    def _cmd_time(self, args: list[str]) -> str:
        if args[0] == "set":
            return self.set_world_time(args[1])
        if args[0] == "add":
            return self.set_world_time(self.world_time + int(args[1]))
        if args[0] == "query":
            return f"The time is {self.world_time}"
        msg = f"unknown time operation {args[0]!r}"
        raise ValueError(msg)

    def _cmd_weather(self, args: list[str]) -> str:
        if args[0].lower() not in WEATHER_TYPES:
            return f"Invalid weather: {args[0]}"
        return self.set_weather(args[0])

    def _cmd_kill(self, args: list[str]) -> str:
        target = args[0] if args else "@e"
        if not target.startswith("@e"):
            if target not in self.players and target not in self.entities:
                return "No entity was found"
            return self.kill_entity(target)
        selector = target[3:-1] if target.startswith("@e[") else ""
        filters = dict(part.split("=", 1) for part in selector.split(",") if "=" in part)
        wanted = filters.get("type")
        with self._lock:
            doomed = [
                name
                for name, entity in self.entities.items()
                if wanted is None
                or wanted == "!player"
                or entity.entity_type == item_id(wanted)
            ]
            for name in doomed:
                del self.entities[name]
        if not doomed:
            return "No entity was found"
        return f"Killed {len(doomed)} entities"

    def _cmd_tp(self, args: list[str]) -> str:
        position = self.move_player(args[0], parse_position(args[1:4]))
        return f"Teleported {args[0]} to {position['x']}, {position['y']}, {position['z']}"

    _cmd_teleport = _cmd_tp

    def _cmd_op(self, args: list[str]) -> str:
        with self._lock:
            self._player(args[0]).operator = True
        return f"Made {args[0]} a server operator"

    def _cmd_gamemode(self, args: list[str]) -> str:
        mode, player = args[0].lower(), args[1]
        if mode not in ("survival", "creative", "adventure", "spectator"):
            return f"Invalid game mode: {mode}"
        with self._lock:
            self._player(player).gamemode = mode
        self.emit(f"The game mode has been updated to {mode}")
        return f"Set {player}'s game mode to {mode.title()} Mode"

    def _cmd_spawnpoint(self, args: list[str]) -> str:
        position = parse_position(args[1:4])
        with self._lock:
            self._player(args[0]).spawn_point = position
        return f"Set spawn point to {position['x']}, {position['y']}, {position['z']} in minecraft:overworld for {args[0]}"

    def _cmd_setblock(self, args: list[str]) -> str:
        position = parse_position(args[0:3])
        self.blocks[(position["x"], position["y"], position["z"])] = item_id(args[3])
        return f"Changed the block at {args[0]}, {args[1]}, {args[2]}"

    def _cmd_summon(self, args: list[str]) -> str:
        position = parse_position(args[1:4]) if len(args) >= 4 else None
        entity = self.spawn_entity(args[0], position=position)
        return f"Summoned new {display_name(entity['type'])}"

    def _cmd_say(self, args: list[str]) -> str:
        message = " ".join(args)
        self.emit(f"[Server] {message}")
        return ""

    def _cmd_data(self, args: list[str]) -> str:
        if args[:2] != ["get", "entity"]:
            msg = "only 'data get entity' is supported"
            raise ValueError(msg)
        name = args[2]
        with self._lock:
            if name in self.players:
                return f"{name} has the following entity data: {_player_nbt(self.players[name])}"
            if name in self.entities:
                return f"{name} has the following entity data: {_entity_nbt(self.entities[name])}"
        return "No entity was found"

    def _player(self, name: str) -> SimulatedPlayer:
        try:
            return self.players[name]
        except KeyError:
            msg = f"No player was found: {name}"
            raise BackendError(msg) from None

    def _entity(self, name: str) -> SimulatedEntity:
        try:
            return self.entities[name]
        except KeyError:
            msg = f"No entity was found: {name}"
            raise BackendError(msg) from None


def _distance(first: Mapping[str, float], second: Mapping[str, float]) -> float:
    return sum((first[axis] - second[axis]) ** 2 for axis in ("x", "y", "z")) ** 0.5


def _pos_nbt(position: Mapping[str, float]) -> str:
    return f"[{position['x']}d,{position['y']}d,{position['z']}d]"


def _player_nbt(player: SimulatedPlayer) -> str:
    items = ",".join(
        f'{{Slot:{stack["slot"]}b,id:"{stack["item"]}",Count:{stack["count"]}b}}'
        for stack in player.inventory
    )
    return f"{{Health:{player.health}f,Pos:{_pos_nbt(player.position)},Inventory:[{items}]}}"


def _entity_nbt(entity: SimulatedEntity) -> str:
    return f'{{Health:{entity.health}f,Pos:{_pos_nbt(entity.position)},id:"{entity.entity_type}",CustomName:\'{entity.name}\'}}'
