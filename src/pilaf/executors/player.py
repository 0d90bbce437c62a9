from __future__ import annotations

from ..actions import Action, ActionType
from ..backend import Backend, format_position
from ..results import ActionResult, ErrorKind
from ..state import StateManager
from .base import Executor

GAMEMODES = ("survival", "creative", "adventure", "spectator")


class PlayerExecutor(Executor):
    """Player lifecycle, movement and player-scoped commands."""

    name = "PlayerExecutor"
    handlers = {
        ActionType.CONNECT_PLAYER: "connect",
        ActionType.DISCONNECT_PLAYER: "disconnect",
        ActionType.MAKE_OPERATOR: "make_operator",
        ActionType.GET_PLAYER_POSITION: "get_position",
        ActionType.GET_PLAYER_HEALTH: "get_health",
        ActionType.MOVE_PLAYER: "move",
        ActionType.TELEPORT_PLAYER: "teleport",
        ActionType.KILL_PLAYER: "kill",
        ActionType.SET_SPAWN_POINT: "set_spawn_point",
        ActionType.GAMEMODE_CHANGE: "change_gamemode",
        ActionType.EXECUTE_PLAYER_COMMAND: "player_command",
        ActionType.EXECUTE_PLAYER_RAW: "player_raw",
        ActionType.SEND_CHAT_MESSAGE: "send_chat",
    }

    def connect(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        backend.connect_player(player)
        return ActionResult.success(f"Connected player {player}")

    def disconnect(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        backend.disconnect_player(player)
        return ActionResult.success(f"Disconnected player {player}")

    def make_operator(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        backend.execute_server_command(f"op {player}")
        return ActionResult.success(f"Made {player} an operator")

    def get_position(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        position = backend.get_player_position(action.require_text("player"))
        return self.fetched(action, position)

    def get_health(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        health = backend.get_player_health(action.require_text("player"))
        return self.fetched(action, health, f"health={health}")

    def move(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        destination = self.position(action, "destination", "position", "location")
        backend.move_player(player, destination)
        return ActionResult.success(f"Moved {player} to {format_position(destination)}")

    def teleport(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        destination = self.position(action, "destination", "location", "position")
        response = backend.execute_server_command(f"tp {player} {format_position(destination)}")
        return ActionResult.success(response or "Player teleported")

    def kill(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        response = backend.execute_server_command(f"kill {player}")
        return ActionResult.success(response or "Player killed")

    def set_spawn_point(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        command = f"spawnpoint {player}"
        location = self.position(action, "location", "position", "destination", required=False)
        if location is not None:
            command += f" {format_position(location)}"
        response = backend.execute_server_command(command)
        return ActionResult.success(response or "Spawn point set")

    def change_gamemode(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        mode = (action.text("gamemode") or action.text("mode") or "survival").lower()
        if mode not in GAMEMODES:
            return ActionResult.failure(
                f"Unknown gamemode '{mode}', expected one of {', '.join(GAMEMODES)}", ErrorKind.PARAMETER
            )
        response = backend.execute_server_command(f"gamemode {mode} {player}")
        return ActionResult.success(response or "Gamemode changed")

    def player_command(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        command = action.require_text("command")
        response = backend.execute_player_command(player, command)
        if action.store_as:
            return ActionResult.with_state(action.store_as, response, f"Executed command: {command}")
        return ActionResult.success(f"Executed command: {command}")

    def player_raw(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        response = backend.execute_player_command(action.require_text("player"), action.require_text("command"))
        return ActionResult.success(response or "")

    def send_chat(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        message = action.require_text("message")
        backend.send_chat(action.require_text("player"), message)
        return ActionResult.success(f"Sent chat: {message}")
