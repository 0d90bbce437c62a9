from __future__ import annotations

from ..actions import Action, ActionType
from ..backend import Backend
from ..results import ActionResult
from ..state import StateManager
from .base import Executor


class InventoryExecutor(Executor):
    name = "InventoryExecutor"
    handlers = {
        ActionType.GIVE_ITEM: "give",
        ActionType.REMOVE_ITEM: "remove",
        ActionType.EQUIP_ITEM: "equip",
        ActionType.GET_INVENTORY: "get_inventory",
        ActionType.GET_PLAYER_EQUIPMENT: "get_equipment",
        ActionType.CLEAR_INVENTORY: "clear",
    }

    def give(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        item = action.require_text("item")
        count = self.count(action)
        response = backend.give_item(player, item, count)
        return ActionResult.success(response or f"Gave {count} {item} to {player}")

    def remove(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        item = action.require_text("item")
        count = action.number("count")
        response = backend.remove_item(player, item, None if count is None else int(count))
        return ActionResult.success(response or f"Removed {item} from {player}")

    def equip(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        item = action.require_text("item")
        slot = action.text("slot") or "mainhand"
        response = backend.equip_item(player, item, slot)
        return ActionResult.success(response or f"Equipped {item} in {slot}")

    def get_inventory(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        return self.fetched(action, backend.get_inventory(action.require_text("player")))

    def get_equipment(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        return self.fetched(action, backend.get_equipment(action.require_text("player")))

    def clear(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        command = f"clear {player}"
        item = action.text("item")
        if item:
            command += f" {item}"
        response = backend.execute_server_command(command)
        return ActionResult.success(response or f"Cleared inventory of {player}")
