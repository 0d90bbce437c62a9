from __future__ import annotations

from ..actions import Action, ActionType
from ..backend import Backend
from ..results import ActionResult
from ..state import StateManager
from .base import Executor


class ClientExecutor(Executor):
    """Interactions performed by a simulated player client."""

    name = "ClientExecutor"
    handlers = {
        ActionType.USE_ITEM: "use_item",
        ActionType.ATTACK_ENTITY: "attack",
        ActionType.LOOK_AT: "look_at",
    }

    def use_item(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        target = action.text("entity") or action.text("target")
        return ActionResult.success(backend.use_item(player, target))

    def attack(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        entity = action.require_text("entity")
        return ActionResult.success(backend.attack_entity(player, entity))

    def look_at(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        player = action.require_text("player")
        entity = action.text("entity")
        target = entity if entity else self.position(action, "position", "location", "destination")
        return ActionResult.success(backend.look_at(player, target))
