from __future__ import annotations

from ..actions import Action, ActionType, kind_name
from ..backend import Backend
from ..errors import ParameterError
from ..results import ActionResult
from ..state import StateManager
from .base import Executor


class EntityExecutor(Executor):
    name = "EntityExecutor"
    handlers = {
        ActionType.SPAWN_ENTITY: "spawn",
        ActionType.GET_ENTITIES: "get_entities",
        ActionType.GET_ENTITY_BY_NAME: "get_entity",
        ActionType.GET_ENTITY_HEALTH: "get_health",
        ActionType.SET_ENTITY_HEALTH: "set_health",
        ActionType.KILL_ENTITY: "kill",
        ActionType.REMOVE_ENTITIES: "remove_all",
    }

    def spawn(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        entity_type = action.require_text("entity_type")
        name = action.text("name") or action.text("entity")
        position = self.position(action, "position", "location", required=False)
        spawned = backend.spawn_entity(entity_type, name=name, position=position)
        response = f"Spawned {entity_type} '{spawned.get('name', name)}'"
        return self.fetched(action, spawned, response)

    def get_entities(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        radius = action.number("radius")
        entities = backend.get_entities(near=action.player, radius=radius)
        return self.fetched(action, entities)

    def get_entity(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        name = action.text("entity") or action.require_text("name")
        entity = backend.get_entity(name)
        if entity is None:
            return ActionResult.failure(f"No entity named '{name}' was found")
        return self.fetched(action, entity)

    def get_health(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        name = action.require_text("entity")
        health = backend.get_entity_health(name)
        return self.fetched(action, health, f"{name} health={health}")

    def set_health(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        name = action.require_text("entity")
        value = action.number("value")
        if value is None:
            value = action.number("health")
        if value is None:
            raise ParameterError("value", kind_name(action.kind))
        response = backend.set_entity_health(name, value)
        return ActionResult.success(response or f"Set health of {name} to {value}")

    def kill(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        name = action.require_text("entity")
        response = backend.kill_entity(name)
        return ActionResult.success(response or f"Killed {name}")

    def remove_all(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        removed = backend.remove_all_test_entities()
        return ActionResult.success(f"Removed {removed} entities")
