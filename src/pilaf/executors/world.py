from __future__ import annotations

from ..actions import Action, ActionType
from ..backend import Backend
from ..results import ActionResult
from ..state import StateManager
from .base import Executor


class WorldExecutor(Executor):
    """World clock and weather."""

    name = "WorldExecutor"
    handlers = {
        ActionType.GET_WORLD_TIME: "get_time",
        ActionType.SET_TIME: "set_time",
        ActionType.GET_WEATHER: "get_weather",
        ActionType.SET_WEATHER: "set_weather",
    }

    def get_time(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        ticks = backend.get_world_time()
        return self.fetched(action, ticks, f"The time is {ticks}")

    def set_time(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        value = action.get("time")
        if value is None:
            value = action.require("value")
        response = backend.set_world_time(value)
        return ActionResult.success(response or f"Set the time to {value}")

    def get_weather(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        weather = backend.get_weather()
        return self.fetched(action, weather, f"The weather is {weather}")

    def set_weather(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        weather = action.require_text("weather")
        response = backend.set_weather(weather)
        return ActionResult.success(response or f"Set the weather to {weather}")
