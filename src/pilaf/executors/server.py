from __future__ import annotations

import logging
import time

from ..actions import Action, ActionType
from ..backend import Backend, format_position
from ..decode import DecodeStatus, decode_response
from ..results import ActionResult, ErrorKind
from ..state import StateManager
from ..validation import validate_response
from .base import Executor

logger = logging.getLogger(__name__)


class ServerExecutor(Executor):
    """Console commands, whose responses are the authoritative result."""

    name = "ServerExecutor"
    handlers = {
        ActionType.SERVER_COMMAND: "command",
        ActionType.EXECUTE_RCON_COMMAND: "command",
        ActionType.EXECUTE_RCON_WITH_CAPTURE: "command",
        ActionType.WAIT: "wait",
        ActionType.CLEAR_ENTITIES: "clear_entities",
        ActionType.PLACE_BLOCK: "place_block",
        ActionType.GET_SERVER_INFO: "server_info",
    }

    def command(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        """Run a console command, validate the reply and decode any structured data in it."""

        response = backend.execute_rcon_with_capture(action.require_text("command")) or ""

        validation = validate_response(response, action)
        if not validation.valid:
            return ActionResult.failure(
                validation.reason or "Response validation failed",
                ErrorKind.VALIDATION,
                response=response,
            )

        decoded = decode_response(response)
        if decoded.status is DecodeStatus.DECODED:
            return ActionResult.extracted(response, decoded.value, decoded.json_text)
        if decoded.status is DecodeStatus.MALFORMED:
            logger.info("Response to %r looked structured but could not be decoded: %s", action.get("command"), decoded.error)
        return ActionResult.success(response)

    def wait(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        duration = action.number("duration")
        millis = int(self.config.default_wait_ms if duration is None else duration)
        if millis < 0:
            return ActionResult.failure(f"Wait duration must not be negative, got {millis}ms", ErrorKind.PARAMETER)
        time.sleep(millis / 1000)
        return ActionResult.success(f"Waited {millis}ms")

    def clear_entities(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        entity_type = action.text("entity_type")
        if entity_type and entity_type.lower() != "all":
            command = f"kill @e[type={entity_type},distance=..50]"
        else:
            command = "kill @e[type=!player,distance=..50]"
        response = backend.execute_rcon_with_capture(command)
        return ActionResult.success(response or "Entities cleared")

    def place_block(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        position = format_position(self.position(action, "position", "location"))
        block = action.text("block") or action.text("item") or "stone"
        response = backend.execute_rcon_with_capture(f"setblock {position} {block}")
        validation = validate_response(response, action)
        if not validation.valid:
            return ActionResult.failure(validation.reason or "setblock failed", ErrorKind.VALIDATION, response=response)
        return ActionResult.success(f"Block placed at {position}")

    def server_info(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        return ActionResult.success(backend.execute_rcon_with_capture("list") or "")
