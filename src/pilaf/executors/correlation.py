from __future__ import annotations

import logging

from ..actions import Action, ActionType, kind_name
from ..backend import Backend
from ..correlation import CorrelationWaiter, PendingConfirmation
from ..errors import ParameterError
from ..results import ActionResult, ErrorKind
from ..state import StateManager
from .base import Executor

logger = logging.getLogger(__name__)


class CorrelationExecutor(Executor):
    """Steps confirmed by events on the server log rather than by a command reply."""

    name = "CorrelationExecutor"
    handlers = {
        ActionType.WAIT_FOR_EVENT: "wait_for_event",
        ActionType.WAIT_FOR_CHAT_MESSAGE: "wait_for_chat",
        ActionType.EXECUTE_WITH_CONFIRMATION: "execute_with_confirmation",
    }

    def wait_for_event(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        pattern = action.require_text("pattern")
        pending = self.waiter(backend).wait(
            pattern,
            self.timeout(action),
            invert=action.flag("invert"),
            actor=action.player,
        )
        return self.settle(action, pending)

    def wait_for_chat(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        message = action.text("message") or action.require_text("pattern")
        pattern = f"<{action.player or '*'}> {message}"
        pending = self.waiter(backend).wait(pattern, self.timeout(action), invert=action.flag("invert"))
        return self.settle(action, pending)

    def execute_with_confirmation(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        command = action.require_text("command")
        pattern = action.require_text("pattern")
        player = action.player
        # Subscribe before issuing so a fast confirmation cannot be missed.
        pending = self.waiter(backend).wait(
            pattern,
            self.timeout(action),
            invert=action.flag("invert"),
            actor=action.text("actor"),
        )
        try:
            if player:
                response = backend.execute_player_command(player, command)
            else:
                response = backend.execute_rcon_with_capture(command)
        except Exception:
            pending.cancel()
            raise
        return self.settle(action, pending, response or "")

    def waiter(self, backend: Backend) -> CorrelationWaiter:
        stream = backend.events
        if stream is None:
            logger.debug("Backend '%s' exposes no event stream; waits can only time out", backend.name)
        return CorrelationWaiter(stream)

    def timeout(self, action: Action) -> float:
        """Timeout in seconds; the action's ``timeout`` is given in milliseconds."""

        millis = action.number("timeout")
        if millis is None:
            millis = self.config.timeout_for(kind_name(action.kind))
        if millis <= 0:
            msg = f"Parameter 'timeout' for {kind_name(action.kind)} must be positive, got {millis:g}"
            raise ParameterError("timeout", kind_name(action.kind), message=msg)
        return millis / 1000

    def settle(self, action: Action, pending: PendingConfirmation, response: str | None = None) -> ActionResult:
        try:
            event = pending.result()
        finally:
            pending.cancel()

        millis = int(pending.timeout * 1000)
        if pending.invert:
            if event is not None:
                return ActionResult.failure(
                    f"Unexpected event matching '{pending.pattern}': {event.message}",
                    ErrorKind.UNEXPECTED_EVENT,
                    response=response,
                )
            message = f"No event matching '{pending.pattern}' within {millis}ms"
            if response:
                message = f"{response}\n{message}"
            return ActionResult.success(message)

        if event is None:
            msg = f"Confirmation for '{pending.pattern}' settled without an event"
            raise RuntimeError(msg)
        if response is None:
            return self.fetched(action, event.to_dict(), event.message)
        text = f"{response}\nConfirmed by: {event.message}" if response else f"Confirmed by: {event.message}"
        return self.fetched(action, {"response": response, "event": event.to_dict()}, text)
