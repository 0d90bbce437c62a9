from __future__ import annotations

import json
import logging
from abc import ABC
from typing import Any, Callable, ClassVar, Mapping

from ..actions import Action, ActionKind, kind_name
from ..backend import Backend, parse_position
from ..config import RunConfig
from ..errors import BackendError, CorrelationTimeout, ParameterError, UnsupportedActionError
from ..results import ActionResult, ErrorKind
from ..state import StateManager, to_plain, truncate

logger = logging.getLogger(__name__)

Handler = Callable[[Action, Backend, StateManager], ActionResult]


def unsupported(kind: ActionKind) -> ActionResult:
    return ActionResult.failure(str(UnsupportedActionError(kind_name(kind))), ErrorKind.UNSUPPORTED)


class Executor(ABC):
    """Executes one family of action kinds.

    Subclasses map each kind they serve to the name of a handler method in
    ``handlers``. :meth:`execute` never raises for domain failures: missing
    parameters, backend errors and confirmation timeouts all come back as a
    failed :class:`ActionResult`.
    """

    name: ClassVar[str] = "Executor"
    handlers: ClassVar[Mapping[ActionKind, str]] = {}
    assertions: ClassVar[bool] = False

    def __init__(self, config: RunConfig | None = None) -> None:
        self.config = config or RunConfig()
        self._dispatch: dict[str, Handler] = {
            kind_name(kind): getattr(self, method) for kind, method in self.handlers.items()
        }

    def get_supported_types(self) -> frozenset[ActionKind]:
        return frozenset(self.handlers)

    def can_execute(self, kind: ActionKind) -> bool:
        return kind_name(kind) in self._dispatch

    def execute(self, action: Action, backend: Backend, state: StateManager) -> ActionResult:
        handler = self._dispatch.get(kind_name(action.kind))
        if handler is None:
            return unsupported(action.kind)
        try:
            return handler(action, backend, state)
        except ParameterError as exc:
            return ActionResult.failure(str(exc), ErrorKind.PARAMETER, assertion=self.assertions)
        except CorrelationTimeout as exc:
            return ActionResult.failure(str(exc), ErrorKind.CORRELATION_TIMEOUT)
        except Exception as exc:
            if not isinstance(exc, BackendError):
                logger.debug("%s raised while executing %s", self.name, action.describe(), exc_info=True)
            return ActionResult.failure(
                str(exc) or type(exc).__name__,
                ErrorKind.BACKEND,
                assertion=self.assertions,
            )

    # Helpers shared by the families

    @property
    def display_limit(self) -> int:
        return self.config.display_limit

    def to_json(self, value: Any) -> str:
        return json.dumps(to_plain(value), sort_keys=True, ensure_ascii=False)

    def shorten(self, text: str) -> str:
        return truncate(text, self.display_limit)

    def fetched(self, action: Action, value: Any, response: str | None = None) -> ActionResult:
        """Result for a query: a store pair under ``store_as`` when one is declared."""

        text = response if response is not None else self.to_json(value)
        if action.store_as:
            return ActionResult.with_state(action.store_as, value, text)
        return ActionResult.success(text)

    def position(self, action: Action, *keys: str, required: bool = True) -> dict[str, float] | None:
        for key in keys:
            value = action.get(key)
            if value is None or value == "":
                continue
            try:
                return parse_position(value)
            except BackendError as exc:
                raise ParameterError(key, kind_name(action.kind), message=str(exc)) from exc
        if required:
            raise ParameterError(keys[0], kind_name(action.kind))
        return None

    def count(self, action: Action, key: str = "count", default: int = 1) -> int:
        value = action.number(key)
        return default if value is None else int(value)

