from __future__ import annotations

from .assertion import AssertionExecutor
from .base import Executor, unsupported
from .client import ClientExecutor
from .correlation import CorrelationExecutor
from .entity import EntityExecutor
from .inventory import InventoryExecutor
from .player import PlayerExecutor
from .server import ServerExecutor
from .state import StateExecutor
from .world import WorldExecutor

__all__ = [
    "AssertionExecutor",
    "ClientExecutor",
    "CorrelationExecutor",
    "EntityExecutor",
    "Executor",
    "InventoryExecutor",
    "PlayerExecutor",
    "ServerExecutor",
    "StateExecutor",
    "WorldExecutor",
    "unsupported",
]
