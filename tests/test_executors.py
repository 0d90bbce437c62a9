from __future__ import annotations

import threading

import pytest

from pilaf import Action, ActionType, ErrorKind, InMemoryBackend, ResultKind, RunConfig, StateManager
from pilaf.correlation import PendingConfirmation
from pilaf.executors import (
    AssertionExecutor,
    ClientExecutor,
    CorrelationExecutor,
    EntityExecutor,
    InventoryExecutor,
    PlayerExecutor,
    ServerExecutor,
    StateExecutor,
    WorldExecutor,
)


def test_unsupported_kind_is_a_failure_not_an_exception(backend: InMemoryBackend, state: StateManager) -> None:
    result = PlayerExecutor().execute(Action(ActionType.GIVE_ITEM, {}), backend, state)

    assert not result.succeeded
    assert result.error == "Unsupported action type: give_item"
    assert result.error_kind is ErrorKind.UNSUPPORTED


def test_supported_types_accept_plain_strings() -> None:
    executor = InventoryExecutor()

    assert ActionType.GIVE_ITEM in executor.get_supported_types()
    assert executor.can_execute("give_item")
    assert not executor.can_execute("spawn_entity")


def test_missing_parameter_is_a_parameter_failure(backend: InMemoryBackend, state: StateManager) -> None:
    result = InventoryExecutor().execute(Action(ActionType.GIVE_ITEM, {"player": "Steve"}), backend, state)

    assert result.error == "Missing 'item' parameter for give_item"
    assert result.error_kind is ErrorKind.PARAMETER


def test_backend_errors_keep_their_message(backend: InMemoryBackend, state: StateManager) -> None:
    action = Action(ActionType.GIVE_ITEM, {"player": "Nobody", "item": "dirt"})

    result = InventoryExecutor().execute(action, backend, state)

    assert result.error == "No player was found: Nobody"
    assert result.error_kind is ErrorKind.BACKEND


def test_inventory_round_trip(backend: InMemoryBackend, state: StateManager) -> None:
    executor = InventoryExecutor()
    give = executor.execute(Action(ActionType.GIVE_ITEM, {"player": "Steve", "item": "diamond", "count": 3}), backend, state)
    inventory = executor.execute(Action(ActionType.GET_INVENTORY, {"player": "Steve"}, store_as="inv"), backend, state)

    assert give.response == "Gave 3 [Diamond] to Steve"
    assert inventory.kind is ResultKind.STORE
    assert inventory.store_key == "inv"
    assert inventory.store_value == {"player": "Steve", "items": [{"slot": 0, "item": "minecraft:diamond", "count": 3}]}


def test_query_without_store_as_is_plain(backend: InMemoryBackend, state: StateManager) -> None:
    result = PlayerExecutor().execute(Action(ActionType.GET_PLAYER_POSITION, {"player": "Steve"}), backend, state)

    assert result.kind is ResultKind.PLAIN
    assert result.response == '{"x": 0.5, "y": 64.0, "z": 0.5}'


def test_player_movement_and_commands(backend: InMemoryBackend, state: StateManager) -> None:
    executor = PlayerExecutor()

    moved = executor.execute(Action(ActionType.MOVE_PLAYER, {"player": "Steve", "destination": "10 70 -5"}), backend, state)
    teleported = executor.execute(
        Action(ActionType.TELEPORT_PLAYER, {"player": "Steve", "destination": {"x": 1, "y": 2, "z": 3}}), backend, state
    )
    gamemode = executor.execute(Action(ActionType.GAMEMODE_CHANGE, {"player": "Steve", "gamemode": "flying"}), backend, state)

    assert moved.response == "Moved Steve to 10 70 -5"
    assert teleported.response == "Teleported Steve to 1.0, 2.0, 3.0"
    assert backend.players["Steve"].position == {"x": 1.0, "y": 2.0, "z": 3.0}
    assert not gamemode.succeeded
    assert gamemode.error_kind is ErrorKind.PARAMETER
    assert gamemode.error is not None and "flying" in gamemode.error


def test_bad_position_is_a_parameter_failure(backend: InMemoryBackend, state: StateManager) -> None:
    action = Action(ActionType.MOVE_PLAYER, {"player": "Steve", "destination": "up there"})

    result = PlayerExecutor().execute(action, backend, state)

    assert result.error_kind is ErrorKind.PARAMETER
    assert "Invalid position" in (result.error or "")


def test_entities(backend: InMemoryBackend, state: StateManager) -> None:
    executor = EntityExecutor()
    spawned = executor.execute(
        Action(ActionType.SPAWN_ENTITY, {"entity_type": "zombie", "name": "Bob", "position": [1, 64, 1]}), backend, state
    )
    health = executor.execute(Action(ActionType.GET_ENTITY_HEALTH, {"entity": "Bob"}, store_as="hp"), backend, state)
    killed = executor.execute(Action(ActionType.KILL_ENTITY, {"entity": "Bob"}), backend, state)
    again = executor.execute(Action(ActionType.KILL_ENTITY, {"entity": "Bob"}), backend, state)
    missing = executor.execute(Action(ActionType.GET_ENTITY_BY_NAME, {"name": "Bob"}), backend, state)

    assert spawned.response == "Spawned zombie 'Bob'"
    assert health.store_value == 20.0
    assert killed.response == "Killed Bob"
    assert again.error == "No entity was found: Bob"
    assert missing.error == "No entity named 'Bob' was found"


def test_world_and_client(backend: InMemoryBackend, state: StateManager) -> None:
    world = WorldExecutor()
    world.execute(Action(ActionType.SET_TIME, {"time": "night"}), backend, state)
    stored = world.execute(Action(ActionType.GET_WORLD_TIME, {}, store_as="time"), backend, state)
    weather = world.execute(Action(ActionType.SET_WEATHER, {"weather": "snow"}), backend, state)

    backend.give_item("Steve", "stone_sword")
    backend.equip_item("Steve", "stone_sword")
    used = ClientExecutor().execute(Action(ActionType.USE_ITEM, {"player": "Steve"}), backend, state)

    assert stored.store_value == 13000
    assert weather.error == "Invalid weather: snow"
    assert used.response == "Steve used Stone Sword"


def test_server_command_decodes_structured_response(backend: InMemoryBackend, state: StateManager) -> None:
    backend.give_item("Steve", "dirt", 2)

    result = ServerExecutor().execute(
        Action(ActionType.EXECUTE_RCON_WITH_CAPTURE, {"command": "data get entity Steve"}), backend, state
    )

    assert result.kind is ResultKind.EXTRACTION
    assert result.parsed_data["Inventory"] == [{"Slot": 0, "id": "minecraft:dirt", "Count": 2}]
    assert result.payload()["Health"] == 20.0


def test_server_command_validation_failure_keeps_response(backend: InMemoryBackend, state: StateManager) -> None:
    action = Action(ActionType.SERVER_COMMAND, {"command": "kill Ghost"})

    result = ServerExecutor().execute(action, backend, state)

    assert result.error_kind is ErrorKind.VALIDATION
    assert result.error == "Response contains error: 'No entity was found'"
    assert result.response == "No entity was found"


def test_wait_uses_configured_default(backend: InMemoryBackend, state: StateManager) -> None:
    executor = ServerExecutor(RunConfig(default_wait_ms=5))

    assert executor.execute(Action(ActionType.WAIT, {}), backend, state).response == "Waited 5ms"
    assert executor.execute(Action(ActionType.WAIT, {"duration": 1}), backend, state).response == "Waited 1ms"
    assert executor.execute(Action(ActionType.WAIT, {"duration": -1}), backend, state).error_kind is ErrorKind.PARAMETER


def test_state_store_compare_and_extract(backend: InMemoryBackend, state: StateManager) -> None:
    executor = StateExecutor()
    state.store("before", {"pos": {"x": 1, "y": 64}})
    state.store("after", {"pos": {"x": 1, "y": 70}})
    state.store("raw", 'Steve has the following entity data: {Pos:[1.0d,70.0d,2.0d]}')

    stored = executor.execute(Action(ActionType.STORE_STATE, {"variable_name": "copy", "source": "before"}), backend, state)
    compared = executor.execute(Action(ActionType.COMPARE_STATES, {"state1": "before", "state2": "after"}), backend, state)
    extracted = executor.execute(
        Action(ActionType.EXTRACT_WITH_JSONPATH, {"source": "raw", "json_path": "$.Pos[1]"}, store_as="y"), backend, state
    )
    missing = executor.execute(Action(ActionType.EXTRACT_WITH_JSONPATH, {"source": "before", "path": "$.nope"}), backend, state)

    assert (stored.store_key, stored.store_value) == ("copy", {"pos": {"x": 1, "y": 64}})
    assert compared.kind is ResultKind.COMPARISON
    assert compared.succeeded and compared.has_changes
    assert [operation.path for operation in compared.comparison.diff] == [".pos.y"]  # type: ignore[union-attr]
    assert extracted.store_value == 70.0
    assert missing.error_kind is ErrorKind.VALIDATION
    assert missing.error == "Path '$.nope' not found in 'before': No key 'nope' in '$.nope'"


def test_print_stored_state_truncates(backend: InMemoryBackend, state: StateManager) -> None:
    state.store("big", "x" * 50)

    result = StateExecutor(RunConfig(display_limit=10)).execute(
        Action(ActionType.PRINT_STORED_STATE, {"variable_name": "big"}), backend, state
    )

    assert result.response == 'Stored State: big\n\n"xxxxxxxxx...truncated, 52 total chars'


class TestAssertions:
    def test_player_has_item(self, backend: InMemoryBackend, state: StateManager) -> None:
        backend.give_item("Steve", "diamond", 2)
        state.store("inv", backend.get_inventory("Steve"))
        executor = AssertionExecutor()

        passed = executor.execute(
            Action(ActionType.ASSERT_PLAYER_HAS_ITEM, {"source": "inv", "item": "minecraft:diamond", "count": 2}),
            backend,
            state,
        )
        failed = executor.execute(
            Action(ActionType.ASSERT_PLAYER_HAS_ITEM, {"source": "inv", "item": "emerald", "player": "Steve"}),
            backend,
            state,
        )

        assert passed.succeeded and passed.assertion
        assert not failed.succeeded and failed.assertion
        assert failed.error_kind is ErrorKind.ASSERTION
        assert "Expected: emerald x1" in (failed.error or "")
        assert "minecraft:diamond" in (failed.error or "")

    def test_response_contains_and_negation(self, backend: InMemoryBackend, state: StateManager) -> None:
        state.store("reply", "Gave 1 [Dirt] to Steve")
        executor = AssertionExecutor()

        contains = executor.execute(
            Action(ActionType.ASSERT_RESPONSE_CONTAINS, {"source": "reply", "contains": "Dirt"}), backend, state
        )
        negated = executor.execute(
            Action(ActionType.ASSERT_RESPONSE_CONTAINS, {"source": "reply", "contains": "Dirt", "negated": True}),
            backend,
            state,
        )

        assert contains.succeeded
        assert not negated.succeeded
        assert "Actual: Gave 1 [Dirt] to Steve" in (negated.error or "")

    def test_large_actual_value_is_truncated_not_dropped(self, backend: InMemoryBackend, state: StateManager) -> None:
        state.store("reply", "y" * 1200)

        result = AssertionExecutor(RunConfig(display_limit=100)).execute(
            Action(ActionType.ASSERT_RESPONSE_CONTAINS, {"source": "reply", "contains": "needle"}), backend, state
        )

        assert "Expected: 'needle'" in (result.error or "")
        assert "...truncated, 1200 total chars" in (result.error or "")

    def test_entity_presence(self, backend: InMemoryBackend, state: StateManager) -> None:
        backend.spawn_entity("zombie", name="Bob")
        state.store("entities", backend.get_entities())
        executor = AssertionExecutor()

        exists = executor.execute(Action(ActionType.ASSERT_ENTITY_EXISTS, {"source": "entities", "entity": "bob"}), backend, state)
        missing = executor.execute(
            Action(ActionType.ASSERT_ENTITY_MISSING, {"source": "entities", "entity": "zombie"}), backend, state
        )
        unknown = executor.execute(Action(ActionType.ASSERT_ENTITY_EXISTS, {"source": "nope", "entity": "Bob"}), backend, state)

        assert exists.succeeded
        assert not missing.succeeded
        assert "Actual: (not stored)" in (unknown.error or "")

    def test_json_equals(self, backend: InMemoryBackend, state: StateManager) -> None:
        state.store("a", {"x": 1, "y": [1, 2]})
        state.store("b", {"x": 1, "y": [1, 3]})
        executor = AssertionExecutor()

        literal = executor.execute(
            Action(ActionType.ASSERT_JSON_EQUALS, {"state1": "a", "expected": {"y": [1, 2], "x": 1}}), backend, state
        )
        different = executor.execute(Action(ActionType.ASSERT_JSON_EQUALS, {"state1": "a", "state2": "b"}), backend, state)

        assert literal.succeeded
        assert not different.succeeded
        assert "Differences: replace .y[1]: 3 -> 2" in (different.error or "")

    @pytest.mark.parametrize(
        ("condition", "value", "passes"),
        [
            ("equals", 20, True),
            (">=", 20, True),
            ("less_than", 20, False),
            ("!=", 19.5, True),
        ],
    )
    def test_numeric(
        self,
        backend: InMemoryBackend,
        state: StateManager,
        condition: str,
        value: float,
        passes: bool,
    ) -> None:
        state.store("stats", {"player": {"health": 20.0}})

        result = AssertionExecutor().execute(
            Action(
                ActionType.ASSERT_NUMERIC,
                {"source": "stats", "path": "$.player.health", "condition": condition, "value": value},
            ),
            backend,
            state,
        )

        assert result.succeeded is passes

    def test_missing_source_counts_as_failed_assertion(self, backend: InMemoryBackend, state: StateManager) -> None:
        result = AssertionExecutor().execute(Action(ActionType.ASSERT_NUMERIC, {"condition": "equals"}), backend, state)

        assert result.error_kind is ErrorKind.PARAMETER
        assert result.assertion


class TestCorrelationExecutor:
    def test_execute_with_confirmation(self, backend: InMemoryBackend, state: StateManager) -> None:
        action = Action(
            ActionType.EXECUTE_WITH_CONFIRMATION,
            {"command": "time set noon", "pattern": "world.time", "timeout": 1000},
            store_as="confirmed",
        )

        result = CorrelationExecutor().execute(action, backend, state)

        assert result.succeeded
        assert result.store_value["response"] == "Set the time to 6000"
        assert result.store_value["event"]["data"]["time"] == 6000
        assert backend.events.subscriber_count == 0

    def test_unconfirmed_command_is_a_correlation_timeout(self, backend: InMemoryBackend, state: StateManager) -> None:
        action = Action(
            ActionType.EXECUTE_WITH_CONFIRMATION,
            {"command": "list", "pattern": "*never*", "timeout": 50},
        )

        result = CorrelationExecutor().execute(action, backend, state)

        assert result.error_kind is ErrorKind.CORRELATION_TIMEOUT
        assert result.error == "Timed out after 50ms waiting for event matching '*never*'"
        assert backend.events.subscriber_count == 0

    def test_rejected_command_releases_the_wait(self, state: StateManager) -> None:
        class Broken(InMemoryBackend):
            def execute_rcon_with_capture(self, command: str) -> str:
                raise ConnectionError("console unreachable")

        server = Broken()
        action = Action(ActionType.EXECUTE_WITH_CONFIRMATION, {"command": "list", "pattern": "*", "timeout": 1000})

        result = CorrelationExecutor().execute(action, server, state)

        assert result.error_kind is ErrorKind.BACKEND
        assert result.error == "console unreachable"
        assert server.events.subscriber_count == 0

    def test_wait_for_chat_message(self, backend: InMemoryBackend, state: StateManager) -> None:
        threading.Timer(0.05, backend.send_chat, args=("Steve", "hello world")).start()

        result = CorrelationExecutor().execute(
            Action(ActionType.WAIT_FOR_CHAT_MESSAGE, {"player": "Steve", "message": "hello*", "timeout": 2000}),
            backend,
            state,
        )

        assert result.succeeded
        assert result.response == "<Steve> hello world"

    def test_inverted_wait(self, backend: InMemoryBackend, state: StateManager) -> None:
        executor = CorrelationExecutor()
        quiet = executor.execute(
            Action(ActionType.WAIT_FOR_EVENT, {"pattern": "entity.death.*", "invert": True, "timeout": 50}), backend, state
        )
        noisy = executor.execute(
            Action(
                ActionType.EXECUTE_WITH_CONFIRMATION,
                {"command": "kill Steve", "pattern": "entity.death.*", "invert": True, "timeout": 1000},
            ),
            backend,
            state,
        )

        assert quiet.succeeded
        assert quiet.response == "No event matching 'entity.death.*' within 50ms"
        assert noisy.error_kind is ErrorKind.UNEXPECTED_EVENT
        assert noisy.error == "Unexpected event matching 'entity.death.*': Steve died"

    def test_default_timeout_comes_from_config(self, backend: InMemoryBackend, state: StateManager) -> None:
        executor = CorrelationExecutor(RunConfig(correlation_timeout_ms=20))

        result = executor.execute(Action(ActionType.WAIT_FOR_EVENT, {"pattern": "nothing"}), backend, state)

        assert result.error == "Timed out after 20ms waiting for event matching 'nothing'"

    def test_confirmation_without_event_is_an_error(self) -> None:
        pending = PendingConfirmation("world.time", 1.0)
        pending._settle(result=None)
        action = Action(ActionType.WAIT_FOR_EVENT, {"pattern": "world.time"})

        with pytest.raises(RuntimeError, match="settled without an event"):
            CorrelationExecutor().settle(action, pending)
