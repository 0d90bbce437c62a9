from __future__ import annotations

import pytest

from pilaf import Action, ActionResult, ActionType, ErrorKind, ParameterError, ResultKind, StateManager, TestResult
from pilaf.actions import is_assertion, kind_name
from pilaf.results import Phase, StepRecord


def test_action_params_are_read_only() -> None:
    action = Action(ActionType.GIVE_ITEM, {"player": "Steve", "item": "dirt"})

    with pytest.raises(TypeError):
        action.params["item"] = "stone"  # type: ignore[index]
    assert action.player == "Steve"
    assert action.label == "give_item"


def test_action_parameter_helpers() -> None:
    action = Action(ActionType.WAIT, {"duration": "250", "negated": "yes", "empty": ""})

    assert action.number("duration") == 250.0
    assert action.flag("negated") is True
    assert action.text("empty") is None
    with pytest.raises(ParameterError, match="Missing 'empty' parameter for wait"):
        action.require("empty")
    with pytest.raises(ParameterError, match="must be numeric"):
        Action("custom", {"n": "abc"}).number("n")


def test_kind_names_match_for_enum_and_string() -> None:
    assert kind_name(ActionType.ASSERT_NUMERIC) == "assert_numeric"
    assert kind_name("assert_numeric") == "assert_numeric"
    assert is_assertion("assert_numeric")
    assert is_assertion(ActionType.ASSERT_JSON_EQUALS)
    assert not is_assertion(ActionType.GIVE_ITEM)


def test_result_variants_are_exclusive() -> None:
    plain = ActionResult.success("ok")
    stored = ActionResult.with_state("inv", {"items": []}, "stored")
    extracted = ActionResult.extracted("data: {}", {}, "{}")
    failed = ActionResult.failure("boom", ErrorKind.BACKEND)

    assert [result.kind for result in (plain, stored, extracted, failed)] == [
        ResultKind.PLAIN,
        ResultKind.STORE,
        ResultKind.EXTRACTION,
        ResultKind.FAILURE,
    ]
    assert not failed.succeeded
    assert failed.error == "boom"
    with pytest.raises(ValueError):
        ActionResult(ResultKind.FAILURE, error="x", store_key="k")
    with pytest.raises(ValueError):
        ActionResult(ResultKind.PLAIN, store_key="k")
    with pytest.raises(ValueError):
        ActionResult(ResultKind.FAILURE)
    with pytest.raises(ValueError):
        ActionResult(ResultKind.COMPARISON)


def test_comparison_result_payload() -> None:
    state = StateManager()
    state.store("a", {"x": 1})
    state.store("b", {"x": 2})
    result = ActionResult.compared(state.compare("a", "b"))

    assert result.succeeded
    assert result.has_changes
    assert result.payload()["diff"] == [{"op": "replace", "path": ".x", "old_value": 1, "value": 2}]
    assert result.response == "1 change(s) between 'a' and 'b'"


def test_payload_prefers_parsed_data() -> None:
    assert ActionResult.extracted("raw", {"a": 1}).payload() == {"a": 1}
    assert ActionResult.success("text").payload() == "text"


def test_decoded_null_payload_is_none() -> None:
    assert ActionResult.extracted("Storage x has the following data: null", None, "null").payload() is None
    with pytest.raises(ValueError, match="missing its payload"):
        ActionResult.extracted("raw", None)


def _step(*, success: bool, assertion: bool) -> StepRecord:
    return StepRecord(
        phase=Phase.STEPS,
        index=0,
        name="step",
        kind="assert_numeric",
        player=None,
        started_at=1.0,
        finished_at=1.5,
        success=success,
        assertion=assertion,
    )


def test_test_result_counters_and_success() -> None:
    result = TestResult(story_name="demo")
    result.record_step(_step(success=True, assertion=False))
    result.record_step(_step(success=True, assertion=True))
    result.record_step(_step(success=False, assertion=True))

    assert result.actions_executed == 3
    assert result.assertions_passed == 1
    assert result.assertions_failed == 1
    assert not result.success
    assert result.steps[0].duration_ms == 500.0


def test_test_result_keeps_first_error_and_freezes() -> None:
    result = TestResult(story_name="demo")
    result.fail("first")
    result.fail("second")
    result.finalize({"inv": []})

    assert result.error == "first"
    assert not result.success
    assert result.to_dict()["state"] == {"inv": []}
    with pytest.raises(RuntimeError):
        result.log("too late")
    with pytest.raises(RuntimeError):
        result.record_step(_step(success=True, assertion=False))
