from __future__ import annotations

import json
from pathlib import Path

from pilaf import InMemoryBackend, StoryOrchestrator, TestResult, summarize, write_json_report


def _run(steps: list[dict]) -> TestResult:
    server = InMemoryBackend()
    return StoryOrchestrator(server).execute(
        {"name": "Report demo", "setup": [{"action": "connect_player", "player": "Alex"}], "steps": steps}
    )


def test_summary_of_a_passing_run() -> None:
    result = _run([{"action": "assert_response_contains", "source": "nothing", "contains": "x", "negated": True}])

    summary = summarize(result)

    assert summary.splitlines()[:4] == [
        "Story: Report demo",
        "Status: PASSED",
        "Actions executed: 2",
        "Assertions: 1 passed, 0 failed",
    ]
    assert "Failed steps:" not in summary


def test_summary_lists_failed_steps() -> None:
    result = _run([{"action": "give_item", "player": "Ghost", "item": "dirt"}])

    summary = summarize(result)

    assert "Status: FAILED" in summary
    assert "Error: Action failed: give_item: No player was found: Ghost" in summary
    assert "  [steps #1] give_item: No player was found: Ghost" in summary


def test_json_report_into_directory(artifact_dir: Path) -> None:
    result = _run([{"action": "get_inventory", "player": "Alex", "storeAs": "inv"}])

    path = write_json_report(result, artifact_dir)

    assert path == artifact_dir / "Report_demo.json"
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["story"] == "Report demo"
    assert payload["success"] is True
    assert payload["state"]["inv"] == {"player": "Alex", "items": []}
    assert [step["kind"] for step in payload["steps"]] == ["connect_player", "get_inventory"]
    assert payload["steps"][1]["phase"] == "steps"


def test_json_report_to_explicit_file(artifact_dir: Path) -> None:
    result = _run([])

    path = write_json_report(result, artifact_dir / "nested" / "out.json")

    assert path.exists()
    assert json.loads(path.read_text(encoding="utf-8"))["actions_executed"] == 1
