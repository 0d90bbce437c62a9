from __future__ import annotations

import json
from pathlib import Path

from .results import TestResult


def summarize(result: TestResult) -> str:
    """Plain-text end-of-run summary."""

    status = "PASSED" if result.success else "FAILED"
    lines = [
        f"Story: {result.story_name}",
        f"Status: {status}",
        f"Actions executed: {result.actions_executed}",
        f"Assertions: {result.assertions_passed} passed, {result.assertions_failed} failed",
        f"Elapsed: {result.elapsed_ms:.0f}ms",
    ]
    if result.error:
        lines.append(f"Error: {result.error}")
    failed = result.failed_steps()
    if failed:
        lines.append("Failed steps:")
        for step in failed:
            lines.append(f"  [{step.phase.value} #{step.index + 1}] {step.name}: {step.error}")
    return "\n".join(lines)


def write_json_report(result: TestResult, destination: Path) -> Path:
    """Write ``result`` as JSON. A directory destination gets ``<story>.json`` inside it."""

    if destination.is_dir():
        slug = "".join(char if char.isalnum() or char in "-_" else "_" for char in result.story_name)
        destination = destination / f"{slug or 'story'}.json"
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(
        json.dumps(result.to_dict(), indent=2, sort_keys=True, default=str),
        encoding="utf-8",
    )
    return destination
