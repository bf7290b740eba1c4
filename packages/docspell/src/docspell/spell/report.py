"""Transcript reduction and suite reporting.

Text output is TAP: a plan line, then for every file its flagged engine lines
as `#` diagnostics followed by the `ok` / `not ok` verdict.
"""

from __future__ import annotations

from typing import Iterable

from ..core.context import RunContext
from ..core.schema import validate_payload
from .model import CheckStatus, SuiteReport

REPORT_SCHEMA = "report.schema.json"


def count_flagged(transcript: str | Iterable[str]) -> tuple[str, ...]:
    """Return the flagged lines of an engine transcript.

    The first line is the engine banner and is always dropped; blank lines
    only terminate the answer for one input line.
    """
    if isinstance(transcript, str):
        # the engine speaks newline-delimited lines; other separators are content
        lines = [line.removesuffix("\r") for line in transcript.split("\n")]
    else:
        lines = list(transcript)
    return tuple(line for line in lines[1:] if line.strip())


def verdict_message(path: str, count: int) -> str:
    so_many = "no" if count == 0 else str(count)
    return f"{path} has {so_many} spelling errors"


def render_tap(report: SuiteReport) -> list[str]:
    if report.skipped:
        return [f"1..0 # SKIP {report.skip_reason}"]
    lines = [f"1..{report.plan}"]
    for number, row in enumerate(report.results, start=1):
        lines.extend(f"# {flagged}" for flagged in row.flagged)
        verdict = "ok" if row.status == CheckStatus.PASS else "not ok"
        lines.append(f"{verdict} {number} - {row.message}")
    return lines


def report_status(report: SuiteReport) -> str:
    if report.skipped:
        return "skip"
    return "pass" if report.ok else "fail"


def build_payload(ctx: RunContext, report: SuiteReport) -> dict[str, object]:
    payload: dict[str, object] = {
        "schema_name": "docspell.check.v1",
        "schema_version": 1,
        "tool": "docspell",
        "status": report_status(report),
        "run_id": ctx.run_id,
        "plan": report.plan,
        "passed_count": report.passed_count,
        "failed_count": report.failed_count,
        "error_count": report.error_count,
        "skipped": report.skipped,
        "skip_reason": report.skip_reason,
        "dictionary": report.dictionary,
        "results": [row.to_payload() for row in report.results],
    }
    validate_payload(payload, REPORT_SCHEMA, what="check report")
    return payload
