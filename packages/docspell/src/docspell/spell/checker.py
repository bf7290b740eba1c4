from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from ..config import SpellConfig
from ..core.context import RunContext
from ..core.logging import log_event
from ..core.paths import resolve_under
from ..core.process import CommandResult, run_command
from ..errors import ScriptError
from ..exit_codes import ERR_PREREQ
from .dictionary import build_session_dictionary
from .model import CandidateFile, CheckResult, CheckStatus, SuiteReport
from .pipeline import CommandStage, Pipeline, PipelineStalledError, StageFailedError, TransformStage
from .report import count_flagged, verdict_message
from .selector import select_candidates

# engine protocol: "!" switches to terse mode, "^" marks a content line
TERSE_MODE = b"!\n"
CONTENT_PREFIX = b"^"

PROBE_TIMEOUT_SECONDS = 30


def expand_command(template: tuple[str, ...], **values: str) -> tuple[str, ...]:
    expanded: list[str] = []
    for part in template:
        for key, value in values.items():
            part = part.replace("{" + key + "}", value)
        expanded.append(part)
    return tuple(expanded)


def mark_lines(lines: Iterator[bytes]) -> Iterator[bytes]:
    yield TERSE_MODE
    for line in lines:
        yield CONTENT_PREFIX + line.rstrip(b"\r\n") + b"\n"


@dataclass(frozen=True)
class EngineProbe:
    available: bool
    version: str
    detail: str

    @classmethod
    def from_result(cls, result: CommandResult) -> "EngineProbe":
        first = result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""
        return cls(available=result.ok, version=first, detail=result.stderr.strip())


def probe_engine(ctx: RunContext, config: SpellConfig) -> EngineProbe:
    result = run_command(list(config.engine_probe), ctx.repo_root, timeout_seconds=PROBE_TIMEOUT_SECONDS, ctx=ctx)
    probe = EngineProbe.from_result(result)
    log_event(ctx, "info", "probe", "engine", engine=config.engine_name, available=probe.available, code=result.code)
    return probe


def build_pipeline(
    candidate: CandidateFile,
    config: SpellConfig,
    repo_root: Path,
    dictionary: Path,
    timeout_seconds: float,
) -> Pipeline:
    stages: list[CommandStage | TransformStage] = []
    if candidate.needs_render:
        stages.append(CommandStage("render", expand_command(config.renderer_command, file=candidate.path)))
    stages.append(TransformStage("format", mark_lines))
    stages.append(
        CommandStage(
            "check",
            expand_command(config.engine_command, dictionary=str(dictionary), file=candidate.path),
            keep_stderr=False,
        )
    )
    return Pipeline(stages, cwd=repo_root, timeout_seconds=timeout_seconds)


def check_file(
    ctx: RunContext,
    candidate: CandidateFile,
    config: SpellConfig,
    dictionary: Path,
    timeout_seconds: float,
) -> CheckResult:
    started = time.perf_counter()
    pipeline = build_pipeline(candidate, config, ctx.repo_root, dictionary, timeout_seconds)
    source = None if candidate.needs_render else resolve_under(ctx.repo_root, candidate.path)
    try:
        raw = pipeline.run(source)
    except StageFailedError as exc:
        return _error_result(ctx, candidate, started, f"{candidate.path}: {exc}", "stage_failed")
    except PipelineStalledError as exc:
        return _error_result(ctx, candidate, started, f"{candidate.path}: {exc}", "pipeline_stalled")
    except OSError as exc:
        return _error_result(ctx, candidate, started, f"{candidate.path}: unreadable: {exc.strerror or exc}", "unreadable")
    flagged = count_flagged(raw.decode("utf-8", errors="replace"))
    elapsed_ms = int((time.perf_counter() - started) * 1000)
    log_event(
        ctx,
        "debug",
        "pipeline",
        "done",
        file=candidate.path,
        stages=",".join(pipeline.names),
        flagged=len(flagged),
        duration_ms=elapsed_ms,
    )
    return CheckResult(
        file=candidate.path,
        status=CheckStatus.PASS if not flagged else CheckStatus.FAIL,
        message=verdict_message(candidate.path, len(flagged)),
        flagged=flagged,
        duration_ms=elapsed_ms,
    )


def _error_result(ctx: RunContext, candidate: CandidateFile, started: float, message: str, kind: str) -> CheckResult:
    log_event(ctx, "error", "pipeline", kind, file=candidate.path)
    return CheckResult(
        file=candidate.path,
        status=CheckStatus.ERROR,
        message=message,
        duration_ms=int((time.perf_counter() - started) * 1000),
        error_kind=kind,
    )


def run_checks(
    ctx: RunContext,
    candidates: list[CandidateFile],
    config: SpellConfig,
    dictionary: Path,
    jobs: int,
    timeout_seconds: float,
) -> list[CheckResult]:
    def _run_one(candidate: CandidateFile) -> CheckResult:
        return check_file(ctx, candidate, config, dictionary, timeout_seconds)

    if jobs > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as ex:
            # map() yields in submission order, i.e. enumeration order
            return list(ex.map(_run_one, candidates))
    return [_run_one(candidate) for candidate in candidates]


def run_suite(
    ctx: RunContext,
    config: SpellConfig,
    explicit: list[str] | None,
    jobs: int,
    timeout_seconds: float,
    rebuild_dictionary: bool = True,
) -> SuiteReport:
    candidates = select_candidates(ctx, config, explicit)
    probe = probe_engine(ctx, config)
    if not probe.available:
        reason = f"requires {config.engine_name}"
        if config.missing_engine == "fail":
            raise ScriptError(
                f"{config.engine_name} is not available: {probe.detail or 'probe failed'}",
                ERR_PREREQ,
                kind="engine_missing",
            )
        log_event(ctx, "warn", "checker", "skip", reason=reason, files=len(candidates))
        return SuiteReport(skipped=True, skip_reason=reason)
    if rebuild_dictionary:
        dictionary = build_session_dictionary(ctx, config)
    else:
        dictionary = resolve_under(ctx.repo_root, config.dictionary_path)
        if not dictionary.is_file():
            raise ScriptError(f"session dictionary not found: {dictionary}", ERR_PREREQ, kind="dictionary_missing")
    log_event(ctx, "info", "checker", "start", files=len(candidates), jobs=jobs, engine=probe.version)
    results = run_checks(ctx, candidates, config, dictionary, jobs, timeout_seconds)
    return SuiteReport(results=tuple(results), dictionary=str(dictionary))
