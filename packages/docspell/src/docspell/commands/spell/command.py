from __future__ import annotations

import argparse
import os
from pathlib import Path

from ...cli.output import build_base_payload, emit
from ...config import SpellConfig, load_config
from ...core.context import RunContext
from ...core.env import jobs_hint
from ...core.paths import resolve_under, write_text_file
from ...core.serialize import dumps_json
from ...errors import ScriptError
from ...exit_codes import ERR_ARTIFACT, ERR_CHECK, OK
from ...spell.checker import run_suite
from ...spell.dictionary import build_session_dictionary
from ...spell.report import build_payload, render_tap
from ...spell.selector import select_candidates


def configure_spell_parsers(sub: argparse._SubParsersAction) -> None:
    check_p = sub.add_parser("check", help="spell-check documentation files")
    check_p.add_argument("files", nargs="*", help="explicit files relative to the current directory; skips discovery and filtering")
    check_p.add_argument("--jobs", type=int, help="parallel file pipelines (default: $TEST_JOBS or 2)")
    check_p.add_argument("--timeout", type=int, help="per-file pipeline timeout in seconds")
    check_p.add_argument("--out-file", help="also write the JSON report to this path")
    check_p.add_argument("--skip-dictionary", action="store_true", help="reuse the existing session dictionary")

    list_p = sub.add_parser("list", help="list candidate files and their format")
    list_p.add_argument("files", nargs="*", help="explicit files relative to the current directory; skips discovery and filtering")

    sub.add_parser("dict", help="build the session dictionary and print its path")


def resolve_jobs(cli_jobs: int | None, config: SpellConfig) -> int:
    if cli_jobs is not None and cli_jobs > 0:
        return cli_jobs
    if config.jobs is not None:
        return config.jobs
    return jobs_hint()


def explicit_files(ctx: RunContext, files: list[str], cwd: Path | None = None) -> list[str] | None:
    """Rebase command-line paths from the caller's directory onto the repo root.

    Run from the repo root the paths are kept verbatim; paths outside the
    repository become absolute.
    """
    if not files:
        return None
    here = (cwd or Path.cwd()).resolve()
    root = ctx.repo_root.resolve()
    if here == root:
        return list(files)
    rebased: list[str] = []
    for name in files:
        if Path(name).is_absolute():
            rebased.append(name)
            continue
        target = Path(os.path.normpath(here / name))
        try:
            rebased.append(target.relative_to(root).as_posix())
        except ValueError:
            rebased.append(str(target))
    return rebased


def write_report(ctx: RunContext, out_file: str, payload: dict[str, object]) -> Path:
    out = resolve_under(ctx.repo_root, out_file)
    try:
        return write_text_file(out, dumps_json(payload, pretty=True) + "\n")
    except OSError as exc:
        raise ScriptError(
            f"cannot write report to {out}: {exc.strerror or exc}",
            ERR_ARTIFACT,
            kind="artifact_write_failed",
        ) from exc


def run_check(ctx: RunContext, ns: argparse.Namespace, config: SpellConfig) -> int:
    jobs = resolve_jobs(ns.jobs, config)
    timeout = ns.timeout if ns.timeout and ns.timeout > 0 else config.timeout_seconds
    explicit = explicit_files(ctx, ns.files)
    report = run_suite(ctx, config, explicit, jobs, timeout, rebuild_dictionary=not ns.skip_dictionary)
    payload = build_payload(ctx, report)
    if ctx.as_json:
        emit(payload)
    else:
        print("\n".join(render_tap(report)))
    if ns.out_file:
        write_report(ctx, ns.out_file, payload)
    return OK if report.skipped or report.ok else ERR_CHECK


def run_list(ctx: RunContext, ns: argparse.Namespace, config: SpellConfig) -> int:
    candidates = select_candidates(ctx, config, explicit_files(ctx, ns.files))
    if ctx.as_json:
        payload = build_base_payload(ctx, "docspell.list.v1")
        payload["files"] = [{"path": c.path, "format": c.format.value} for c in candidates]
        emit(payload)
    else:
        for candidate in candidates:
            print(f"{candidate.path}\t{candidate.format.value}")
    return OK


def run_dict(ctx: RunContext, config: SpellConfig) -> int:
    out = build_session_dictionary(ctx, config)
    if ctx.as_json:
        payload = build_base_payload(ctx, "docspell.dict.v1")
        payload["dictionary"] = str(out)
        payload["fragments"] = list(config.dictionary_fragments)
        emit(payload)
    else:
        print(_display_path(ctx, out))
    return OK


def _display_path(ctx: RunContext, path: Path) -> str:
    try:
        return path.relative_to(ctx.repo_root).as_posix()
    except ValueError:
        return str(path)


def run_spell_command(ctx: RunContext, ns: argparse.Namespace) -> int:
    config = load_config(ctx.repo_root, ns.config)
    if ns.cmd == "check":
        return run_check(ctx, ns, config)
    if ns.cmd == "list":
        return run_list(ctx, ns, config)
    return run_dict(ctx, config)
