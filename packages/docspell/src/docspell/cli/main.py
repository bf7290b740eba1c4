from __future__ import annotations

import argparse
import sys

from .. import __version__
from ..commands.doctor import run_doctor
from ..commands.spell.command import configure_spell_parsers, run_spell_command
from ..core.context import RunContext
from ..core.env import getenv
from ..core.git import read_git_context
from ..core.logging import log_event
from ..core.repo_root import try_find_repo_root
from ..errors import ScriptError
from ..exit_codes import ERR_INTERNAL, ERR_USAGE
from .output import build_base_payload, emit, render_error, resolve_output_format

SPELL_COMMANDS = {"check", "list", "dict"}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="docspell", description="spell-check a documentation corpus")
    p.add_argument("--version", action="version", version=_version_string())
    p.add_argument("--json", action="store_true", help="emit JSON output")
    p.add_argument("--format", choices=["text", "json"], default=None, help="output format")
    p.add_argument("--repo-root", help="repository root (default: nearest .git ancestor)")
    p.add_argument("--config", help="YAML config path (default: $DOCSPELL_CONFIG or configs/docspell.yaml)")
    p.add_argument("--run-id", help="run identifier for logs and reports")
    p.add_argument("--log-json", action="store_true", help="emit structured log lines as JSON")
    vg = p.add_mutually_exclusive_group()
    vg.add_argument("--verbose", action="store_true", help="enable verbose diagnostics")
    vg.add_argument("--quiet", action="store_true", help="only emit warnings and errors")
    sub = p.add_subparsers(dest="cmd", required=True)

    configure_spell_parsers(sub)
    sub.add_parser("doctor", help="show engine, renderer and git availability")
    sub.add_parser("version", help="print version and git context")
    return p


def _version_string() -> str:
    base = f"docspell {__version__}"
    repo_root = try_find_repo_root()
    if repo_root is None:
        return f"{base}+unknown"
    sha = read_git_context(repo_root).sha
    return f"{base}+{sha}"


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    ns = p.parse_args(argv)
    fmt = resolve_output_format(cli_json=ns.json, cli_format=ns.format, ci_present=getenv("CI") is not None)
    as_json = fmt == "json"
    try:
        ctx = RunContext.from_args(
            ns.run_id,
            ns.repo_root,
            fmt,  # type: ignore[arg-type]
            ns.verbose,
            ns.quiet,
            ns.log_json,
        )
        log_event(ctx, "info", "cli", "start", cmd=ns.cmd, fmt=ctx.output_format)
        if ns.cmd in SPELL_COMMANDS:
            return run_spell_command(ctx, ns)
        if ns.cmd == "doctor":
            return run_doctor(ctx, ns.config)
        if ns.cmd == "version":
            payload = build_base_payload(ctx, "docspell.version.v1")
            payload["version"] = __version__
            if as_json:
                emit(payload)
            else:
                print(f"docspell {__version__}+{ctx.git_sha}")
            return 0
        return ERR_USAGE
    except ScriptError as exc:
        print(render_error(as_json=as_json, message=str(exc), code=exc.code, kind=exc.kind), file=sys.stderr)
        return exc.code
    except Exception as exc:  # pragma: no cover
        print(render_error(as_json=as_json, message=f"internal error: {exc}", code=ERR_INTERNAL), file=sys.stderr)
        return ERR_INTERNAL


if __name__ == "__main__":
    raise SystemExit(main())
