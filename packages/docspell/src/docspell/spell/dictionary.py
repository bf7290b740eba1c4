"""Session dictionary assembly.

The engine reads one personal word list per run. It is rebuilt from the
static fragments on every run so stale entries never survive a fragment edit.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from ..config import SpellConfig
from ..core.context import RunContext
from ..core.logging import log_event
from ..core.paths import resolve_under, write_text_file
from ..errors import ScriptError
from ..exit_codes import ERR_CONFIG


def render_dictionary(header: str, fragments: Iterable[str]) -> str:
    parts = [header.strip()]
    parts.extend(text.rstrip("\n") for text in fragments)
    return "\n".join(parts) + "\n"


def read_fragments(repo_root: Path, config: SpellConfig) -> list[str]:
    missing: list[str] = []
    texts: list[str] = []
    for rel in config.dictionary_fragments:
        path = resolve_under(repo_root, rel)
        if not path.is_file():
            missing.append(rel)
            continue
        texts.append(path.read_text(encoding="utf-8"))
    if missing:
        raise ScriptError(
            f"dictionary fragment(s) missing: {', '.join(missing)}",
            ERR_CONFIG,
            kind="dictionary_fragment_missing",
        )
    return texts


def build_session_dictionary(ctx: RunContext, config: SpellConfig) -> Path:
    texts = read_fragments(ctx.repo_root, config)
    out = resolve_under(ctx.repo_root, config.dictionary_path)
    write_text_file(out, render_dictionary(config.dictionary_header, texts))
    log_event(ctx, "info", "dictionary", "built", path=str(out), fragments=len(texts))
    return out
