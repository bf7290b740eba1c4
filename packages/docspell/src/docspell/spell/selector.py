from __future__ import annotations

from fnmatch import fnmatch
from pathlib import PurePosixPath
from typing import Iterable

from ..config import SpellConfig
from ..core.context import RunContext
from ..core.git import tracked_files
from ..core.logging import log_event
from ..errors import ScriptError
from ..exit_codes import ERR_PREREQ
from .model import CandidateFile, FileFormat


def file_format(path: str, config: SpellConfig) -> FileFormat:
    if path.endswith(tuple(config.markup_extensions)):
        return FileFormat.MARKUP
    return FileFormat.TEXT


def is_eligible(path: str, config: SpellConfig) -> bool:
    return path.endswith(tuple(config.markup_extensions) + tuple(config.text_extensions))


def is_excluded(path: str, config: SpellConfig) -> bool:
    name = PurePosixPath(path).name
    return any(fnmatch(path, pattern) or fnmatch(name, pattern) for pattern in config.exclude)


def filter_candidates(paths: Iterable[str], config: SpellConfig) -> list[CandidateFile]:
    return [
        CandidateFile(path, file_format(path, config))
        for path in paths
        if is_eligible(path, config) and not is_excluded(path, config)
    ]


def select_candidates(ctx: RunContext, config: SpellConfig, explicit: list[str] | None = None) -> list[CandidateFile]:
    if explicit:
        log_event(ctx, "debug", "selector", "explicit", count=len(explicit))
        return [CandidateFile(path, file_format(path, config)) for path in explicit]
    listed = tracked_files(ctx.repo_root)
    if listed is None:
        if config.missing_file_listing == "fail":
            raise ScriptError(
                f"unable to list tracked files under {ctx.repo_root}; is this a git checkout?",
                ERR_PREREQ,
                kind="file_listing_unavailable",
            )
        log_event(ctx, "warn", "selector", "listing-unavailable", repo_root=str(ctx.repo_root))
        return []
    selected = filter_candidates(listed, config)
    log_event(ctx, "info", "selector", "discovered", tracked=len(listed), selected=len(selected))
    return selected
