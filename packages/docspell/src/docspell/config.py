"""Spell-check configuration: built-in defaults overlaid with an optional YAML file."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .core.env import getenv
from .core.paths import resolve_under
from .core.schema import validate_payload
from .errors import ScriptError
from .exit_codes import ERR_CONFIG

DEFAULT_CONFIG_PATH = "configs/docspell.yaml"
CONFIG_ENV = "DOCSPELL_CONFIG"

DEFAULTS: dict[str, Any] = {
    "markup_extensions": [".pod6"],
    "text_extensions": [".md"],
    "exclude": ["contributors.pod6"],
    "dictionary": {
        "path": "xt/aspell.pws",
        "header": "personal_ws-1.1 en 0 utf-8",
        "fragments": ["xt/words.pws", "xt/code.pws"],
    },
    "engine": {
        "name": "aspell",
        "command": ["aspell", "-a", "-l", "en_US", "--ignore-case", "--extra-dicts={dictionary}", "--mode=url"],
        "probe": ["aspell", "-v"],
    },
    "renderer": {
        "command": ["raku", "--doc", "{file}"],
    },
    "timeout_seconds": 300,
    "jobs": None,
    "policies": {
        "missing_engine": "skip",
        "missing_file_listing": "empty",
    },
}


@dataclass(frozen=True)
class SpellConfig:
    markup_extensions: tuple[str, ...]
    text_extensions: tuple[str, ...]
    exclude: tuple[str, ...]
    dictionary_path: str
    dictionary_header: str
    dictionary_fragments: tuple[str, ...]
    engine_name: str
    engine_command: tuple[str, ...]
    engine_probe: tuple[str, ...]
    renderer_command: tuple[str, ...]
    timeout_seconds: int
    jobs: int | None
    missing_engine: str
    missing_file_listing: str
    source: str = "<defaults>"

    @classmethod
    def from_mapping(cls, data: dict[str, Any], source: str = "<defaults>") -> "SpellConfig":
        return cls(
            markup_extensions=tuple(data["markup_extensions"]),
            text_extensions=tuple(data["text_extensions"]),
            exclude=tuple(data["exclude"]),
            dictionary_path=str(data["dictionary"]["path"]),
            dictionary_header=str(data["dictionary"]["header"]),
            dictionary_fragments=tuple(data["dictionary"]["fragments"]),
            engine_name=str(data["engine"]["name"]),
            engine_command=tuple(data["engine"]["command"]),
            engine_probe=tuple(data["engine"]["probe"]),
            renderer_command=tuple(data["renderer"]["command"]),
            timeout_seconds=int(data["timeout_seconds"]),
            jobs=(int(data["jobs"]) if data.get("jobs") is not None else None),
            missing_engine=str(data["policies"]["missing_engine"]),
            missing_file_listing=str(data["policies"]["missing_file_listing"]),
            source=source,
        )

    def to_payload(self) -> dict[str, object]:
        return {
            "source": self.source,
            "markup_extensions": list(self.markup_extensions),
            "text_extensions": list(self.text_extensions),
            "exclude": list(self.exclude),
            "dictionary": {
                "path": self.dictionary_path,
                "header": self.dictionary_header,
                "fragments": list(self.dictionary_fragments),
            },
            "engine": {
                "name": self.engine_name,
                "command": list(self.engine_command),
                "probe": list(self.engine_probe),
            },
            "renderer": {"command": list(self.renderer_command)},
            "timeout_seconds": self.timeout_seconds,
            "jobs": self.jobs,
            "policies": {
                "missing_engine": self.missing_engine,
                "missing_file_listing": self.missing_file_listing,
            },
        }


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def load_yaml(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _config_path(repo_root: Path, explicit: str | None) -> Path | None:
    configured = explicit or getenv(CONFIG_ENV)
    if configured:
        path = resolve_under(repo_root, configured)
        if not path.is_file():
            raise ScriptError(f"config file not found: {path}", ERR_CONFIG, kind="config_missing")
        return path
    default = repo_root / DEFAULT_CONFIG_PATH
    return default if default.is_file() else None


def load_config(repo_root: Path, explicit: str | None = None) -> SpellConfig:
    path = _config_path(repo_root, explicit)
    if path is None:
        return SpellConfig.from_mapping(DEFAULTS)
    try:
        raw = load_yaml(path)
    except yaml.YAMLError as exc:
        raise ScriptError(f"{path}: invalid YAML: {exc}", ERR_CONFIG, kind="config_invalid") from exc
    if raw is None:
        raw = {}
    validate_payload(raw, "config.schema.json", code=ERR_CONFIG, what=f"config {path.name}")
    return SpellConfig.from_mapping(merge_config(DEFAULTS, raw), source=str(path))
