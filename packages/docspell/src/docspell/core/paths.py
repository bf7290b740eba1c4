from __future__ import annotations

from pathlib import Path


def resolve_under(repo_root: Path, configured: str | Path) -> Path:
    raw = Path(configured)
    return (repo_root / raw).resolve() if not raw.is_absolute() else raw.resolve()


def write_text_file(path: Path, content: str, *, encoding: str = "utf-8") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding=encoding)
    return path
