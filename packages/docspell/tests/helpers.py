from __future__ import annotations

import os
import subprocess
import sys
import textwrap
from pathlib import Path
from typing import Any

from docspell.config import DEFAULTS, SpellConfig, merge_config
from docspell.core.context import RunContext

ROOT = Path(__file__).resolve().parents[3]
SRC = ROOT / "packages/docspell/src"

BANNER = "@(#) International Ispell Version 3.1.20 (but really Fake Aspell 0.60.8)"

# ispell pipe protocol: banner, then per "^" line one report per bad word and a blank line
FAKE_ENGINE = textwrap.dedent(
    '''
    import sys

    MISSPELLED = {"teh", "recieve", "seperate", "wierd", "occured"}

    accepted = set()
    for arg in sys.argv[1:]:
        if arg.startswith("--extra-dicts="):
            with open(arg.split("=", 1)[1], encoding="utf-8") as handle:
                accepted = {line.strip().lower() for line in list(handle)[1:] if line.strip()}

    print("BANNER", flush=True)
    for raw in sys.stdin:
        line = raw.rstrip("\\n")
        if line.startswith("!"):
            continue
        if not line.startswith("^"):
            continue
        offset = 0
        for word in line[1:].split():
            clean = word.strip(".,;:!?()\\"'").lower()
            if clean in MISSPELLED and clean not in accepted:
                print(f"& {clean} 1 {offset}: the")
            offset += len(word) + 1
        print("")
        sys.stdout.flush()
    '''
).replace("BANNER", BANNER)

# strips pod directive lines, keeps prose
FAKE_RENDERER = textwrap.dedent(
    '''
    import sys

    with open(sys.argv[1], encoding="utf-8") as handle:
        for line in handle:
            if line.startswith("="):
                continue
            sys.stdout.write(line)
    '''
)

CRASHING_RENDERER = textwrap.dedent(
    '''
    import sys

    sys.stderr.write("Could not find Pod::To::Text\\n")
    raise SystemExit(3)
    '''
)

HANGING_RENDERER = textwrap.dedent(
    '''
    import time

    time.sleep(60)
    '''
)


def write_script(directory: Path, name: str, source: str) -> Path:
    path = directory / name
    path.write_text(source, encoding="utf-8")
    return path


def tool_config(tools_dir: Path, renderer_source: str = FAKE_RENDERER, probe_code: int = 0, **overrides: Any) -> SpellConfig:
    engine = write_script(tools_dir, "fake_engine.py", FAKE_ENGINE)
    renderer = write_script(tools_dir, "fake_renderer.py", renderer_source)
    data = merge_config(
        DEFAULTS,
        {
            "engine": {
                "command": [sys.executable, str(engine), "-a", "--ignore-case", "--extra-dicts={dictionary}"],
                "probe": [sys.executable, "-c", f"print({BANNER!r}); raise SystemExit({probe_code})"],
            },
            "renderer": {"command": [sys.executable, str(renderer), "{file}"]},
            "timeout_seconds": 20,
        },
    )
    return SpellConfig.from_mapping(merge_config(data, overrides), source="<test>")


def make_ctx(repo_root: Path, output_format: str = "text") -> RunContext:
    return RunContext(
        run_id="pytest-run",
        repo_root=repo_root,
        output_format=output_format,  # type: ignore[arg-type]
        verbose=False,
        quiet=True,
        log_json=False,
        git_sha="unknown",
        git_dirty=False,
    )


def write_config_yaml(repo_root: Path, tools_dir: Path, probe_code: int = 0, renderer_source: str = FAKE_RENDERER) -> Path:
    engine = write_script(tools_dir, "fake_engine.py", FAKE_ENGINE)
    renderer = write_script(tools_dir, "fake_renderer.py", renderer_source)
    path = repo_root / "configs/docspell.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        textwrap.dedent(
            f"""
            engine:
              command: [{sys.executable!r}, {str(engine)!r}, "-a", "--extra-dicts={{dictionary}}"]
              probe: [{sys.executable!r}, "-c", "raise SystemExit({probe_code})"]
            renderer:
              command: [{sys.executable!r}, {str(renderer)!r}, "{{file}}"]
            timeout_seconds: 20
            """
        ),
        encoding="utf-8",
    )
    return path


def run_docspell(*args: str, cwd: Path, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    run_env = os.environ.copy()
    run_env["PYTHONPATH"] = str(SRC)
    run_env["RUN_ID"] = "pytest-run"
    run_env.pop("CI", None)
    run_env.pop("DOCSPELL_CONFIG", None)
    if env:
        run_env.update(env)
    return subprocess.run(
        [sys.executable, "-m", "docspell.cli", "--quiet", *args],
        cwd=cwd,
        env=run_env,
        text=True,
        capture_output=True,
        check=False,
    )
