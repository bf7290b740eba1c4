from __future__ import annotations

import shutil

from ..cli.output import build_base_payload, emit
from ..config import load_config
from ..core.context import RunContext
from ..core.git import tracked_files
from ..spell.checker import probe_engine


def run_doctor(ctx: RunContext, config_path: str | None) -> int:
    config = load_config(ctx.repo_root, config_path)
    probe = probe_engine(ctx, config)
    renderer = config.renderer_command[0]
    tools = [
        {"name": config.engine_name, "present": probe.available, "version": probe.version},
        {"name": renderer, "present": shutil.which(renderer) is not None, "version": ""},
        {"name": "git", "present": tracked_files(ctx.repo_root) is not None, "version": ""},
    ]
    payload = build_base_payload(ctx, "docspell.doctor.v1")
    payload["tools"] = tools
    payload["config"] = config.to_payload()
    if ctx.as_json:
        emit(payload)
    else:
        for tool in tools:
            state = "ok" if tool["present"] else "missing"
            suffix = f" ({tool['version']})" if tool["version"] else ""
            print(f"{tool['name']}: {state}{suffix}")
        print(f"config: {config.source}")
    return 0
