from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest

from docspell.spell.pipeline import CommandStage, Pipeline, PipelineStalledError, StageFailedError, TransformStage

PY = sys.executable


def _upper(lines: Iterator[bytes]) -> Iterator[bytes]:
    for line in lines:
        yield line.upper()


def _cat() -> CommandStage:
    return CommandStage("cat", (PY, "-c", "import sys; sys.stdout.write(sys.stdin.read())"))


def test_pipeline_requires_a_stage(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        Pipeline([], cwd=tmp_path)


def test_command_then_transform_then_command(tmp_path: Path) -> None:
    produce = CommandStage("produce", (PY, "-c", "print('alpha'); print('beta')"))
    pipeline = Pipeline([produce, TransformStage("upper", _upper), _cat()], cwd=tmp_path, timeout_seconds=20)
    assert pipeline.run() == b"ALPHA\nBETA\n"
    assert pipeline.names == ("produce", "upper", "cat")


def test_source_file_feeds_first_stage(tmp_path: Path) -> None:
    source = tmp_path / "in.txt"
    source.write_bytes(b"one\ntwo")
    pipeline = Pipeline([TransformStage("upper", _upper), _cat()], cwd=tmp_path, timeout_seconds=20)
    assert pipeline.run(source) == b"ONE\nTWO"


def test_large_stream_does_not_deadlock(tmp_path: Path) -> None:
    produce = CommandStage("produce", (PY, "-c", "import sys\nfor i in range(200000): sys.stdout.write(f'line {i}\\n')"))
    pipeline = Pipeline([produce, TransformStage("upper", _upper), _cat()], cwd=tmp_path, timeout_seconds=60)
    output = pipeline.run()
    assert output.count(b"\n") == 200000
    assert output.startswith(b"LINE 0\n")


def test_failing_first_stage_is_reported_with_stderr(tmp_path: Path) -> None:
    crash = CommandStage("render", (PY, "-c", "import sys; sys.stderr.write('no pod here'); raise SystemExit(3)"))
    pipeline = Pipeline([crash, TransformStage("upper", _upper), _cat()], cwd=tmp_path, timeout_seconds=20)
    with pytest.raises(StageFailedError) as exc:
        pipeline.run()
    assert exc.value.stage == "render"
    assert exc.value.code == 3
    assert "no pod here" in str(exc.value)


def test_discarded_stderr_is_not_reported(tmp_path: Path) -> None:
    noisy = CommandStage("check", (PY, "-c", "import sys; sys.stderr.write('chatter'); raise SystemExit(2)"), keep_stderr=False)
    with pytest.raises(StageFailedError) as exc:
        Pipeline([noisy], cwd=tmp_path, timeout_seconds=20).run()
    assert exc.value.code == 2
    assert exc.value.detail == ""


def test_missing_binary_is_a_stage_failure(tmp_path: Path) -> None:
    missing = CommandStage("render", ("docspell-definitely-not-installed", "x"))
    with pytest.raises(StageFailedError) as exc:
        Pipeline([missing, _cat()], cwd=tmp_path, timeout_seconds=20).run()
    assert exc.value.stage == "render"
    assert exc.value.code == 127


def test_transform_exception_fails_its_stage(tmp_path: Path) -> None:
    def _explode(lines: Iterator[bytes]) -> Iterator[bytes]:
        for _line in lines:
            raise RuntimeError("bad byte")
        yield b""

    produce = CommandStage("produce", (PY, "-c", "print('x')"))
    with pytest.raises(StageFailedError) as exc:
        Pipeline([produce, TransformStage("format", _explode), _cat()], cwd=tmp_path, timeout_seconds=20).run()
    assert exc.value.stage == "format"
    assert "bad byte" in str(exc.value)


@pytest.mark.slow
def test_hung_stage_stalls_pipeline_and_is_killed(tmp_path: Path) -> None:
    hang = CommandStage("render", (PY, "-c", "import time; time.sleep(60)"))
    pipeline = Pipeline([hang, TransformStage("upper", _upper), _cat()], cwd=tmp_path, timeout_seconds=1)
    with pytest.raises(PipelineStalledError) as exc:
        pipeline.run()
    assert exc.value.timeout_seconds == 1
    assert "stalled" in str(exc.value)
