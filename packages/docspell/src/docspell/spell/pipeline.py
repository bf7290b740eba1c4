"""Byte-stream pipelines of external processes and in-process transforms.

Every stage consumes the upstream byte stream on its stdin side and exposes a
downstream byte stream. All stages of a pipeline run concurrently, connected
by OS pipes, so nothing is buffered to disk between them.
"""

from __future__ import annotations

import os
import signal
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Iterator, Protocol, Sequence, Union

StreamTransform = Callable[[Iterator[bytes]], Iterator[bytes]]


class StageFailedError(Exception):
    def __init__(self, stage: str, code: int, detail: str = "") -> None:
        self.stage = stage
        self.code = code
        self.detail = detail.strip()
        message = f"{stage} stage exited with {code}"
        super().__init__(f"{message}: {self.detail}" if self.detail else message)


class PipelineStalledError(Exception):
    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"pipeline stalled: no completion after {timeout_seconds:g}s")


class RunningStage(Protocol):
    name: str
    stdout: BinaryIO

    def wait(self, timeout: float | None) -> int: ...

    def kill(self) -> None: ...

    def detail(self) -> str: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class CommandStage:
    """External process stage."""

    name: str
    argv: tuple[str, ...]
    keep_stderr: bool = True

    def start(self, upstream: BinaryIO | None, cwd: Path) -> "_RunningCommand":
        stderr_sink = tempfile.TemporaryFile() if self.keep_stderr else None
        try:
            proc = subprocess.Popen(
                list(self.argv),
                cwd=cwd,
                stdin=upstream if upstream is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=stderr_sink if stderr_sink is not None else subprocess.DEVNULL,
            )
        except OSError as exc:
            if stderr_sink is not None:
                stderr_sink.close()
            raise StageFailedError(self.name, 127, f"{self.argv[0]}: {exc.strerror or exc}") from exc
        finally:
            # the child holds its own copy of the upstream descriptor
            if upstream is not None:
                upstream.close()
        return _RunningCommand(self.name, proc, stderr_sink)


class _RunningCommand:
    def __init__(self, name: str, proc: subprocess.Popen[bytes], stderr_sink: BinaryIO | None) -> None:
        self.name = name
        self.proc = proc
        self.stdout: BinaryIO = proc.stdout  # type: ignore[assignment]
        self._stderr = stderr_sink

    def wait(self, timeout: float | None) -> int:
        return self.proc.wait(timeout=timeout)

    def kill(self) -> None:
        if self.proc.poll() is None:
            self.proc.kill()
        self.proc.wait()

    def detail(self) -> str:
        if self._stderr is None:
            return ""
        self._stderr.seek(0)
        return self._stderr.read().decode("utf-8", errors="replace")

    def close(self) -> None:
        if self._stderr is not None:
            self._stderr.close()
            self._stderr = None


@dataclass(frozen=True)
class TransformStage:
    """In-process stage rewriting the stream line by line on a pump thread."""

    name: str
    transform: StreamTransform

    def start(self, upstream: BinaryIO | None, cwd: Path) -> "_RunningTransform":
        read_fd, write_fd = os.pipe()
        return _RunningTransform(
            self.name,
            self.transform,
            upstream,
            os.fdopen(read_fd, "rb"),
            os.fdopen(write_fd, "wb"),
        )


class _RunningTransform:
    def __init__(
        self,
        name: str,
        transform: StreamTransform,
        upstream: BinaryIO | None,
        downstream_reader: BinaryIO,
        downstream_writer: BinaryIO,
    ) -> None:
        self.name = name
        self.stdout = downstream_reader
        self._transform = transform
        self._upstream = upstream
        self._writer = downstream_writer
        self._error: Exception | None = None
        self._thread = threading.Thread(target=self._pump, name=f"docspell-{name}", daemon=True)
        self._thread.start()

    def _lines(self) -> Iterator[bytes]:
        if self._upstream is None:
            return iter(())
        return iter(self._upstream.readline, b"")

    def _pump(self) -> None:
        try:
            for chunk in self._transform(self._lines()):
                self._writer.write(chunk)
            self._writer.flush()
        except BrokenPipeError:
            # downstream exited early; its own exit status explains why
            pass
        except Exception as exc:  # noqa: BLE001
            self._error = exc
        finally:
            try:
                self._writer.close()
            except BrokenPipeError:
                pass
            if self._upstream is not None:
                self._upstream.close()

    def wait(self, timeout: float | None) -> int:
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise subprocess.TimeoutExpired(self.name, timeout or 0)
        return 1 if self._error is not None else 0

    def kill(self) -> None:
        # the pump ends once its neighbours are gone and the pipes hit EOF
        self._thread.join(1.0)

    def detail(self) -> str:
        return str(self._error) if self._error is not None else ""

    def close(self) -> None:
        pass


Stage = Union[CommandStage, TransformStage]


def _is_sigpipe(code: int) -> bool:
    return hasattr(signal, "SIGPIPE") and code == -signal.SIGPIPE


class Pipeline:
    def __init__(self, stages: Sequence[Stage], cwd: Path, timeout_seconds: float = 0) -> None:
        if not stages:
            raise ValueError("pipeline requires at least one stage")
        self.stages = tuple(stages)
        self.cwd = cwd
        self.timeout_seconds = timeout_seconds

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(stage.name for stage in self.stages)

    def run(self, source: Path | None = None) -> bytes:
        """Run every stage and return the final stage's stdout.

        `source` feeds the first stage's stdin; without it the first stage
        reads nothing. Raises StageFailedError or PipelineStalledError.
        """
        deadline = (time.monotonic() + self.timeout_seconds) if self.timeout_seconds > 0 else None
        upstream: BinaryIO | None = source.open("rb") if source is not None else None
        running: list[RunningStage] = []
        try:
            for stage in self.stages:
                handle = stage.start(upstream, self.cwd)
                running.append(handle)
                upstream = handle.stdout
            output = self._collect(running[-1].stdout, deadline)
            codes = [handle.wait(self._remaining(deadline)) for handle in running]
            self._raise_for_codes(running, codes)
            return output
        except (PipelineStalledError, subprocess.TimeoutExpired) as exc:
            self._kill_all(running)
            raise PipelineStalledError(self.timeout_seconds) from exc
        except BaseException:
            self._kill_all(running)
            raise
        finally:
            for handle in running:
                handle.close()

    def _collect(self, stream: BinaryIO, deadline: float | None) -> bytes:
        buf = bytearray()

        def _read() -> None:
            with stream:
                for chunk in iter(lambda: stream.read(65536), b""):
                    buf.extend(chunk)

        reader = threading.Thread(target=_read, name="docspell-collect", daemon=True)
        reader.start()
        reader.join(self._remaining(deadline))
        if reader.is_alive():
            raise PipelineStalledError(self.timeout_seconds)
        return bytes(buf)

    @staticmethod
    def _remaining(deadline: float | None) -> float | None:
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    @staticmethod
    def _kill_all(running: list[RunningStage]) -> None:
        # processes first so blocked pump threads see EOF or a broken pipe
        for handle in running:
            if isinstance(handle, _RunningCommand):
                handle.kill()
        for handle in running:
            if not isinstance(handle, _RunningCommand):
                handle.kill()

    @staticmethod
    def _raise_for_codes(running: list[RunningStage], codes: list[int]) -> None:
        failed = [(handle, code) for handle, code in zip(running, codes) if code != 0]
        if not failed:
            return
        # an upstream SIGPIPE exit is a symptom of a downstream failure
        genuine = [(handle, code) for handle, code in failed if not _is_sigpipe(code)]
        handle, code = (genuine or failed)[0]
        raise StageFailedError(handle.name, code, handle.detail())
