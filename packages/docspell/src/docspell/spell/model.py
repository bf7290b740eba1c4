from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FileFormat(str, Enum):
    MARKUP = "markup"
    TEXT = "text"


class CheckStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    ERROR = "error"


@dataclass(frozen=True)
class CandidateFile:
    path: str
    format: FileFormat

    @property
    def needs_render(self) -> bool:
        return self.format == FileFormat.MARKUP


@dataclass(frozen=True)
class CheckResult:
    file: str
    status: CheckStatus
    message: str
    flagged: tuple[str, ...] = ()
    duration_ms: int = 0
    error_kind: str = ""

    @property
    def count(self) -> int:
        return len(self.flagged)

    @property
    def passed(self) -> bool:
        return self.status == CheckStatus.PASS

    def to_payload(self) -> dict[str, object]:
        return {
            "file": self.file,
            "status": self.status.value,
            "count": self.count,
            "message": self.message,
            "flagged": list(self.flagged),
            "duration_ms": self.duration_ms,
            "error_kind": self.error_kind,
        }


@dataclass(frozen=True)
class SuiteReport:
    results: tuple[CheckResult, ...] = ()
    skipped: bool = False
    skip_reason: str = ""
    dictionary: str = ""

    @property
    def plan(self) -> int:
        return len(self.results)

    @property
    def passed_count(self) -> int:
        return sum(1 for row in self.results if row.status == CheckStatus.PASS)

    @property
    def failed_count(self) -> int:
        return sum(1 for row in self.results if row.status == CheckStatus.FAIL)

    @property
    def error_count(self) -> int:
        return sum(1 for row in self.results if row.status == CheckStatus.ERROR)

    @property
    def ok(self) -> bool:
        return all(row.passed for row in self.results)
