"""Documentation spell-check harness: selection, dictionary, pipelines and reporting."""

from .model import CandidateFile, CheckResult, CheckStatus, FileFormat, SuiteReport

__all__ = ["CandidateFile", "CheckResult", "CheckStatus", "FileFormat", "SuiteReport"]
