"""Exception hierarchy for pydeadcode.

Only configuration problems are fatal. Per-file problems (ParseError,
SourceReadError) are caught by the pipeline and turned into warnings.
"""
from pathlib import Path
from typing import Any, Dict, Optional


class PyDeadCodeError(Exception):
    """Base exception for all pydeadcode errors."""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ParseError(PyDeadCodeError):
    """Raised when a file's syntax could not be parsed at all."""

    def __init__(self, file: str, line: int, message: str):
        super().__init__(
            f"Failed to parse {file}: {message}",
            details={"file": str(file), "line": str(line)},
        )
        self.file = str(file)
        self.line = line
        self.reason = message


class SourceReadError(PyDeadCodeError):
    """Raised when a source file cannot be read as UTF-8 text."""

    def __init__(self, file: Path | str, reason: str):
        super().__init__(
            f"Cannot read file: {file}",
            details={"file": str(file), "reason": reason},
        )
        self.file = str(file)
        self.reason = reason


class ConfigurationError(PyDeadCodeError):
    """Raised when a configuration value is invalid. Fatal: the run does not start."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {value!r}",
            details={"key": key, "reason": reason},
        )
        self.key = key
        self.value = value
        self.reason = reason
