from __future__ import annotations

from pathlib import Path


class SyncError(Exception):
    """Base class for errors that terminate a sync run."""


class ConfigurationError(SyncError, ValueError):
    pass


class InvalidPatternError(ConfigurationError):
    def __init__(self, pattern: str, message: str) -> None:
        super().__init__(f"Invalid ignore pattern '{pattern}': {message}")
        self.pattern = pattern
        self.message = message


class TransferError(SyncError):
    def __init__(self, path: Path, action: str, cause: BaseException) -> None:
        super().__init__(f"Failed to {action} {path}: {cause}")
        self.path = path
        self.action = action
        self.cause = cause
