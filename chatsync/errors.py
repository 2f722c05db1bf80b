"""Exception types and user-facing notices."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ChatSyncError(Exception):
    """Base class for chatsync errors."""


class StoreError(ChatSyncError):
    """Raised by a store or event stream backend when an operation fails."""


class RecordValidationError(ChatSyncError, ValueError):
    """Raised when a store record does not have the expected shape."""


class FirstLaunchException(ChatSyncError):
    """Raised when no config file existed and a default one was written."""

    def __init__(self, config_path: Path):
        self.config_path = config_path
        super().__init__(f"Default configuration created at {config_path}")


class ErrorSeverity(Enum):
    """Error severity levels."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Notice:
    """A transient, user-visible notification raised by one operation."""

    title: str
    description: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    created_at: int = field(default_factory=lambda: int(time.time() * 1000))
