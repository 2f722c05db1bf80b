"""Logging configuration for chatsync."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that flood DEBUG output while the TUI redraws
NOISY_LOGGERS = ("asyncio", "textual", "markdown_it")


class LogManager:
    """Routes chatsync logs to a rotating file and, optionally, stderr.

    The TUI owns the terminal, so console output is off unless asked for.
    """

    def __init__(self, log_dir: Path | None = None):
        self.log_dir = log_dir or Path.home() / ".chatsync" / "logs"
        self.log_file = self.log_dir / "chatsync.log"

    def _file_handler(self, max_bytes: int, backup_count: int) -> logging.Handler:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(
            self.log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )

    def setup_logging(
        self,
        level: str = "INFO",
        log_to_file: bool = True,
        log_to_console: bool = False,
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 5,
    ) -> None:
        """Replace the root logger's handlers.

        Args:
            level: Root level name; unknown names mean INFO
            log_to_file: Write to ``log_file`` with size-based rotation
            log_to_console: Also write to stderr
            max_bytes: Rotate once the file reaches this size
            backup_count: Rotated files kept alongside the live one
        """
        handlers: list[logging.Handler] = []
        if log_to_file:
            handlers.append(self._file_handler(max_bytes, backup_count))
        if log_to_console:
            handlers.append(logging.StreamHandler())

        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        root = logging.getLogger()
        root.handlers.clear()
        for handler in handlers:
            handler.setFormatter(formatter)
            root.addHandler(handler)

        root_level = getattr(logging, level.upper(), logging.INFO)
        root.setLevel(root_level)
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(root_level, logging.WARNING))

    def setup_from_config(self, config: dict[str, Any]) -> None:
        """Apply the ``log_*`` settings of a loaded config."""
        self.setup_logging(
            level=config.get("log_level", "INFO"),
            log_to_file=config.get("log_to_file", True),
            log_to_console=config.get("log_to_console", False),
            max_bytes=int(config.get("max_log_size_mb", 10)) * 1024 * 1024,
            backup_count=int(config.get("log_backup_count", 5)),
        )
