"""
Structured logging for synchronization runs.
Every event is written as a readable log line and, optionally, as a JSON Lines
record with session context for later analysis.
"""

import json
import logging
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable records.

    Usage:
        logger = StructuredLogger("manifest_sync", log_dir=Path("logs"))
        logger.info("file_downloaded", path="jar/x.jar", size_bytes=1024)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
    ):
        """
        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None

        self._logger = logging.getLogger(name)
        self._json_lock = threading.Lock()
        self._json_file = None
        self.json_log_path: Path | None = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.json_log_path = log_dir / f"manifest_sync_{timestamp}.jsonl"
            self._json_file = open(self.json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all JSON records."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        for key, value in context.items():
            parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }
        with self._json_lock:
            if not self._json_file or self._json_file.closed:
                return
            try:
                self._json_file.write(json.dumps(entry, default=str) + "\n")
                self._json_file.flush()
            except (OSError, TypeError) as e:
                print(f"JSON logging failed: {e}", file=sys.stderr)

    def _emit(self, level: int, event: str, **context) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._emit(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._emit(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._emit(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._emit(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        with self._json_lock:
            if self._json_file and not self._json_file.closed:
                self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class SyncEventLogger:
    """Named events emitted by the synchronization engine."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def run_started(self, manifest_url: str, output_root: str, max_workers: int):
        self.logger.info(
            "run_started",
            manifest_url=manifest_url,
            output_root=output_root,
            max_workers=max_workers,
        )

    def run_completed(self, completed: int, total: int, failed: int, duration_s: float):
        self.logger.info(
            "run_completed",
            completed=completed,
            total=total,
            failed=failed,
            duration_s=round(duration_s, 2),
        )

    def run_failed(self, error: str):
        self.logger.error("run_failed", error=error)

    def manifest_fetched(self, component: str, url: str, size_bytes: int):
        self.logger.info(
            "manifest_fetched", component=component, url=url, size_bytes=size_bytes
        )

    def manifest_cached(self, component: str, sha1: str):
        self.logger.debug("manifest_cached", component=component, sha1=sha1)

    def file_downloaded(self, path: str, url: str, size_bytes: int):
        self.logger.info("file_downloaded", path=path, url=url, size_bytes=size_bytes)

    def file_verified(self, path: str):
        self.logger.debug("file_verified", path=path)

    def file_failed(self, path: str, error: str):
        self.logger.error("file_failed", path=path, error=error)

    def directory_created(self, path: str):
        self.logger.debug("directory_created", path=path)


def create_event_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> SyncEventLogger:
    """
    Create the engine's event logger.

    Returns:
        A SyncEventLogger writing to the `manifest_sync.events` logger.
    """
    base = StructuredLogger(
        "manifest_sync.events", log_dir=log_dir, enable_json=enable_json
    )
    return SyncEventLogger(base)
