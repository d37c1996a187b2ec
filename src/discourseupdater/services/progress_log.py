"""Append-only per-run progress log for fleet updates."""

import json
import os
from datetime import date, datetime, timezone
from typing import Optional

from discourseupdater.constants import FILE_MODE, PROGRESS_LOG_DATE_FORMAT, PROGRESS_LOG_SUFFIX
from discourseupdater.errors import UpdaterError
from discourseupdater.errors_catalog import actionable_error
from discourseupdater.models import UpdateOutcome


def progress_log_path(log_dir: str, run_date: Optional[date] = None) -> str:
    run_date = run_date or datetime.now().date()
    return os.path.join(log_dir, f"{run_date.strftime(PROGRESS_LOG_DATE_FORMAT)}{PROGRESS_LOG_SUFFIX}")


class BatchProgressLog:
    """Owns one log file created exclusively for this run; one JSON line per install."""

    def __init__(self, path: str, logger):
        self.path = path
        self.logger = logger
        self._file = None

    def open(self):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | os.O_APPEND | getattr(os, "O_NOFOLLOW", 0)
        try:
            fd = os.open(self.path, flags, FILE_MODE)
        except FileExistsError as exc:
            raise UpdaterError(actionable_error("progress_log_exists", path=self.path)) from exc
        except OSError as exc:
            raise UpdaterError(f"Could not create progress log '{self.path}': {exc}") from exc

        self._file = os.fdopen(fd, "a", encoding="utf-8")
        self.logger.info("Writing update progress to %s", self.path)
        return self

    def record(self, outcome: UpdateOutcome):
        if self._file is None:
            raise UpdaterError("Progress log is not open.")

        status = outcome.final_status
        entry = {
            "install": outcome.install,
            "timestamp": self._now(),
            "status": status.kind.value,
            "stage": status.stage.value if status.stage else None,
            "reason": status.reason,
        }
        try:
            self._file.write(json.dumps(entry, sort_keys=True) + "\n")
            self._file.flush()
        except OSError as exc:
            raise UpdaterError(f"Could not write progress log '{self.path}': {exc}") from exc

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
