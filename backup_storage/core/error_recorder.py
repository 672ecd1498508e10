"""
Backup Error Recorder

Collects failures from the writers of a backup session so that the session
can decide between commit and rollback after all writers are done.
"""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from ..exceptions import BackupSessionError

logger = logging.getLogger(__name__)


class ErrorRecorder:
    """
    Thread-safe, per-file error sink owned by a backup handle.

    Writers running concurrently (asyncio tasks or executor threads) record
    failures here instead of tearing the whole session down immediately. The
    owner inspects the recorder before end_backup/abort_backup.

    Example:
        ```python
        recorder = handle.error_recorder
        try:
            await writer.write(chunk)
        except OSError as e:
            recorder.record_error("3", e)

        if recorder.has_errors():
            await handle.abort_backup()
        ```
    """

    def __init__(self, directory: Optional[str] = None, name: Optional[str] = None):
        self._directory = directory
        self._name = name
        self._lock = threading.Lock()
        self._errors: Dict[str, List[BaseException]] = {}
        self._order: List[Tuple[str, BaseException]] = []

    def record_error(self, filename: str, err: Optional[BaseException]) -> None:
        """
        Record a failure for a file. ``None`` is ignored.

        Args:
            filename: File the failure belongs to
            err: The failure
        """
        if err is None:
            return
        with self._lock:
            self._errors.setdefault(filename, []).append(err)
            self._order.append((filename, err))
        logger.debug(f"Recorded error for file '{filename}': {err}")

    def has_errors(self) -> bool:
        with self._lock:
            return bool(self._errors)

    def error(self) -> Optional[BackupSessionError]:
        """
        Aggregate every recorded failure into a single exception.

        Returns:
            BackupSessionError listing the failures, or None if there are none
        """
        with self._lock:
            if not self._errors:
                return None
            file_errors = list(self._order)
        failed = len(dict.fromkeys(filename for filename, _ in file_errors))
        return BackupSessionError(
            f"{failed} file(s) failed during the backup session",
            file_errors=file_errors,
            directory=self._directory,
            name=self._name
        )

    def get_failed_files(self) -> List[str]:
        """Names of the files with at least one recorded failure, in first-failure order."""
        with self._lock:
            return list(dict.fromkeys(f for f, _ in self._order))

    def reset_error_for_file(self, filename: str) -> None:
        """Forget the failures of one file, for callers that retried it successfully."""
        with self._lock:
            self._errors.pop(filename, None)
            self._order = [(f, e) for f, e in self._order if f != filename]
