"""Crash-resilient log file writer with in-place rotation."""

import errno
import logging
import os
import shutil
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from bigbrother.formatting import generate_datetime_string, generate_random_string

logger = logging.getLogger(__name__)

TEMP_PREFIX = "BBT "
FINAL_PREFIX = "BB "
LOG_SUFFIX = ".txt"


class LogWriterError(Exception):
    """Raised when the log file cannot be opened, written or rotated."""


def temp_log_path(log_dir: Path | str) -> Path:
    """Randomly named startup file: ``BBT <token>.txt``."""
    return Path(log_dir) / f"{TEMP_PREFIX}{generate_random_string()}{LOG_SUFFIX}"


def final_log_path(log_dir: Path | str, when: datetime | None = None) -> Path:
    """Timestamp named file: ``BB <dd-MM-yyyy HH.mm.ss>.txt``."""
    return Path(log_dir) / f"{FINAL_PREFIX}{generate_datetime_string(when)}{LOG_SUFFIX}"


class RotatingLogWriter:
    """
    Owns the active log file handle.

    All writes and rotations are serialized by one re-entrant lock, exposed as
    :attr:`lock` so callers can keep a group of lines together. Every write is
    flushed immediately so the file survives a crash of the process.
    """

    def __init__(self, path: Path | str) -> None:
        """
        Initialize the writer and open ``path``.

        Raises:
            LogWriterError: If the file cannot be created or opened.
        """
        self._lock = threading.RLock()
        self._stream: BinaryIO | None = None
        self._path: Path | None = None
        self.open(path)

    @property
    def lock(self) -> threading.RLock:
        """Writer-wide lock shared by write and rotate."""
        return self._lock

    @property
    def path(self) -> Path | None:
        """Path of the active log file."""
        return self._path

    @property
    def is_open(self) -> bool:
        """Check if the writer has an active file handle."""
        return self._stream is not None

    def open(self, path: Path | str) -> None:
        """
        Open ``path`` for append, creating its directory if missing.

        Any previously open handle is closed once the new one is open.
        """
        path = Path(path)
        with self._lock:
            stream = self._open_stream(path)
            previous = self._stream
            self._stream = stream
            self._path = path
            if previous is not None:
                previous.close()

    def write(self, line: str) -> None:
        """Append ``line`` as UTF-8 and flush."""
        data = line.encode("utf-8")
        with self._lock:
            if self._stream is None:
                raise LogWriterError("log writer is closed")
            try:
                self._stream.write(data)
                self._stream.flush()
            except (OSError, ValueError) as exc:
                raise LogWriterError(f"write to {self._path} failed: {exc}") from exc

    def rotate(self, new_path: Path | str) -> None:
        """
        Move the active file to ``new_path`` and continue writing there.

        The file is renamed when possible and copied then truncated when the
        rename is not possible (e.g. across devices). An existing ``new_path``
        is refused with :class:`LogWriterError` and writing continues in the
        active file. If the active file has disappeared, or the move or the new
        handle fails, the writer is closed and :class:`LogWriterError` is raised.
        """
        new_path = Path(new_path)
        with self._lock:
            if self._stream is None or self._path is None:
                raise LogWriterError("log writer is closed")
            old_path = self._path
            if new_path.exists():
                raise LogWriterError(f"rotation {old_path} -> {new_path} refused: target exists")
            try:
                self._stream.flush()
                if not old_path.exists():
                    raise FileNotFoundError(errno.ENOENT, "active log file is gone", str(old_path))
                new_path.parent.mkdir(parents=True, exist_ok=True)
                try:
                    os.rename(old_path, new_path)
                except OSError as exc:
                    logger.debug("Rename %s -> %s failed (%s), copying", old_path, new_path, exc)
                    shutil.copyfile(old_path, new_path)
                    self._stream.truncate(0)
                new_stream = self._open_stream(new_path)
            except (OSError, LogWriterError) as exc:
                self._close_stream()
                raise LogWriterError(f"rotation {old_path} -> {new_path} failed: {exc}") from exc

            self._stream.close()
            self._stream = new_stream
            self._path = new_path
            logger.info("Log file rotated: %s -> %s", old_path, new_path)

    def close(self) -> None:
        """Close the active file handle."""
        with self._lock:
            self._close_stream()

    def __enter__(self) -> "RotatingLogWriter":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _open_stream(self, path: Path) -> BinaryIO:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            stream = open(path, "ab")
            stream.seek(0, os.SEEK_END)
        except OSError as exc:
            raise LogWriterError(f"cannot open log file {path}: {exc}") from exc
        return stream

    def _close_stream(self) -> None:
        if self._stream is not None:
            try:
                self._stream.close()
            finally:
                self._stream = None


class RenameTimer:
    """
    One-shot timer that moves the writer from its temporary file to a final name.

    ``before`` and ``after`` are called around the rotation, so the switch is
    visible in the log itself. ``on_error`` receives the rotation failure.
    """

    def __init__(
        self,
        writer: RotatingLogWriter,
        log_dir: Path | str,
        delay: float,
        before: Callable[[], None] | None = None,
        after: Callable[[], None] | None = None,
        on_error: Callable[[LogWriterError], None] | None = None,
    ) -> None:
        self._writer = writer
        self._log_dir = Path(log_dir)
        self._before = before
        self._after = after
        self._on_error = on_error
        self._error: LogWriterError | None = None
        self._timer = threading.Timer(delay, self._fire)
        self._timer.daemon = True
        self._timer.name = "RenameTimer"

    @property
    def error(self) -> LogWriterError | None:
        """Rotation failure, if the rotation ran and failed."""
        return self._error

    def start(self) -> None:
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()

    def join(self, timeout: float | None = None) -> None:
        self._timer.join(timeout)

    def _fire(self) -> None:
        if self._before is not None:
            self._before()
        try:
            self._writer.rotate(final_log_path(self._log_dir))
        except LogWriterError as exc:
            self._error = exc
            logger.error("Log file rename failed: %s", exc)
            if self._on_error is not None:
                self._on_error(exc)
            return
        if self._after is not None:
            self._after()
