"""Last-resort crash recording."""

import logging
import os
from datetime import datetime
from pathlib import Path

from bigbrother.formatting import generate_datetime_string

logger = logging.getLogger(__name__)


class Tombstone:
    """
    Append-only crash file for when the agent hits an unexpected error or dies.

    Every call to :meth:`epitaph` opens, writes and closes the file itself, so
    the tombstone keeps working when the main log writer is broken. Failures
    inside ``epitaph`` are not caught: there is nowhere left to report them.
    """

    def __init__(self, grave_address: Path | str, app_name: str = "BigBrother") -> None:
        """
        Initialize the Tombstone.

        Args:
            grave_address: Fixed path of the crash file.
            app_name: Application identity written into each record.
        """
        self._grave_address = Path(grave_address)
        self._app_name = app_name

    @property
    def grave_address(self) -> Path:
        """Get the crash file path."""
        return self._grave_address

    def epitaph(self, last_words: str, when: datetime | None = None) -> None:
        """Append a cause-of-death record to the crash file."""
        record = (
            f"\nHere lies the departed {self._app_name} "
            f"{generate_datetime_string(when)}: {last_words}"
        )
        self._grave_address.parent.mkdir(parents=True, exist_ok=True)
        with open(self._grave_address, "ab") as grave:
            grave.seek(0, os.SEEK_END)
            grave.write(record.encode("utf-8"))
            grave.flush()
            os.fsync(grave.fileno())
        logger.warning("Tombstone record written to %s: %s", self._grave_address, last_words)
