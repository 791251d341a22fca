"""Category logging on top of the rotating log writer."""

import logging
import traceback

from bigbrother.formatting import LogCategory, format_line
from bigbrother.writer import RotatingLogWriter

# Mirror of every line written to the log file.
output_logger = logging.getLogger("bigbrother.output")


class AgentLogger:
    """
    Writes category-tagged lines to a :class:`RotatingLogWriter`.

    Constructed once at process start and handed to the scheduler and every
    sampling task.
    """

    def __init__(
        self,
        writer: RotatingLogWriter,
        trace_enabled: bool = True,
        debug_enabled: bool = True,
    ) -> None:
        self._writer = writer
        self.trace_enabled = trace_enabled
        self.debug_enabled = debug_enabled

    @property
    def writer(self) -> RotatingLogWriter:
        return self._writer

    def trace(self, message: str, *args: object) -> None:
        if self.trace_enabled:
            self._write(LogCategory.TRACE, message, args)

    def debug(self, message: str, *args: object) -> None:
        if self.debug_enabled:
            self._write(LogCategory.DEBUG, message, args)

    def audit(self, message: str, *args: object) -> None:
        self._write(LogCategory.AUDIT, message, args)

    def error(self, message: str, *args: object) -> None:
        self._write(LogCategory.ERROR, message, args)

    def exception(self, exc: BaseException, context: str | None = None) -> None:
        """
        Log an exception, its traceback and its chained causes as ERROR lines.

        The whole group is written under the writer lock so no other line can
        land in the middle of it.
        """
        with self._writer.lock:
            if context:
                self._write(LogCategory.ERROR, context, ())
            level = 0
            prefix = ""
            seen: set[int] = set()
            current: BaseException | None = exc
            while current is not None and id(current) not in seen:
                seen.add(id(current))
                self._write(
                    LogCategory.ERROR,
                    "%s%s: %s",
                    (prefix, type(current).__name__, current),
                )
                for frame in traceback.format_tb(current.__traceback__):
                    for line in frame.rstrip("\n").split("\n"):
                        self._write(LogCategory.ERROR, "... %s", (line,))
                current = current.__cause__ or current.__context__
                if current is not None and id(current) not in seen:
                    level += 1
                    prefix = f"Inner({level}) "

    def _write(self, category: LogCategory, message: str, args: tuple) -> None:
        if args:
            message = message % args
        line = format_line(category, message)
        self._writer.write(line)
        output_logger.debug(line.rstrip("\n"))
