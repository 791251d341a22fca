"""bigbrother - agent wiring and entry point."""

import logging
import signal
import sys
import threading
import time
from collections.abc import Sequence

from bigbrother.agentlog import AgentLogger
from bigbrother.config import APP_NAME, VERSION, AgentConfig, load_config
from bigbrother.providers import ProviderSet, SysfsUsbDeviceProvider
from bigbrother.scheduler import Scheduler, TaskHandle
from bigbrother.tombstone import Tombstone
from bigbrother.writer import LogWriterError, RenameTimer, RotatingLogWriter, temp_log_path

logger = logging.getLogger(__name__)


def default_providers() -> ProviderSet:
    """Providers for the current platform."""
    providers = ProviderSet()
    if sys.platform.startswith("linux"):
        providers.usb_devices = SysfsUsbDeviceProvider()
    return providers


class Agent:
    """
    The running agent: crash file, log writer, rename timer and scheduler.

    Logging begins immediately in a randomly named ``BBT`` file, which is
    renamed to its timestamped ``BB`` name after ``config.rename_delay``.
    """

    def __init__(self, config: AgentConfig, providers: ProviderSet | None = None) -> None:
        """
        Initialize the Agent.

        Raises:
            LogWriterError: If the startup log file cannot be opened.
        """
        self._config = config
        self._tombstone = Tombstone(config.tombstone_path, app_name=APP_NAME)
        self._writer = RotatingLogWriter(temp_log_path(config.log_dir))
        self._log = AgentLogger(
            self._writer,
            trace_enabled=config.trace_enabled,
            debug_enabled=config.debug_enabled,
        )
        self._scheduler = Scheduler(
            self._log,
            self._tombstone,
            providers if providers is not None else default_providers(),
        )
        self._rename_timer = RenameTimer(
            self._writer,
            config.log_dir,
            config.rename_delay,
            before=lambda: self._note(
                "**************BIG BROTHER ABOUT TO SWITCH FROM TEMP RANDOM FILE NAME "
                "TO PERMANENT DATETIME FILENAME**************"
            ),
            after=lambda: self._note(
                "**************BIG BROTHER FINISHED SWITCHING FROM TEMP RANDOM FILE NAME "
                "TO PERMANENT DATETIME FILENAME**************"
            ),
            on_error=lambda exc: self._tombstone.epitaph(str(exc)),
        )
        self._handles: list[TaskHandle] = []
        self._stop_event = threading.Event()

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def writer(self) -> RotatingLogWriter:
        return self._writer

    @property
    def tombstone(self) -> Tombstone:
        return self._tombstone

    @property
    def handles(self) -> list[TaskHandle]:
        return list(self._handles)

    def start(self) -> None:
        """Write the banner, arm the rename timer and start the autostart tasks."""
        self._rename_timer.start()
        self._note("%s v%s", APP_NAME, VERSION)
        for settings in self._config.tasks:
            handle = self._scheduler.add_task(settings.config)
            self._handles.append(handle)
            if settings.autostart:
                self._scheduler.start(handle)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop all tasks and the rename timer, then close the log file.

        Ticks already in flight get up to ``timeout`` seconds to finish
        before the file is closed under them.
        """
        self._rename_timer.cancel()
        self._scheduler.stop_all(timeout=timeout)
        self._wait_for_ticks(timeout)
        self._writer.close()
        self._stop_event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until :meth:`stop` is called."""
        return self._stop_event.wait(timeout)

    def _wait_for_ticks(self, timeout: float | None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        for handle in self._handles:
            task = self._scheduler.task(handle)
            while task.is_ticking:
                if deadline is not None and time.monotonic() >= deadline:
                    logger.warning("Closing log with task %s still ticking", task.name)
                    return
                time.sleep(0.01)

    def _note(self, message: str, *args: object) -> None:
        try:
            self._log.debug(message, *args)
        except LogWriterError as exc:
            self._tombstone.epitaph(str(exc))


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the bigbrother agent."""
    config, args = load_config(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        agent = Agent(config)
    except LogWriterError as exc:
        Tombstone(config.tombstone_path, app_name=APP_NAME).epitaph(str(exc))
        logger.error("Cannot start: %s", exc)
        return 1

    def _shutdown(signum, frame) -> None:
        agent.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    agent.start()
    while not agent.wait(timeout=1.0):
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
