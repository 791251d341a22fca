"""Multi-rate scheduler running each sampling task on its own timer."""

import itertools
import logging
import threading
import time
from dataclasses import dataclass

from bigbrother.agentlog import AgentLogger
from bigbrother.providers import ProviderSet
from bigbrother.task import SamplingTask, TaskConfig, TickReport
from bigbrother.tombstone import Tombstone
from bigbrother.writer import LogWriterError

logger = logging.getLogger(__name__)


class SchedulerError(Exception):
    """Raised on lifecycle misuse: unknown task, double start, reconfigure while running."""


@dataclass(slots=True, frozen=True)
class TaskHandle:
    """Opaque reference to a task registered with a Scheduler."""

    id: int
    name: str


class _TaskTimer:
    """
    Fires a task after its due time and then once per period.

    Each firing runs the tick on a fresh daemon thread, so a slow tick never
    delays the timer. Overlap is prevented by the task's own guard.
    """

    def __init__(self, task: SamplingTask, due_time: float, period: float) -> None:
        self._task = task
        self._due_time = due_time
        self._period = period
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        """Check if the timer thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"{self._task.name}-timer",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop firing. A tick already dispatched is left to finish.

        Args:
            timeout: How long to wait for the timer thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _run(self) -> None:
        deadline = time.monotonic() + self._due_time
        while not self._stop_event.wait(timeout=max(0.0, deadline - time.monotonic())):
            threading.Thread(
                target=self._task.tick,
                daemon=True,
                name=f"{self._task.name}-tick",
            ).start()
            deadline += self._period
            # Don't burst to catch up after the host was suspended or overloaded
            now = time.monotonic()
            if deadline < now:
                deadline = now


class Scheduler:
    """
    Owns sampling tasks and their timers.

    Tasks are registered stopped. Every task fires independently of the
    others; the only shared resource is the log writer behind ``log``.
    """

    def __init__(
        self,
        log: AgentLogger,
        tombstone: Tombstone,
        providers: ProviderSet | None = None,
    ) -> None:
        self._log = log
        self._tombstone = tombstone
        self._providers = providers if providers is not None else ProviderSet()
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._tasks: dict[TaskHandle, SamplingTask] = {}
        self._timers: dict[TaskHandle, _TaskTimer] = {}

    @property
    def handles(self) -> list[TaskHandle]:
        with self._lock:
            return list(self._tasks)

    def add_task(self, config: TaskConfig, providers: ProviderSet | None = None) -> TaskHandle:
        """Register a task in the stopped state."""
        task = SamplingTask(
            config,
            providers if providers is not None else self._providers,
            self._log,
            self._tombstone,
        )
        with self._lock:
            handle = TaskHandle(id=next(self._ids), name=config.name)
            self._tasks[handle] = task
        return handle

    def task(self, handle: TaskHandle) -> SamplingTask:
        with self._lock:
            return self._get(handle)

    def is_running(self, handle: TaskHandle) -> bool:
        with self._lock:
            self._get(handle)
            return handle in self._timers

    def start(self, handle: TaskHandle) -> None:
        """Start firing the task after its due time, then every period."""
        with self._lock:
            task = self._get(handle)
            if handle in self._timers:
                raise SchedulerError(f"task {handle.name!r} is already started")
            config = task.config
            timer = _TaskTimer(task, config.due_time, config.period)
            self._timers[handle] = timer
            timer.start()
        logger.info("Started task %s every %.3fs", config.name, config.period)
        self._note("Log generator started: %s | %dms", config.name, round(config.period * 1000))

    def stop(self, handle: TaskHandle, timeout: float | None = 5.0) -> None:
        """Cancel future firings. An in-flight tick is not interrupted."""
        with self._lock:
            task = self._get(handle)
            timer = self._timers.pop(handle, None)
        if timer is None:
            return
        timer.stop(timeout=timeout)
        logger.info("Stopped task %s", task.name)
        self._note("Log generator stopped: %s", task.name)

    def reconfigure(self, handle: TaskHandle, config: TaskConfig) -> None:
        """
        Replace the task's config and reset its snapshot. The task must be stopped.

        Waits for a tick that is still finishing; other tasks stay usable meanwhile.
        """
        with self._lock:
            task = self._get(handle)
            if handle in self._timers:
                raise SchedulerError(f"task {handle.name!r} must be stopped before reconfiguring")
        task.reconfigure(config)

    def restart(self, handle: TaskHandle, config: TaskConfig) -> None:
        """Stop, reconfigure and start the task."""
        self.stop(handle)
        self.reconfigure(handle, config)
        self.start(handle)

    def run_now(self, handle: TaskHandle) -> TickReport:
        """Run one tick on the calling thread, subject to the same overlap guard."""
        return self.task(handle).tick()

    def stop_all(self, timeout: float | None = 5.0) -> None:
        for handle in self.handles:
            self.stop(handle, timeout=timeout)

    def _note(self, message: str, *args: object) -> None:
        try:
            self._log.debug(message, *args)
        except LogWriterError as exc:
            self._tombstone.epitaph(str(exc))

    def _get(self, handle: TaskHandle) -> SamplingTask:
        try:
            return self._tasks[handle]
        except KeyError:
            raise SchedulerError(f"unknown task {handle!r}") from None
