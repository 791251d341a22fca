"""Sampling tasks: one independently scheduled unit of refresh-and-emit work."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from bigbrother.agentlog import AgentLogger
from bigbrother.formatting import (
    render_com_ports,
    render_diagnostics,
    render_processes,
    render_usb_devices,
)
from bigbrother.models import Category, Snapshot
from bigbrother.providers import ProviderSet
from bigbrother.tombstone import Tombstone

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TaskConfig:
    """Immutable configuration of one sampling task. Times are in seconds."""

    name: str
    due_time: float
    period: float
    categories: frozenset[Category] = frozenset()
    print_threads_for: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.period <= 0:
            raise ValueError(f"period must be positive, got {self.period}")
        if self.due_time < 0:
            raise ValueError(f"due_time must not be negative, got {self.due_time}")
        # Accept any iterable, store frozensets
        object.__setattr__(self, "categories", frozenset(self.categories))
        object.__setattr__(self, "print_threads_for", frozenset(self.print_threads_for))

    def includes(self, category: Category) -> bool:
        return category in self.categories


@dataclass(slots=True, frozen=True)
class CategoryFailure:
    """A failure confined to one category during one tick."""

    category: Category
    stage: str  # 'refresh' or 'emit'
    error: Exception


@dataclass(slots=True)
class TickReport:
    """Outcome of one tick."""

    task: str
    skipped: bool = False
    refreshed: list[Category] = field(default_factory=list)
    emitted: list[Category] = field(default_factory=list)
    failures: list[CategoryFailure] = field(default_factory=list)
    crashed: bool = False

    @property
    def ok(self) -> bool:
        return not self.skipped and not self.crashed and not self.failures


class SamplingTask:
    """
    Refreshes a snapshot from its providers and logs every enabled category.

    :meth:`tick` is safe to call from any thread. If a tick is still running
    when the next one fires, the new one is dropped.
    """

    def __init__(
        self,
        config: TaskConfig,
        providers: ProviderSet,
        log: AgentLogger,
        tombstone: Tombstone,
    ) -> None:
        self._config = config
        self._providers = providers
        self._log = log
        self._tombstone = tombstone
        self._snapshot = Snapshot()
        self._in_progress = threading.Lock()
        self._collectors: dict[Category, Callable[[Snapshot], None]] = {
            Category.COM_PORTS: self._refresh_com_ports,
            Category.PROCESSES: self._refresh_processes,
            Category.USB_DEVICES: self._refresh_usb_devices,
            Category.DIAGNOSTICS: self._refresh_diagnostics,
        }
        self._emitters: dict[Category, Callable[[TaskConfig, Snapshot], None]] = {
            Category.COM_PORTS: self._emit_com_ports,
            Category.PROCESSES: self._emit_processes,
            Category.USB_DEVICES: self._emit_usb_devices,
            Category.DIAGNOSTICS: self._emit_diagnostics,
        }

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> TaskConfig:
        return self._config

    @property
    def snapshot(self) -> Snapshot:
        """The most recently refreshed snapshot."""
        return self._snapshot

    @property
    def is_ticking(self) -> bool:
        """Check if a tick is currently executing."""
        return self._in_progress.locked()

    def reconfigure(self, config: TaskConfig) -> None:
        """
        Replace the config and reset the snapshot. Only call while not scheduled.

        Waits for a tick that is still finishing before swapping.
        """
        with self._in_progress:
            self._config = config
            self._snapshot = Snapshot()

    def tick(self) -> TickReport:
        """Run one refresh-and-emit cycle."""
        config = self._config
        if not self._in_progress.acquire(blocking=False):
            logger.debug("Tick of %s skipped, previous tick still running", config.name)
            return TickReport(task=config.name, skipped=True)

        report = TickReport(task=config.name)
        try:
            failed = self._refresh(config, report)
            self._emit(config, report, failed)
        except Exception as exc:
            report.crashed = True
            self._tombstone.epitaph(str(exc))
        finally:
            self._in_progress.release()
        return report

    def _refresh(self, config: TaskConfig, report: TickReport) -> set[Category]:
        snapshot = Snapshot()
        failed: set[Category] = set()
        for category in Category:
            if not config.includes(category):
                continue
            try:
                self._collectors[category](snapshot)
            except Exception as exc:
                failed.add(category)
                self._record_failure(report, CategoryFailure(category, "refresh", exc))
            else:
                report.refreshed.append(category)
        self._snapshot = snapshot
        return failed

    def _emit(self, config: TaskConfig, report: TickReport, failed: set[Category]) -> None:
        snapshot = self._snapshot
        for category in Category:
            if not config.includes(category) or category in failed:
                continue
            try:
                self._emitters[category](config, snapshot)
            except Exception as exc:
                self._record_failure(report, CategoryFailure(category, "emit", exc))
            else:
                report.emitted.append(category)

    def _record_failure(self, report: TickReport, failure: CategoryFailure) -> None:
        report.failures.append(failure)
        context = f"{self.name}: {failure.category.value} {failure.stage} failed"
        try:
            self._log.exception(failure.error, context)
        except Exception as exc:
            self._tombstone.epitaph(f"{context}: {failure.error} (log unavailable: {exc})")

    def _refresh_com_ports(self, snapshot: Snapshot) -> None:
        snapshot.com_ports = list(self._providers.com_ports.collect())

    def _refresh_processes(self, snapshot: Snapshot) -> None:
        snapshot.processes = list(self._providers.processes.collect())

    def _refresh_usb_devices(self, snapshot: Snapshot) -> None:
        snapshot.usb_devices = list(self._providers.usb_devices.collect())

    def _refresh_diagnostics(self, snapshot: Snapshot) -> None:
        snapshot.diagnostics = self._providers.diagnostics.collect()

    def _emit_com_ports(self, config: TaskConfig, snapshot: Snapshot) -> None:
        self._log.debug(render_com_ports(snapshot.com_ports))

    def _emit_processes(self, config: TaskConfig, snapshot: Snapshot) -> None:
        for message in render_processes(snapshot.processes, config.print_threads_for):
            self._log.debug(message)

    def _emit_usb_devices(self, config: TaskConfig, snapshot: Snapshot) -> None:
        self._log.debug(render_usb_devices(snapshot.usb_devices))

    def _emit_diagnostics(self, config: TaskConfig, snapshot: Snapshot) -> None:
        rendered = render_diagnostics(snapshot.diagnostics)
        if rendered:
            self._log.debug("\n" + rendered)
