"""Data models for bigbrother."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum


class Category(Enum):
    """Sample categories, in the order they are emitted."""

    COM_PORTS = "com_ports"
    PROCESSES = "processes"
    USB_DEVICES = "usb_devices"
    DIAGNOSTICS = "diagnostics"


@dataclass(slots=True, frozen=True)
class ComPortInfo:
    """A single serial port, e.g. COM1 or /dev/ttyUSB0."""

    name: str


@dataclass(slots=True, frozen=True)
class ThreadInfo:
    """A thread and the process that owns it."""

    tid: int
    owner_pid: int


@dataclass(slots=True, frozen=True)
class ProcessInfo:
    """Immutable snapshot of a process and its threads."""

    name: str
    full_path: str
    pid: int
    thread_count: int
    parent_pid: int
    threads: tuple[ThreadInfo, ...] = ()

    def __post_init__(self) -> None:
        for thread in self.threads:
            if thread.owner_pid != self.pid:
                raise ValueError(
                    f"thread {thread.tid} belongs to pid {thread.owner_pid}, not {self.pid}"
                )


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Raw process row as returned by a process provider, before thread linking."""

    name: str
    full_path: str
    pid: int
    thread_count: int
    parent_pid: int


@dataclass(slots=True, frozen=True)
class UsbDeviceInfo:
    """A USB device connected at the time of sampling."""

    device_id: str
    pnp_device_id: str
    description: str


@dataclass(slots=True, frozen=True)
class DiagnosticsRecord:
    """General machine diagnostics. ``available`` is False for the empty record."""

    available: bool = False
    cpu_percent: float = 0.0
    memory_total: int = 0  # Bytes
    memory_used: int = 0
    memory_percent: float = 0.0
    swap_total: int = 0
    swap_used: int = 0
    swap_percent: float = 0.0
    load_avg: tuple[float, float, float] = (0.0, 0.0, 0.0)
    uptime_seconds: float = 0.0

    @classmethod
    def unavailable(cls) -> "DiagnosticsRecord":
        """Return the empty record used when no diagnostics source exists."""
        return cls()


@dataclass(slots=True)
class Snapshot:
    """
    Most recently refreshed sample of one task.

    Owned by a single SamplingTask. A refresh builds a new Snapshot rather than
    patching the previous one, so entries from an earlier tick never survive.
    """

    com_ports: list[ComPortInfo] = field(default_factory=list)
    processes: list[ProcessInfo] = field(default_factory=list)
    usb_devices: list[UsbDeviceInfo] = field(default_factory=list)
    diagnostics: DiagnosticsRecord = field(default_factory=DiagnosticsRecord.unavailable)


def link_threads(
    records: Iterable[ProcessRecord],
    threads: Sequence[ThreadInfo],
) -> list[ProcessInfo]:
    """
    Build ProcessInfo objects, attaching each thread to the process that owns it.

    Thread order within a process follows the order of ``threads``. Threads whose
    owner is not among ``records`` are dropped.
    """
    by_owner: dict[int, list[ThreadInfo]] = {}
    for thread in threads:
        by_owner.setdefault(thread.owner_pid, []).append(thread)

    return [
        ProcessInfo(
            name=record.name,
            full_path=record.full_path,
            pid=record.pid,
            thread_count=record.thread_count,
            parent_pid=record.parent_pid,
            threads=tuple(by_owner.get(record.pid, ())),
        )
        for record in records
    ]
