"""
Data providers for each sample category.

Each provider is a small object with a ``collect()`` method. The sampling
task only depends on the protocols below; any implementation, including
test fakes, can be dropped in through :class:`ProviderSet`.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import psutil
from serial.tools import list_ports

from bigbrother.models import (
    ComPortInfo,
    DiagnosticsRecord,
    ProcessRecord,
    ProcessInfo,
    ThreadInfo,
    UsbDeviceInfo,
    link_threads,
)


class ComPortProvider(Protocol):
    def collect(self) -> list[ComPortInfo]: ...


class ProcessProvider(Protocol):
    def collect(self) -> list[ProcessInfo]: ...


class UsbDeviceProvider(Protocol):
    def collect(self) -> list[UsbDeviceInfo]: ...


class DiagnosticsProvider(Protocol):
    def collect(self) -> DiagnosticsRecord: ...


class SerialComPortProvider:
    """Serial ports as reported by pyserial."""

    def collect(self) -> list[ComPortInfo]:
        ports = []
        for row in list_ports.comports():
            device = str(getattr(row, "device", "") or "").strip()
            if device:
                ports.append(ComPortInfo(name=device))
        return ports


class PsutilProcessProvider:
    """
    Running processes and their threads, collected with psutil.

    Processes that exit or deny access mid-poll are skipped.
    """

    _ATTRS = ["pid", "name", "exe", "num_threads", "ppid"]

    def collect(self) -> list[ProcessInfo]:
        records: list[ProcessRecord] = []
        threads: list[ThreadInfo] = []

        for proc in psutil.process_iter(attrs=self._ATTRS):
            try:
                with proc.oneshot():
                    info = proc.info
                    pid = info.get("pid", 0)
                    records.append(
                        ProcessRecord(
                            name=info.get("name") or "",
                            full_path=info.get("exe") or "",
                            pid=pid,
                            thread_count=info.get("num_threads") or 0,
                            parent_pid=info.get("ppid") or 0,
                        )
                    )
                    try:
                        threads.extend(ThreadInfo(tid=t.id, owner_pid=pid) for t in proc.threads())
                    except psutil.AccessDenied:
                        pass  # Thread list hidden, the process row is still useful
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

        return link_threads(records, threads)


class SysfsUsbDeviceProvider:
    """USB devices read from the Linux sysfs tree."""

    def __init__(self, root: Path | str = "/sys/bus/usb/devices") -> None:
        self._root = Path(root)

    def collect(self) -> list[UsbDeviceInfo]:
        if not self._root.is_dir():
            return []

        devices = []
        for entry in sorted(self._root.iterdir()):
            vendor = _read_attr(entry / "idVendor")
            product = _read_attr(entry / "idProduct")
            if not vendor or not product:
                continue  # Interfaces and hubs without ids
            description = " ".join(
                part
                for part in (_read_attr(entry / "manufacturer"), _read_attr(entry / "product"))
                if part
            )
            devices.append(
                UsbDeviceInfo(
                    device_id=entry.name,
                    pnp_device_id=f"USB\\VID_{vendor.upper()}&PID_{product.upper()}",
                    description=description,
                )
            )
        return devices


class UnavailableUsbDeviceProvider:
    """Used where no USB enumeration exists; always reports no devices."""

    def collect(self) -> list[UsbDeviceInfo]:
        return []


class PsutilDiagnosticsProvider:
    """CPU, memory, swap, load and uptime, collected with psutil."""

    def __init__(self) -> None:
        # Initialize CPU percent (first call returns 0.0)
        psutil.cpu_percent()

    def collect(self) -> DiagnosticsRecord:
        mem = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return DiagnosticsRecord(
            available=True,
            cpu_percent=psutil.cpu_percent(),
            memory_total=mem.total,
            memory_used=mem.used,
            memory_percent=mem.percent,
            swap_total=swap.total,
            swap_used=swap.used,
            swap_percent=swap.percent,
            load_avg=psutil.getloadavg(),
            uptime_seconds=time.time() - psutil.boot_time(),
        )


class UnavailableDiagnosticsProvider:
    """Used where no diagnostics source exists; always reports the empty record."""

    def collect(self) -> DiagnosticsRecord:
        return DiagnosticsRecord.unavailable()


@dataclass(slots=True)
class ProviderSet:
    """The providers a sampling task draws from, one per category."""

    com_ports: ComPortProvider = field(default_factory=SerialComPortProvider)
    processes: ProcessProvider = field(default_factory=PsutilProcessProvider)
    usb_devices: UsbDeviceProvider = field(default_factory=UnavailableUsbDeviceProvider)
    diagnostics: DiagnosticsProvider = field(default_factory=PsutilDiagnosticsProvider)


def _read_attr(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return ""
