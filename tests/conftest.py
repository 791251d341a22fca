"""Shared fixtures and fake providers for bigbrother tests."""

import threading
import time

import pytest

from bigbrother.agentlog import AgentLogger
from bigbrother.models import ComPortInfo, DiagnosticsRecord, ProcessInfo, ThreadInfo
from bigbrother.providers import ProviderSet, UnavailableDiagnosticsProvider, UnavailableUsbDeviceProvider
from bigbrother.tombstone import Tombstone
from bigbrother.writer import RotatingLogWriter


class FakeComPorts:
    """Returns a fixed list of port names and counts calls."""

    def __init__(self, names: list[str] | None = None) -> None:
        self.names = names if names is not None else ["COM1", "COM4"]
        self.calls = 0
        self.call_times: list[float] = []

    def collect(self) -> list[ComPortInfo]:
        self.calls += 1
        self.call_times.append(time.monotonic())
        return [ComPortInfo(name) for name in self.names]


class FakeProcesses:
    def __init__(self, processes: list[ProcessInfo] | None = None) -> None:
        self.processes = processes if processes is not None else [make_app_process()]
        self.calls = 0

    def collect(self) -> list[ProcessInfo]:
        self.calls += 1
        return list(self.processes)


class FailingProvider:
    """Raises on every call."""

    def __init__(self, message: str = "provider exploded") -> None:
        self.message = message
        self.calls = 0

    def collect(self):
        self.calls += 1
        raise RuntimeError(self.message)


class BlockingProvider:
    """
    Blocks each call until released, recording how many calls overlap.
    """

    def __init__(self, hold: float = 0.3) -> None:
        self.hold = hold
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def collect(self) -> list[ComPortInfo]:
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.hold)
            return [ComPortInfo("COM9")]
        finally:
            with self._lock:
                self.active -= 1


def make_app_process(**overrides) -> ProcessInfo:
    values = {
        "name": "app.exe",
        "full_path": "\\app.exe",
        "pid": 10,
        "thread_count": 2,
        "parent_pid": 1,
        "threads": (ThreadInfo(tid=5, owner_pid=10), ThreadInfo(tid=6, owner_pid=10)),
    }
    values.update(overrides)
    return ProcessInfo(**values)


def make_providers(**overrides) -> ProviderSet:
    values = {
        "com_ports": FakeComPorts(),
        "processes": FakeProcesses(),
        "usb_devices": UnavailableUsbDeviceProvider(),
        "diagnostics": UnavailableDiagnosticsProvider(),
    }
    values.update(overrides)
    return ProviderSet(**values)


def available_diagnostics() -> DiagnosticsRecord:
    return DiagnosticsRecord(
        available=True,
        cpu_percent=12.5,
        memory_total=8 * 1024**3,
        memory_used=2 * 1024**3,
        memory_percent=25.0,
        swap_total=0,
        swap_used=0,
        swap_percent=0.0,
        load_avg=(1.0, 0.5, 0.25),
        uptime_seconds=90061.0,
    )


def read_lines(path) -> list[str]:
    return path.read_text(encoding="utf-8").splitlines()


def grave_records(tombstone) -> int:
    if not tombstone.grave_address.exists():
        return 0
    return tombstone.grave_address.read_text(encoding="utf-8").count("Here lies the departed")


@pytest.fixture
def log_dir(tmp_path):
    return tmp_path / "logs"


@pytest.fixture
def writer(log_dir):
    writer = RotatingLogWriter(log_dir / "BBT test.txt")
    yield writer
    writer.close()


@pytest.fixture
def agent_log(writer):
    return AgentLogger(writer)


@pytest.fixture
def tombstone(tmp_path):
    return Tombstone(tmp_path / "grave" / "BB-TOMBSTONE.txt")
