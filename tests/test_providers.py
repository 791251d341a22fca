"""Tests for the data providers."""

import os
import threading
from types import SimpleNamespace

from bigbrother import providers as providers_module
from bigbrother.models import ComPortInfo, DiagnosticsRecord, ProcessInfo
from bigbrother.providers import (
    PsutilDiagnosticsProvider,
    PsutilProcessProvider,
    SerialComPortProvider,
    SysfsUsbDeviceProvider,
    UnavailableDiagnosticsProvider,
    UnavailableUsbDeviceProvider,
)


class TestSerialComPortProvider:
    """Tests for the pyserial port provider."""

    def test_device_names_in_order(self, monkeypatch):
        """Test each reported port becomes a ComPortInfo, keeping order."""
        rows = [
            SimpleNamespace(device="/dev/ttyUSB1"),
            SimpleNamespace(device=""),
            SimpleNamespace(device="/dev/ttyACM0"),
        ]
        monkeypatch.setattr(providers_module.list_ports, "comports", lambda: rows)

        ports = SerialComPortProvider().collect()

        assert ports == [ComPortInfo("/dev/ttyUSB1"), ComPortInfo("/dev/ttyACM0")]

    def test_real_enumeration_returns_list(self):
        """Test enumeration on this machine returns a list."""
        assert isinstance(SerialComPortProvider().collect(), list)


class TestPsutilProcessProvider:
    """Tests for the psutil process provider."""

    def test_collect_returns_processes(self):
        """Test collect returns ProcessInfo objects for running processes."""
        processes = PsutilProcessProvider().collect()

        assert len(processes) > 0
        for proc in processes:
            assert isinstance(proc, ProcessInfo)
            assert isinstance(proc.name, str)
            assert isinstance(proc.full_path, str)
            assert isinstance(proc.thread_count, int)

    def test_own_process_threads(self):
        """Test this process is found with its own threads attached."""
        stop = threading.Event()
        helper = threading.Thread(target=stop.wait, daemon=True)
        helper.start()
        try:
            processes = PsutilProcessProvider().collect()
        finally:
            stop.set()
            helper.join()

        me = next(p for p in processes if p.pid == os.getpid())
        assert me.parent_pid == os.getppid()
        assert len(me.threads) >= 2
        assert all(thread.owner_pid == me.pid for thread in me.threads)


class TestSysfsUsbDeviceProvider:
    """Tests for the sysfs USB provider."""

    def _device(self, root, name, **attrs):
        path = root / name
        path.mkdir(parents=True)
        for key, value in attrs.items():
            (path / key).write_text(value + "\n", encoding="utf-8")

    def test_devices_from_tree(self, tmp_path):
        """Test devices with vendor and product ids are reported."""
        self._device(tmp_path, "1-1", idVendor="046d", idProduct="c52b", manufacturer="Logitech", product="USB Receiver")
        self._device(tmp_path, "1-1:1.0")  # interface, no ids
        self._device(tmp_path, "2-3", idVendor="0403", idProduct="6001")

        devices = SysfsUsbDeviceProvider(tmp_path).collect()

        assert [d.device_id for d in devices] == ["1-1", "2-3"]
        assert devices[0].pnp_device_id == "USB\\VID_046D&PID_C52B"
        assert devices[0].description == "Logitech USB Receiver"
        assert devices[1].description == ""

    def test_missing_tree(self, tmp_path):
        """Test a missing sysfs tree reports no devices."""
        assert SysfsUsbDeviceProvider(tmp_path / "nope").collect() == []


class TestDiagnosticsProviders:
    """Tests for diagnostics providers."""

    def test_psutil_diagnostics(self):
        """Test psutil diagnostics report real numbers."""
        record = PsutilDiagnosticsProvider().collect()

        assert record.available
        assert record.memory_total > 0
        assert 0.0 <= record.memory_percent <= 100.0
        assert record.uptime_seconds > 0
        assert len(record.load_avg) == 3

    def test_unavailable_variants(self):
        """Test the unavailable providers return empty results."""
        assert UnavailableUsbDeviceProvider().collect() == []
        assert UnavailableDiagnosticsProvider().collect() == DiagnosticsRecord.unavailable()
