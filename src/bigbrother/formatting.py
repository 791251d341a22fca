"""Rendering of log lines, samples and file-name fragments."""

import uuid
from collections.abc import Collection, Sequence
from datetime import datetime
from enum import Enum

from bigbrother.models import ComPortInfo, DiagnosticsRecord, ProcessInfo, UsbDeviceInfo

SEPARATOR = " | "


class LogCategory(Enum):
    """Category tags written into every log line."""

    TRACE = "BB-TRACE"
    DEBUG = "BB-DEBUG"
    AUDIT = "BB-AUDIT"
    ERROR = "BB-ERROR"


def format_line(category: LogCategory, message: str, when: datetime | None = None) -> str:
    """Render ``<timestamp> <CATEGORY> <message>`` terminated by a newline."""
    if when is None:
        when = datetime.now()
    return f"{when.isoformat(timespec='seconds')} {category.value} {message}\n"


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:.1f}{unit}" if unit != "B" else f"{int(size)}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def render_com_ports(ports: Sequence[ComPortInfo]) -> str:
    """Port names joined by `` | ``; empty string when there are none."""
    return SEPARATOR.join(port.name for port in ports)


def render_process(process: ProcessInfo, list_threads: bool) -> str:
    """
    Render a process as a multi-line block.

    The ``Thread TIDs`` line is only present when ``list_threads`` is set.
    """
    lines = [
        f"Name: {process.name}",
        f"Full Path: {process.full_path}",
        f"PID: {process.pid}",
        f"Thread Count: {process.thread_count}",
        f"Parent Process PID: {process.parent_pid}",
    ]
    if list_threads:
        tids = SEPARATOR.join(str(thread.tid) for thread in process.threads)
        lines.append(f"Thread TIDs: {tids}")
    return "\n".join(lines)


def render_processes(
    processes: Sequence[ProcessInfo],
    print_threads_for: Collection[str],
) -> list[str]:
    """One framed message per process, as written to the log."""
    return [
        "\n" + render_process(process, process.name in print_threads_for) + "\n"
        for process in processes
    ]


def render_usb_device(device: UsbDeviceInfo) -> str:
    return (
        f"Device ID: {device.device_id}\n"
        f"Pnp Device ID: {device.pnp_device_id}\n"
        f"Description: {device.description}"
    )


def render_usb_devices(devices: Sequence[UsbDeviceInfo]) -> str:
    """USB device blocks separated by newlines; empty string when there are none."""
    return "\n".join(render_usb_device(device) for device in devices)


def render_diagnostics(record: DiagnosticsRecord) -> str:
    """Render a diagnostics block. The unavailable record renders as an empty string."""
    if not record.available:
        return ""

    uptime = record.uptime_seconds
    days = int(uptime // 86400)
    hours = int((uptime % 86400) // 3600)
    minutes = int((uptime % 3600) // 60)
    seconds = int(uptime % 60)
    if days > 0:
        uptime_str = f"{days} days, {hours:02d}:{minutes:02d}:{seconds:02d}"
    else:
        uptime_str = f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    load_avg = record.load_avg
    return (
        f"CPU: {record.cpu_percent:.1f}%\n"
        f"Mem: {format_bytes(record.memory_used)}/{format_bytes(record.memory_total)}"
        f" ({record.memory_percent:.1f}%)\n"
        f"Swp: {format_bytes(record.swap_used)}/{format_bytes(record.swap_total)}"
        f" ({record.swap_percent:.1f}%)\n"
        f"Load average: {load_avg[0]:.2f} {load_avg[1]:.2f} {load_avg[2]:.2f}\n"
        f"Uptime: {uptime_str}"
    )


def generate_datetime_string(when: datetime | None = None) -> str:
    """``dd-MM-yyyy HH.mm.ss``, zero padded."""
    if when is None:
        when = datetime.now()
    return when.strftime("%d-%m-%Y %H.%M.%S")


def generate_random_string() -> str:
    return str(uuid.uuid4())
