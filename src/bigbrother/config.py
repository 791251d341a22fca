"""Runtime configuration for the bigbrother agent."""

import argparse
import os
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path

from bigbrother.models import Category
from bigbrother.task import TaskConfig

APP_NAME = "BigBrother"
VERSION = "0.1.0"

DEFAULT_LOG_DIR = Path("logs") / "BigBrother"
TOMBSTONE_FILENAME = "BB-TOMBSTONE.txt"

# Delay before the temporary log file is renamed to its timestamped name
RENAME_FILE_DELAY = 20.0  # seconds


def default_tasks() -> list["TaskSettings"]:
    """The three sampling rates the agent ships with."""
    return [
        TaskSettings(TaskConfig(name="SF", due_time=0.0, period=1.0), autostart=False),
        TaskSettings(
            TaskConfig(
                name="F",
                due_time=0.001,
                period=5.0,
                categories=frozenset({Category.COM_PORTS}),
            )
        ),
        TaskSettings(
            TaskConfig(
                name="IF",
                due_time=0.002,
                period=30.0,
                categories=frozenset({Category.PROCESSES}),
            )
        ),
    ]


@dataclass(slots=True)
class TaskSettings:
    """A task config plus whether the agent starts it at launch."""

    config: TaskConfig
    autostart: bool = True


@dataclass
class AgentConfig:
    """Runtime configuration for the agent."""

    # Directory holding the BBT/BB log files
    log_dir: Path = DEFAULT_LOG_DIR

    # Fixed crash file; defaults to BB-TOMBSTONE.txt inside log_dir
    tombstone_path: Path | None = None

    rename_delay: float = RENAME_FILE_DELAY

    trace_enabled: bool = True
    debug_enabled: bool = True

    tasks: list[TaskSettings] = field(default_factory=default_tasks)

    def __post_init__(self) -> None:
        self.log_dir = Path(self.log_dir)
        if self.tombstone_path is None:
            self.tombstone_path = self.log_dir / TOMBSTONE_FILENAME
        self.tombstone_path = Path(self.tombstone_path)
        if self.rename_delay < 0:
            raise ValueError(f"rename_delay must not be negative, got {self.rename_delay}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bigbrother",
        description="Periodically log serial ports, processes, USB devices and diagnostics.",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=os.environ.get("BIGBROTHER_LOG_DIR", str(DEFAULT_LOG_DIR)),
        help="directory for log files (env: BIGBROTHER_LOG_DIR)",
    )
    parser.add_argument(
        "--tombstone",
        type=Path,
        default=os.environ.get("BIGBROTHER_TOMBSTONE"),
        help="crash file path (env: BIGBROTHER_TOMBSTONE, default: <log-dir>/BB-TOMBSTONE.txt)",
    )
    parser.add_argument(
        "--rename-delay",
        type=float,
        default=RENAME_FILE_DELAY,
        help="seconds before the temporary log file gets its timestamped name",
    )
    parser.add_argument(
        "--print-threads",
        action="append",
        default=[],
        metavar="PROCESS",
        help="process name to list thread ids for (repeatable)",
    )
    parser.add_argument("--no-trace", action="store_true", help="drop BB-TRACE lines")
    parser.add_argument("--no-debug", action="store_true", help="drop BB-DEBUG lines")
    parser.add_argument("-v", "--verbose", action="store_true", help="echo agent diagnostics to stderr")
    return parser


def load_config(argv: Sequence[str] | None = None) -> tuple[AgentConfig, argparse.Namespace]:
    """Build an AgentConfig from the command line and environment."""
    args = build_parser().parse_args(argv)

    print_threads = frozenset(args.print_threads)
    tasks = default_tasks()
    if print_threads:
        for settings in tasks:
            settings.config = replace(settings.config, print_threads_for=print_threads)

    config = AgentConfig(
        log_dir=args.log_dir,
        tombstone_path=args.tombstone,
        rename_delay=args.rename_delay,
        trace_enabled=not args.no_trace,
        debug_enabled=not args.no_debug,
        tasks=tasks,
    )
    return config, args
