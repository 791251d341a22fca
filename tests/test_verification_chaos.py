"""Verification Test: Chaos Monkey - providers that fail on every call.

A task whose only provider always raises must keep ticking without ever
escalating to the tombstone; failures raised above the category boundary
must produce exactly one tombstone record per tick.
"""

import time

from conftest import FailingProvider, grave_records, make_providers

from bigbrother.models import Category
from bigbrother.scheduler import Scheduler
from bigbrother.task import SamplingTask, TaskConfig

TICKS = 100


class TestChaosMonkey:
    """Chaos Monkey verification suite tests."""

    def test_failing_provider_stays_category_local(self, agent_log, writer, tombstone):
        """
        Test 100 ticks against an always-failing provider never reach the tombstone.
        """
        failing = FailingProvider("serial driver crashed")
        config = TaskConfig(name="F", due_time=0, period=1, categories={Category.COM_PORTS})
        task = SamplingTask(config, make_providers(com_ports=failing), agent_log, tombstone)

        reports = [task.tick() for _ in range(TICKS)]

        assert failing.calls == TICKS
        assert all(len(report.failures) == 1 for report in reports)
        assert not any(report.crashed for report in reports)
        assert grave_records(tombstone) == 0
        text = writer.path.read_text(encoding="utf-8")
        assert text.count("BB-ERROR RuntimeError: serial driver crashed") == TICKS

    def test_escalated_failure_one_record_per_tick(self, agent_log, tombstone, monkeypatch):
        """
        Test a failure above the category boundary writes one record per tick.
        """
        config = TaskConfig(name="F", due_time=0, period=1, categories={Category.COM_PORTS})
        task = SamplingTask(config, make_providers(), agent_log, tombstone)

        def explode(config, report):
            raise RuntimeError("refresh loop corrupted")

        monkeypatch.setattr(task, "_refresh", explode)
        reports = [task.tick() for _ in range(TICKS)]

        assert all(report.crashed for report in reports)
        assert grave_records(tombstone) == TICKS

    def test_scheduled_task_survives_failures(self, agent_log, tombstone):
        """
        Test the timer keeps firing while every tick fails.
        """
        failing = FailingProvider()
        scheduler = Scheduler(agent_log, tombstone, make_providers(processes=failing))
        handle = scheduler.add_task(
            TaskConfig(name="IF", due_time=0, period=0.02, categories={Category.PROCESSES})
        )

        scheduler.start(handle)
        try:
            time.sleep(0.5)
            assert scheduler.is_running(handle)
        finally:
            scheduler.stop(handle)

        assert failing.calls >= 5
        assert grave_records(tombstone) == 0
