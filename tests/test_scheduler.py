import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import requests
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from news_reader.models import IngestionResult, SourceConfig
from news_reader.router import IngestionRouter
from news_reader.scheduler import (
    INITIAL_JOB_ID,
    INTERVAL_JOB_ID,
    RETRY_JOB_ID,
    IngestionScheduler,
    is_failed_run,
)
from news_reader.storage import SQLiteNewsStorage


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _scheduler(job, **kwargs):
    kwargs.setdefault("scheduler", MagicMock())
    kwargs.setdefault("clock", FakeClock())
    return IngestionScheduler(job, **kwargs)


def _retry_calls(sched):
    return [c for c in sched.scheduler.add_job.call_args_list if c.kwargs.get("id") == RETRY_JOB_ID]


class TestFailureDetection(unittest.TestCase):
    def test_result_object(self):
        self.assertTrue(is_failed_run(IngestionResult(saved_count=0, errors=["x"])))
        self.assertFalse(is_failed_run(IngestionResult(saved_count=2, errors=["x"])))
        self.assertFalse(is_failed_run(IngestionResult()))

    def test_placeholders_do_not_mask_total_failure(self):
        result = IngestionResult(saved_count=2, processed_count=2, errors=["All URLs failed"], all_sources_failed=True)
        self.assertTrue(is_failed_run(result))

    def test_summary_dict(self):
        self.assertTrue(is_failed_run({"count": 0, "processed": 0, "errors": ["x"]}))
        self.assertFalse(is_failed_run({"count": 3, "processed": 3}))


class TestLifecycle(unittest.TestCase):
    def test_start_registers_interval_and_initial_jobs(self):
        sched = _scheduler(MagicMock(), interval_minutes=30, initial_delay_seconds=5)
        sched.start()
        calls = {c.kwargs["id"]: c.kwargs for c in sched.scheduler.add_job.call_args_list}
        self.assertIsInstance(calls[INTERVAL_JOB_ID]["trigger"], IntervalTrigger)
        self.assertEqual(calls[INTERVAL_JOB_ID]["max_instances"], 1)
        self.assertIsInstance(calls[INITIAL_JOB_ID]["trigger"], DateTrigger)
        sched.scheduler.start.assert_called_once()

    def test_stop_shuts_down_running_scheduler(self):
        sched = _scheduler(MagicMock())
        sched.scheduler.running = True
        sched.stop()
        sched.scheduler.shutdown.assert_called_once_with(wait=False)

    def test_stop_when_not_running(self):
        sched = _scheduler(MagicMock())
        sched.scheduler.running = False
        sched.stop()
        sched.scheduler.shutdown.assert_not_called()


class TestRetries(unittest.TestCase):
    def test_success_resets_state(self):
        job = MagicMock(return_value=IngestionResult(saved_count=3, processed_count=3))
        sched = _scheduler(job)
        sched.retry_count = 2
        result = sched.trigger()
        self.assertEqual(result.saved_count, 3)
        self.assertEqual(sched.retry_count, 0)
        self.assertEqual(sched.last_success, 1000.0)
        self.assertEqual(_retry_calls(sched), [])

    def test_exception_schedules_retry(self):
        sched = _scheduler(MagicMock(side_effect=RuntimeError("down")), retry_delay_seconds=60)
        self.assertIsNone(sched.trigger())
        self.assertEqual(sched.retry_count, 1)
        self.assertEqual(len(_retry_calls(sched)), 1)
        self.assertIsInstance(_retry_calls(sched)[0].kwargs["trigger"], DateTrigger)

    def test_failed_result_schedules_retry(self):
        job = MagicMock(return_value=IngestionResult(saved_count=0, errors=["all failed"]))
        sched = _scheduler(job)
        sched.trigger()
        self.assertEqual(sched.retry_count, 1)
        self.assertIsNone(sched.last_success)

    def test_retries_bounded_then_counter_resets(self):
        sched = _scheduler(MagicMock(side_effect=RuntimeError("down")), max_retries=2)
        sched.trigger()
        sched.trigger()
        self.assertEqual(sched.retry_count, 2)
        sched.trigger()
        self.assertEqual(sched.retry_count, 0)
        self.assertEqual(len(_retry_calls(sched)), 2)


class TestMinimumInterval(unittest.TestCase):
    def test_recent_success_skips_run(self):
        clock = FakeClock()
        job = MagicMock(return_value=IngestionResult(saved_count=1))
        sched = _scheduler(job, clock=clock, min_interval_seconds=60)
        sched.trigger()
        clock.now += 10
        self.assertIsNone(sched.trigger())
        self.assertEqual(job.call_count, 1)

    def test_force_ignores_interval(self):
        clock = FakeClock()
        job = MagicMock(return_value=IngestionResult(saved_count=1))
        sched = _scheduler(job, clock=clock, min_interval_seconds=60)
        sched.trigger()
        sched.trigger(force=True)
        self.assertEqual(job.call_count, 2)

    def test_runs_again_after_interval(self):
        clock = FakeClock()
        job = MagicMock(return_value=IngestionResult(saved_count=1))
        sched = _scheduler(job, clock=clock, min_interval_seconds=60)
        sched.trigger()
        clock.now += 61
        sched.trigger()
        self.assertEqual(job.call_count, 2)

class TestOutage(unittest.TestCase):
    """Every URL and the third-party tier down: placeholders get saved but the run still failed."""

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.storage = SQLiteNewsStorage(Path(tmp.name) / "news.db")
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("offline")
        sources = [
            SourceConfig(name="Feed", url="https://feed.example/rss", fallback_url="https://feed.example/alt"),
            SourceConfig(name="Other", url="https://other.example/rss"),
        ]
        self.router = IngestionRouter(
            self.storage, sources, session=session, third_party=MagicMock(return_value=None),
        )

    def test_outage_schedules_retry(self):
        sched = _scheduler(self.router.run, retry_delay_seconds=30)
        result = sched.trigger()
        self.assertTrue(result.all_sources_failed)
        self.assertGreaterEqual(result.saved_count, 1)
        self.assertEqual(sched.retry_count, 1)
        self.assertIsNone(sched.last_success)
        self.assertEqual(len(_retry_calls(sched)), 1)

    def test_outage_does_not_block_next_run(self):
        sched = _scheduler(self.router.run, min_interval_seconds=3600)
        sched.trigger()
        self.assertIsNotNone(sched.trigger())



if __name__ == "__main__":
    unittest.main()
