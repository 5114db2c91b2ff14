"""Tests for the metadata scheduler."""

import threading

import pytest

from trendledger.services.scheduler import MetadataScheduler


class TestMetadataScheduler:
    def test_rejects_invalid_interval(self):
        with pytest.raises(ValueError):
            MetadataScheduler(lambda: None, interval_minutes=0)

    def test_run_once(self):
        calls = []
        scheduler = MetadataScheduler(lambda: calls.append(1))

        assert scheduler.run_once() is True
        assert calls == [1]

    def test_run_once_reports_failure(self):
        def job():
            raise RuntimeError("trend source down")

        scheduler = MetadataScheduler(job)

        assert scheduler.run_once() is False
        # Lock is released after a failure
        assert scheduler.get_status()["job_running"] is False

    def test_overlapping_run_is_skipped(self):
        started = threading.Event()
        release = threading.Event()

        def slow_job():
            started.set()
            release.wait(timeout=5)

        scheduler = MetadataScheduler(slow_job)
        worker = threading.Thread(target=scheduler.run_once)
        worker.start()
        started.wait(timeout=5)

        assert scheduler.run_once() is False
        assert scheduler.get_status()["job_running"] is True

        release.set()
        worker.join()

    def test_start_runs_immediately(self):
        ran = threading.Event()
        scheduler = MetadataScheduler(ran.set, interval_minutes=60)

        scheduler.start()
        try:
            assert ran.wait(timeout=5)
            assert scheduler.is_running
            assert scheduler.get_status()["interval_minutes"] == 60
        finally:
            scheduler.stop()

        assert scheduler.is_running is False

    def test_start_without_immediate_run(self):
        scheduler = MetadataScheduler(lambda: None, interval_minutes=15)

        scheduler.start(run_immediately=False)
        try:
            status = scheduler.get_status()
            assert status["is_running"] is True
            assert status["next_run_time"] is not None
        finally:
            scheduler.stop()

    def test_status_when_stopped(self):
        status = MetadataScheduler(lambda: None).get_status()

        assert status == {
            "is_running": False,
            "job_running": False,
            "interval_minutes": 10,
            "next_run_time": None,
        }
