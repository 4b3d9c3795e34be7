import threading
import unittest

from api.userdata.periodic import PeriodicJob


class PeriodicJobTests(unittest.TestCase):
    def test_runs_until_stopped(self):
        ticks = threading.Semaphore(0)
        job = PeriodicJob(0.01, ticks.release, name="test-job")
        job.start()
        try:
            self.assertTrue(ticks.acquire(timeout=2))
            self.assertTrue(ticks.acquire(timeout=2))
        finally:
            job.stop()
        self.assertFalse(job.running)

    def test_failures_do_not_kill_the_job(self):
        calls = threading.Semaphore(0)

        def flaky():
            calls.release()
            raise RuntimeError("sweep failed")

        job = PeriodicJob(0.01, flaky)
        with self.assertLogs("api.userdata.periodic", level="ERROR"):
            job.start()
            try:
                self.assertTrue(calls.acquire(timeout=2))
                self.assertTrue(calls.acquire(timeout=2))
            finally:
                job.stop()

    def test_stop_is_idempotent_and_prompt(self):
        job = PeriodicJob(60, lambda: None)
        job.start()
        job.stop(timeout=1)
        self.assertFalse(job.running)
        job.stop()

    def test_rejects_non_positive_interval(self):
        with self.assertRaises(ValueError):
            PeriodicJob(0, lambda: None)


if __name__ == "__main__":
    unittest.main()
