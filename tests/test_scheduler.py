import unittest

from animal_feed.scheduler import JobScheduler


class TestJobScheduler(unittest.TestCase):
    def setUp(self):
        self.scheduler = JobScheduler(timezone="Asia/Seoul")
        self.calls = []

    def tearDown(self):
        self.scheduler.shutdown()

    def job(self):
        self.calls.append("ran")
        return "done"

    def test_registers_jobs_before_start(self):
        self.scheduler.add_interval_job("tick", self.job, 3000)
        self.scheduler.add_daily_job("midnight", self.job)
        self.scheduler.add_one_shot_job("startup", self.job, delay_seconds=3600)
        self.assertEqual(sorted(self.scheduler.job_ids()), ["midnight", "startup", "tick"])
        self.assertFalse(self.scheduler.running)

    def test_run_now_invokes_job_body(self):
        self.scheduler.add_daily_job("midnight", self.job)
        self.assertEqual(self.scheduler.run_now("midnight"), "done")
        self.assertEqual(self.calls, ["ran"])

    def test_run_now_unknown_job(self):
        with self.assertRaises(KeyError):
            self.scheduler.run_now("nope")

    def test_cancel(self):
        self.scheduler.add_interval_job("tick", self.job, 3000)
        self.assertTrue(self.scheduler.cancel("tick"))
        self.assertFalse(self.scheduler.cancel("tick"))
        self.assertEqual(self.scheduler.job_ids(), [])

    def test_start_and_shutdown(self):
        self.scheduler.add_daily_job("midnight", self.job)
        self.scheduler.start()
        self.assertTrue(self.scheduler.running)
        self.scheduler.shutdown()
        self.assertFalse(self.scheduler.running)


if __name__ == "__main__":
    unittest.main()
