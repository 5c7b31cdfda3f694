import unittest

from fake_timer import ManualTimer
from mindboard.scheduling import Debouncer


class TestDebouncerContract(unittest.TestCase):
    def setUp(self):
        self.timer = ManualTimer()
        self.calls = []
        self.debouncer = Debouncer(100, lambda: self.calls.append(self.timer.now), self.timer)

    def test_burst_runs_once_after_quiescence(self):
        for _ in range(5):
            self.debouncer.schedule()
            self.timer.advance(50)
        self.assertEqual(self.calls, [])
        self.timer.advance(50)
        self.assertEqual(self.calls, [300])
        self.assertFalse(self.debouncer.pending)

    def test_flush_runs_pending_now(self):
        self.debouncer.schedule()
        self.assertTrue(self.debouncer.flush())
        self.assertEqual(self.calls, [0])
        self.assertFalse(self.debouncer.flush())
        self.timer.advance(500)
        self.assertEqual(self.calls, [0])

    def test_close_cancels_and_ignores_later_schedules(self):
        self.debouncer.schedule()
        self.debouncer.close()
        self.debouncer.schedule()
        self.timer.advance(500)
        self.assertEqual(self.calls, [])
        self.assertEqual(self.timer.pending_count, 0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
