import unittest

from cloudtail.core.backoff import delay


class TestBackoff__delay(unittest.TestCase):

    def test_first_attempt_uses_base_delay(self):
        self.assertEqual(delay(1, 1.0), 1.0)

    def test_delay_doubles_each_attempt(self):
        self.assertEqual(delay(2, 1.0), 2.0)
        self.assertEqual(delay(3, 1.0), 4.0)
        self.assertEqual(delay(4, 0.5), 4.0)

    def test_schedule_is_exact(self):
        self.assertEqual([delay(n, 1.5) for n in range(1, 6)], [1.5, 3.0, 6.0, 12.0, 24.0])

    def test_zero_base_delay(self):
        self.assertEqual(delay(5, 0), 0)

    def test_attempt_zero_raises_ValueError(self):
        self.assertRaises(ValueError, delay, 0, 1.0)

    def test_negative_attempt_raises_ValueError(self):
        self.assertRaises(ValueError, delay, -3, 1.0)
