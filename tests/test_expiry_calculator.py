"""
Unit Tests for Expiry Calculation

PURPOSE: Test expiration dates and the expired/expiring flags

RUN TESTS:
    python3 -m pytest tests/ -v
"""

import os
import sys
import unittest
from datetime import date

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from managers.expiry_calculator import NEVER_EXPIRES, compute_expiry, days_until


class TestComputeExpiry(unittest.TestCase):
    """Expiration = pass date + validity days, compared to 'now'."""

    def test_one_year_validity(self):
        """2023-01-10 + 365 days lands on 2024-01-10."""
        status = compute_expiry(date(2023, 1, 10), 365, date(2023, 6, 1), 30)
        self.assertEqual(status.expiration_date, date(2024, 1, 10))
        self.assertFalse(status.is_expired)
        self.assertFalse(status.is_expiring)

    def test_leap_day_counts_as_a_day(self):
        """Calendar-day arithmetic: 365 days from 2024-01-10 crosses Feb 29."""
        status = compute_expiry(date(2024, 1, 10), 365, date(2024, 6, 1), 30)
        self.assertEqual(status.expiration_date, date(2025, 1, 9))

    def test_expiring_inside_warn_window(self):
        """21 days before expiry with a 30-day window is expiring."""
        now = date(2023, 12, 20)
        status = compute_expiry(date(2023, 1, 10), 365, now, 30)
        self.assertTrue(status.is_expiring)
        self.assertFalse(status.is_expired)
        self.assertEqual(days_until(status.expiration_date, now), 21)

    def test_expiring_on_the_expiration_day(self):
        status = compute_expiry(date(2023, 1, 10), 365, date(2024, 1, 10), 30)
        self.assertFalse(status.is_expired)
        self.assertTrue(status.is_expiring)

    def test_expired_the_day_after(self):
        status = compute_expiry(date(2023, 1, 10), 365, date(2024, 1, 11), 30)
        self.assertTrue(status.is_expired)
        self.assertFalse(status.is_expiring)

    def test_zero_validity_expires_same_day(self):
        """A 0-day program is expiring on the pass date and expired the next day."""
        same_day = compute_expiry(date(2024, 3, 1), 0, date(2024, 3, 1), 30)
        self.assertEqual(same_day.expiration_date, date(2024, 3, 1))
        self.assertTrue(same_day.is_expiring)

        next_day = compute_expiry(date(2024, 3, 1), 0, date(2024, 3, 2), 30)
        self.assertTrue(next_day.is_expired)

    def test_zero_warn_window(self):
        status = compute_expiry(date(2023, 1, 10), 365, date(2024, 1, 9), 0)
        self.assertFalse(status.is_expiring)

    def test_never_expires(self):
        status = compute_expiry(date(2020, 1, 1), None, date(2030, 1, 1), 30)
        self.assertEqual(status, NEVER_EXPIRES)
        self.assertIsNone(status.expiration_date)

    def test_flags_are_exclusive(self):
        now = date(2024, 12, 20)
        for validity in range(0, 400, 7):
            status = compute_expiry(date(2024, 1, 10), validity, now, 30)
            self.assertFalse(status.is_expired and status.is_expiring, f"validity {validity}")


class TestDaysUntil(unittest.TestCase):

    def test_negative_after_expiry(self):
        self.assertEqual(days_until(date(2024, 1, 1), date(2024, 1, 11)), -10)


if __name__ == "__main__":
    unittest.main(verbosity=2)
