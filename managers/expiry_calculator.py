"""
EXPIRY CALCULATOR MODULE
========================
Work out when a passed training expires and whether it is expiring soon.

Dates are calendar dates. There is no timezone arithmetic anywhere in
here: a pass on 2023-01-10 with 365 days of validity expires on
2024-01-10. Leap days count like any other day.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional


@dataclass(frozen=True)
class ExpiryStatus:
    """Result of compute_expiry(). is_expired and is_expiring never both hold."""
    expiration_date: Optional[date]
    is_expired: bool
    is_expiring: bool


NEVER_EXPIRES = ExpiryStatus(expiration_date=None, is_expired=False, is_expiring=False)


def days_until(expiration_date: date, now: date) -> int:
    """Whole days from now to expiration_date (negative once it has passed)."""
    return (expiration_date - now).days


def compute_expiry(pass_date: date, validity_days: Optional[int], now: date,
                   warn_window_days: int) -> ExpiryStatus:
    """
    Compute the expiration state of a passing result.

    PURPOSE: One definition of "expired" and "expiring" for every report

    PARAMETERS:
        pass_date: Training date of the PASS result
        validity_days: Program validity period, or None if it never expires
        now: Reference date ("today")
        warn_window_days: How many days ahead counts as expiring

    RETURNS:
        ExpiryStatus

    EXAMPLE:
        compute_expiry(date(2023, 1, 10), 365, date(2023, 12, 20), 30)
        # ExpiryStatus(expiration_date=date(2024, 1, 10),
        #              is_expired=False, is_expiring=True)
    """
    if validity_days is None:
        return NEVER_EXPIRES

    expiration_date = pass_date + timedelta(days=validity_days)
    is_expired = expiration_date < now
    is_expiring = (not is_expired) and days_until(expiration_date, now) <= warn_window_days

    return ExpiryStatus(
        expiration_date=expiration_date,
        is_expired=is_expired,
        is_expiring=is_expiring,
    )
