from datetime import date, datetime, timedelta
from enum import Enum

MATURITY_WINDOW_DAYS = 30


class FDStatus(Enum):
    CLOSED = 'Closed'
    MATURED = 'Matured'
    MATURING_SOON = 'MaturingSoon'
    ACTIVE = 'Active'

    @property
    def label(self):
        return 'Maturing Soon' if self is FDStatus.MATURING_SOON else self.value


def as_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f'Expected a date or datetime, got {type(value).__name__}')


def is_maturing_soon(fd, now, window_days=MATURITY_WINDOW_DAYS):
    """Active and maturing after today but no later than today + window_days."""
    if not fd.get('is_active'):
        return False
    today = as_date(now)
    return today < fd['maturity_date'] <= today + timedelta(days=window_days)


def classify(fd, now, window_days=MATURITY_WINDOW_DAYS):
    """Lifecycle status of a fixed deposit as seen on `now`.

    Computed on every read; the result is never stored on the record.
    """
    if not fd.get('is_active'):
        return FDStatus.CLOSED
    today = as_date(now)
    maturity = fd['maturity_date']
    if maturity <= today:
        return FDStatus.MATURED
    if maturity <= today + timedelta(days=window_days):
        return FDStatus.MATURING_SOON
    return FDStatus.ACTIVE


def days_to_maturity(fd, now):
    """Negative once the maturity date has passed."""
    return (fd['maturity_date'] - as_date(now)).days
