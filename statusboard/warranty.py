"""Collapse the warranties reachable from one registry entry into a single status."""

from collections.abc import Iterable
from datetime import date, datetime, timedelta

from .config import EXPIRING_SOON_DAYS
from .schemas import WarrantyInfo, WarrantyStatus


def as_datetime(value: date | datetime | None) -> datetime | None:
    """Promote a calendar date to midnight so it compares against timestamps."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def aggregate_warranties(
    expiries: Iterable[date | datetime | None],
    now: datetime | None = None,
) -> WarrantyInfo:
    """Compute one warranty status from several expiry dates.

    - No warranties at all: ``none``.
    - The latest expiry still in the future wins; within EXPIRING_SOON_DAYS it
      is ``expiring_soon``, otherwise ``active``.
    - Otherwise ``expired`` with the most recent past expiry. When none of the
      warranties carries an expiry date the result is ``expired`` with no date.
    """
    expiries = list(expiries)
    if not expiries:
        return WarrantyInfo(status=WarrantyStatus.NONE, expiry_date=None)

    now = now or datetime.utcnow()
    dated = [as_datetime(e) for e in expiries if e is not None]

    active = [e for e in dated if e > now]
    if active:
        best = max(active)
        if best - now <= timedelta(days=EXPIRING_SOON_DAYS):
            return WarrantyInfo(status=WarrantyStatus.EXPIRING_SOON, expiry_date=best)
        return WarrantyInfo(status=WarrantyStatus.ACTIVE, expiry_date=best)

    return WarrantyInfo(
        status=WarrantyStatus.EXPIRED,
        expiry_date=max(dated) if dated else None,
    )
