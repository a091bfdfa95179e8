"""
tests/test_warranty.py - Warranty aggregation across several sources.
"""
from datetime import date, timedelta

from conftest import NOW

from statusboard.schemas import WarrantyStatus
from statusboard.warranty import aggregate_warranties, as_datetime

TODAY = NOW.date()


def days(n: int) -> date:
    return TODAY + timedelta(days=n)


def test_no_warranties_is_none():
    info = aggregate_warranties([], now=NOW)
    assert info.status == WarrantyStatus.NONE
    assert info.expiry_date is None


def test_best_active_coverage_wins():
    info = aggregate_warranties([days(400), days(30), days(-20)], now=NOW)
    assert info.status == WarrantyStatus.ACTIVE
    assert info.expiry_date == as_datetime(days(400))


def test_expiring_soon_within_sixty_days():
    info = aggregate_warranties([days(10), days(-5)], now=NOW)
    assert info.status == WarrantyStatus.EXPIRING_SOON
    assert info.expiry_date == as_datetime(days(10))


def test_latest_active_is_chosen_before_window_check():
    # The furthest active expiry decides the status
    info = aggregate_warranties([days(10), days(90)], now=NOW)
    assert info.status == WarrantyStatus.ACTIVE
    assert info.expiry_date == as_datetime(days(90))


def test_all_expired_reports_most_recent():
    info = aggregate_warranties([days(-5), days(-100)], now=NOW)
    assert info.status == WarrantyStatus.EXPIRED
    assert info.expiry_date == as_datetime(days(-5))


def test_undated_warranties_are_expired_without_date():
    info = aggregate_warranties([None, None], now=NOW)
    assert info.status == WarrantyStatus.EXPIRED
    assert info.expiry_date is None


def test_undated_entries_ignored_when_others_active():
    info = aggregate_warranties([None, days(200)], now=NOW)
    assert info.status == WarrantyStatus.ACTIVE
