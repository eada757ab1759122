from datetime import date, timedelta, timezone
import pytest
from erp.utils.date_range import (
    parse_day, format_day, day_key, diff_days, build_date_range, DateRangeError, day_bounds, as_utc,
)
from erp.constants.modules import FUEL_RANGE_MAX_DAYS, INVENTORY_RANGE_MAX_DAYS


def test_parse_and_format_day():
    assert parse_day('05-03-2026') == date(2026, 3, 5)
    assert parse_day('2026-03-05') is None
    assert parse_day('31-02-2026') is None
    assert parse_day('') is None
    assert format_day(date(2026, 3, 5)) == '05-03-2026'
    assert day_key(date(2026, 3, 5)) == '20260305'


def test_diff_days():
    assert diff_days(date(2026, 3, 1), date(2026, 3, 1)) == 0
    assert diff_days(date(2026, 3, 1), date(2026, 3, 31)) == 30
    assert diff_days(date(2026, 3, 31), date(2026, 3, 1)) == 30


def test_single_day_when_end_missing():
    rng = build_date_range('10-03-2026', None, FUEL_RANGE_MAX_DAYS)
    assert rng.is_single_day
    assert rng.label() == '10-03-2026'
    assert list(rng.iter_days()) == [date(2026, 3, 10)]


def test_reversed_bounds_are_swapped():
    rng = build_date_range('20-03-2026', '10-03-2026', FUEL_RANGE_MAX_DAYS)
    assert rng.start == date(2026, 3, 10) and rng.end == date(2026, 3, 20)
    assert rng.label() == '10-03-2026 al 20-03-2026'
    assert len(list(rng.iter_days())) == 11


def test_fuel_range_limit():
    start = date(2026, 1, 1)
    ok = build_date_range(format_day(start), format_day(start + timedelta(days=31)), FUEL_RANGE_MAX_DAYS)
    assert ok.days == 31
    with pytest.raises(DateRangeError) as exc:
        build_date_range(format_day(start), format_day(start + timedelta(days=32)), FUEL_RANGE_MAX_DAYS)
    assert '31' in str(exc.value)


def test_inventory_range_limit():
    start = date(2026, 1, 1)
    build_date_range(format_day(start), format_day(start + timedelta(days=90)), INVENTORY_RANGE_MAX_DAYS)
    with pytest.raises(DateRangeError):
        build_date_range(format_day(start), format_day(start + timedelta(days=91)), INVENTORY_RANGE_MAX_DAYS)


def test_malformed_dates_rejected():
    with pytest.raises(DateRangeError):
        build_date_range('2026-01-01', None, 31)
    with pytest.raises(DateRangeError):
        build_date_range('01-01-2026', 'mañana', 31)


def test_day_bounds_cover_local_day(app_instance):
    with app_instance.app_context():
        start, end = day_bounds(date(2026, 3, 10), 'UTC')
        local_start, _ = day_bounds(date(2026, 3, 10))
    assert start.tzinfo is not None and start.hour == 0
    assert (end - start) < timedelta(days=1)
    assert end - start > timedelta(hours=23, minutes=59)
    # Asuncion is behind UTC, so its midnight falls later in UTC
    assert local_start > start


def test_as_utc_attaches_zone_to_naive_values():
    from datetime import datetime
    naive = datetime(2026, 3, 10, 12, 0)
    assert as_utc(naive).tzinfo == timezone.utc
    assert as_utc(None) is None


def test_range_endpoint_rejects_long_span(client, app_instance):
    from tests.test_utils_seed import ensure_user
    from tests.test_lifecycle_helpers import jwt_headers
    user = ensure_user('range-user@example.com')
    with app_instance.app_context():
        headers = jwt_headers(user.id, {'SCOM01': 'r', 'INV01': 'r'})
    r = client.get('/SCOM01/composite?start=01-01-2026&end=15-02-2026', headers=headers)
    assert r.status_code == 400
    assert 'exceder 31' in r.get_json()['error']['detail']
    r = client.get('/reports/inventory/movements?start=01-01-2026&end=15-02-2026', headers=headers)
    assert r.status_code == 200
    assert client.get('/reports/inventory/movements', headers=headers).status_code == 400
