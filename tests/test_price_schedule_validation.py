from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from priceport.core.config import settings
from priceport.core.pricing.errors import InvalidArgumentError
from priceport.core.pricing.lifecycle import ScheduleStatus
from priceport.services.price_schedule_validation import (
    parse_as_of,
    validate_schedule_create,
    validate_schedule_patch,
)


def _errors_by_field(outcome) -> dict[str, str]:
    return {err.field: err.code for err in outcome.errors}


def test_create_cleans_and_coerces_raw_values():
    outcome = validate_schedule_create(
        {
            "item_id": "12",
            "customer_id": "",
            "effective_date": "2024-05-01T00:00:00.000Z",
            "base_price": "12000",
            "discount1_pct": 5,
            "discount2_pct": "2.5",
            "tax_pct": None,
            "notes": "  promo  ",
        }
    )

    assert outcome.ok
    assert outcome.cleaned == {
        "item_id": 12,
        "customer_id": None,
        "effective_date": date(2024, 5, 1),
        "base_price": Decimal("12000.00"),
        "discount1_pct": Decimal("5.00"),
        "discount2_pct": Decimal("2.50"),
        "tax_pct": None,
        "notes": "promo",
    }


def test_create_collects_all_field_errors():
    outcome = validate_schedule_create(
        {
            "item_id": None,
            "customer_id": "abc",
            "effective_date": "2024-13-45",
            "base_price": "-5",
            "discount1_pct": "150",
            "discount2_pct": "x",
            "tax_pct": -1,
            "notes": "n" * 1001,
        }
    )

    assert _errors_by_field(outcome) == {
        "item_id": "required",
        "customer_id": "invalid",
        "effective_date": "invalid",
        "base_price": "must_be_positive",
        "discount1_pct": "out_of_range",
        "discount2_pct": "invalid",
        "tax_pct": "out_of_range",
        "notes": "too_long",
    }


def test_create_accepts_past_dates_and_datetime_objects():
    outcome = validate_schedule_create(
        {"item_id": 1, "effective_date": datetime(2001, 1, 1, 12, 0), "base_price": 1}
    )

    assert outcome.ok
    assert outcome.cleaned["effective_date"] == date(2001, 1, 1)


def test_create_rejects_non_pending_status():
    outcome = validate_schedule_create(
        {"item_id": 1, "effective_date": "2024-01-01", "base_price": 10, "status": "ACTIVE"}
    )

    assert _errors_by_field(outcome) == {"status": "read_only"}


def test_create_ignores_client_derived_prices():
    outcome = validate_schedule_create(
        {
            "item_id": 1,
            "effective_date": "2024-01-01",
            "base_price": 10,
            "price_after_discount1": 1,
            "price_after_discount2": 1,
        }
    )

    assert outcome.ok
    assert "price_after_discount1" not in outcome.cleaned
    assert "price_after_discount2" not in outcome.cleaned


def test_patch_only_checks_present_keys():
    outcome = validate_schedule_patch({"notes": "updated", "status": "cancelled"})

    assert outcome.ok
    assert outcome.cleaned == {"notes": "updated", "status": ScheduleStatus.CANCELLED}


def test_patch_rejects_clearing_required_fields():
    outcome = validate_schedule_patch({"item_id": None, "base_price": "", "status": "DONE"})

    assert _errors_by_field(outcome) == {
        "item_id": "required",
        "base_price": "required",
        "status": "invalid",
    }


def test_parse_as_of_reads_timestamps_on_the_business_day(monkeypatch):
    monkeypatch.setattr(settings, "PRICING_TIMEZONE", "Asia/Jakarta")

    # Local midnight on June 2nd in Jakarta, as sent by toISOString().
    assert parse_as_of("2024-06-01T17:00:00.000Z") == date(2024, 6, 2)
    assert parse_as_of("2024-06-01T10:00:00.000Z") == date(2024, 6, 1)
    assert parse_as_of("2024-06-02T00:30:00+07:00") == date(2024, 6, 2)
    assert parse_as_of("2024-06-02") == date(2024, 6, 2)
    assert parse_as_of(None) is None


def test_parse_as_of_falls_back_to_utc_for_unknown_zone(monkeypatch):
    monkeypatch.setattr(settings, "PRICING_TIMEZONE", "Nowhere/Unknown")

    assert parse_as_of("2024-06-01T17:00:00.000Z") == date(2024, 6, 1)


def test_effective_date_rejects_trailing_junk():
    outcome = validate_schedule_create(
        {"item_id": 1, "effective_date": "2024-01-01garbage", "base_price": "10"}
    )

    assert _errors_by_field(outcome) == {"effective_date": "invalid"}

    with pytest.raises(InvalidArgumentError):
        parse_as_of("2024-06-01xyz")


def test_parse_as_of_rejects_garbage():
    with pytest.raises(InvalidArgumentError):
        parse_as_of("yesterday")
