import os
from datetime import datetime

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "secret")

from churnpulse.models.enums import PlanEnum
from tests.factories import tracking_record
from churnpulse.pipeline.normalizer import (
    CSV_DEFAULT_DAYS_SINCE_SIGNUP,
    CSV_DEFAULT_LAST_LOGIN_DAYS_AGO,
    MissingFieldsError,
    normalize_csv_row,
    normalize_plan,
    normalize_tracking_plan,
    normalize_tracking_record,
    parse_count,
    parse_date,
    parse_numeric,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$1,200.50", 1200.5),
        (" 42 ", 42.0),
        (19.99, 19.99),
        ("n/a", 0.0),
        ("", 0.0),
        (None, 0.0),
        ([], 0.0),
        (True, 0.0),
        ("12abc", 12.0),
        ("-5", 0.0),
        (float("nan"), 0.0),
        (10**400, 0.0),
        ("1" * 400, 0.0),
    ],
)
def test_parse_numeric_is_lenient(raw, expected):
    assert parse_numeric(raw) == pytest.approx(expected)


def test_parse_count_truncates_and_defaults():
    assert parse_count("7.9") == 7
    assert parse_count("lots") == 0


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Business Pro Tier", PlanEnum.PRO),
        ("premium monthly", PlanEnum.PRO),
        ("ENTERPRISE", PlanEnum.ENTERPRISE),
        ("small business", PlanEnum.ENTERPRISE),
        ("Starter", PlanEnum.FREE),
        (None, PlanEnum.FREE),
    ],
)
def test_normalize_plan_keyword_order(raw, expected):
    assert normalize_plan(raw) == expected


def test_tracking_plan_recognizes_free_trial_literal():
    assert normalize_tracking_plan("Free Trial") == PlanEnum.FREE
    assert normalize_tracking_plan("Enterprise") == PlanEnum.ENTERPRISE
    assert normalize_tracking_plan("pro annual") == PlanEnum.PRO


def test_tracking_record_coerces_fields():
    signal = normalize_tracking_record(
        tracking_record(monthly_revenue="$1,000", number_of_logins_last30days="oops", user_id="  u-9 ")
    )
    assert signal.user_id == "u-9"
    assert signal.monthly_revenue == 1000.0
    assert signal.number_of_logins_last30days == 0
    assert signal.subscription_plan == PlanEnum.PRO


def test_tracking_record_lists_missing_fields():
    record = tracking_record()
    del record["monthly_revenue"]
    record["billing_issue_count"] = None
    with pytest.raises(MissingFieldsError) as exc_info:
        normalize_tracking_record(record)
    assert exc_info.value.fields == ["monthly_revenue", "billing_issue_count"]
    assert str(exc_info.value) == "Missing required fields: monthly_revenue, billing_issue_count"


def test_tracking_record_rejects_blank_user_id():
    with pytest.raises(MissingFieldsError) as exc_info:
        normalize_tracking_record(tracking_record(user_id="   "))
    assert exc_info.value.fields == ["user_id"]


def test_csv_row_requires_email_and_name():
    with pytest.raises(MissingFieldsError) as exc_info:
        normalize_csv_row({"customer_email": "a@example.com"})
    assert str(exc_info.value) == "Missing customer_email or customer_name"


def test_csv_row_derives_days_from_dates():
    now = datetime(2026, 3, 31)
    signal = normalize_csv_row(
        {
            "customer_name": " Ada ",
            "customer_email": " ada@example.com ",
            "signup_date": "2026-01-30",
            "last_active_date": "2026-03-21T10:00:00Z",
            "plan": "Premium",
            "billing_status": " Active ",
            "monthly_revenue": "$29.00",
            "support_tickets_opened": "2",
            "email_opens_last30days": "",
            "number_of_logins_last30days": "9",
        },
        now=now,
    )
    assert signal.user_id == "ada@example.com"
    assert signal.customer_name == "Ada"
    assert signal.days_since_signup == 60
    assert signal.last_login_days_ago == 9
    assert signal.last_active_at == datetime(2026, 3, 21, 10, 0)
    assert signal.subscription_plan == PlanEnum.PRO
    assert signal.last_payment_status == "Active"
    assert signal.email_opens_last30days == 0
    assert signal.active_features_used == 9


def test_csv_row_defaults_when_dates_unparseable():
    signal = normalize_csv_row(
        {
            "customer_name": "Bo",
            "customer_email": "bo@example.com",
            "signup_date": "sometime",
            "last_active_date": None,
        }
    )
    assert signal.days_since_signup == CSV_DEFAULT_DAYS_SINCE_SIGNUP
    assert signal.last_login_days_ago == CSV_DEFAULT_LAST_LOGIN_DAYS_AGO
    assert signal.last_active_at is None
    assert signal.monthly_revenue == 0.0


def test_parse_date_formats_and_out_of_range_values():
    assert parse_date("2026-03-21T10:00:00+02:00") == datetime(2026, 3, 21, 8, 0)
    assert parse_date("03/21/2026") == datetime(2026, 3, 21)
    assert parse_date("9999-12-31T23:00:00-05:00") is None
    assert parse_date("0001-01-01T00:30:00+01:00") is None
    assert parse_date("not a date") is None


def test_csv_row_with_out_of_range_date_uses_default():
    signal = normalize_csv_row(
        {
            "customer_name": "Bo",
            "customer_email": "bo@example.com",
            "last_active_date": "9999-12-31T23:00:00-05:00",
        }
    )
    assert signal.last_active_at is None
    assert signal.last_login_days_ago == CSV_DEFAULT_LAST_LOGIN_DAYS_AGO
