"""
Turns loosely typed JSON objects and CSV rows into `UserSignal` records.

Numeric fields are parsed leniently: currency symbols, thousands separators
and whitespace are stripped, and anything that still fails to parse becomes
0. Only missing identity/required fields reject a record.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from churnpulse.models.enums import PlanEnum

_NUMERIC_NOISE = re.compile(r"[$,\s]")
_LEADING_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")

TRACKING_REQUIRED_FIELDS = (
    "user_id",
    "days_since_signup",
    "monthly_revenue",
    "subscription_plan",
    "number_of_logins_last30days",
    "active_features_used",
    "support_tickets_opened",
    "last_payment_status",
    "email_opens_last30days",
    "last_login_days_ago",
    "billing_issue_count",
)

CSV_REQUIRED_FIELDS = ("customer_email", "customer_name")

# Used for CSV rows whose dates are missing or unparseable.
CSV_DEFAULT_DAYS_SINCE_SIGNUP = 30
CSV_DEFAULT_LAST_LOGIN_DAYS_AGO = 3

_TRACKING_PLAN_LITERALS = {
    "Free Trial": PlanEnum.FREE,
    "Pro": PlanEnum.PRO,
    "Enterprise": PlanEnum.ENTERPRISE,
}


class MissingFieldsError(ValueError):
    def __init__(self, fields: list[str], message: Optional[str] = None) -> None:
        self.fields = list(fields)
        super().__init__(message or f"Missing required fields: {', '.join(self.fields)}")


@dataclass(frozen=True)
class UserSignal:
    user_id: str
    days_since_signup: int
    monthly_revenue: float
    subscription_plan: PlanEnum
    number_of_logins_last30days: int
    active_features_used: int
    support_tickets_opened: int
    last_payment_status: str
    email_opens_last30days: int
    last_login_days_ago: int
    billing_issue_count: int
    customer_name: Optional[str] = None
    last_active_at: Optional[datetime] = None

    @property
    def payment_status(self) -> str:
        return self.last_payment_status.lower()


def parse_numeric(value: Any) -> float:
    """Lenient float parse. "$1,200.50" -> 1200.5, "n/a" -> 0.0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(_NUMERIC_NOISE.sub("", value))
        if not match:
            return 0.0
        number = float(match.group(0))
    else:
        return 0.0
    if number != number or number in (float("inf"), float("-inf")):
        return 0.0
    return max(number, 0.0)


def parse_count(value: Any) -> int:
    return int(parse_numeric(value))


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_plan(plan: Any) -> PlanEnum:
    normalized = _clean_text(plan).lower()
    if "pro" in normalized or "premium" in normalized:
        return PlanEnum.PRO
    if "enterprise" in normalized or "business" in normalized:
        return PlanEnum.ENTERPRISE
    return PlanEnum.FREE


def normalize_tracking_plan(plan: Any) -> PlanEnum:
    cleaned = _clean_text(plan)
    if cleaned in _TRACKING_PLAN_LITERALS:
        return _TRACKING_PLAN_LITERALS[cleaned]
    return normalize_plan(cleaned)


def parse_date(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = _clean_text(value)
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
            for fmt in ("%m/%d/%Y", "%d/%m/%Y", "%Y/%m/%d"):
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
            if parsed is None:
                return None
    if parsed.tzinfo is not None:
        # Shifting an edge date such as 9999-12-31T23:00-05:00 to UTC leaves the
        # supported range.
        try:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        except (OverflowError, ValueError):
            return None
    return parsed


def _days_between(earlier: Optional[datetime], now: datetime) -> Optional[int]:
    if earlier is None:
        return None
    return max((now - earlier).days, 0)


def _missing(record: dict[str, Any], fields: tuple[str, ...]) -> list[str]:
    return [field for field in fields if record.get(field) is None]


def normalize_tracking_record(record: Any) -> UserSignal:
    if not isinstance(record, dict):
        raise MissingFieldsError(list(TRACKING_REQUIRED_FIELDS))
    missing = _missing(record, TRACKING_REQUIRED_FIELDS)
    user_id = _clean_text(record.get("user_id"))
    if not user_id and "user_id" not in missing:
        missing.insert(0, "user_id")
    if missing:
        raise MissingFieldsError(missing)

    return UserSignal(
        user_id=user_id,
        days_since_signup=parse_count(record["days_since_signup"]),
        monthly_revenue=parse_numeric(record["monthly_revenue"]),
        subscription_plan=normalize_tracking_plan(record["subscription_plan"]),
        number_of_logins_last30days=parse_count(record["number_of_logins_last30days"]),
        active_features_used=parse_count(record["active_features_used"]),
        support_tickets_opened=parse_count(record["support_tickets_opened"]),
        last_payment_status=_clean_text(record["last_payment_status"]),
        email_opens_last30days=parse_count(record["email_opens_last30days"]),
        last_login_days_ago=parse_count(record["last_login_days_ago"]),
        billing_issue_count=parse_count(record["billing_issue_count"]),
    )


def normalize_csv_row(row: Any, *, now: Optional[datetime] = None) -> UserSignal:
    if not isinstance(row, dict):
        raise MissingFieldsError(list(CSV_REQUIRED_FIELDS), "Missing customer_email or customer_name")
    email = _clean_text(row.get("customer_email"))
    name = _clean_text(row.get("customer_name"))
    if not email or not name:
        missing = [field for field, value in zip(CSV_REQUIRED_FIELDS, (email, name)) if not value]
        raise MissingFieldsError(missing, "Missing customer_email or customer_name")

    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    signup_at = parse_date(row.get("signup_date"))
    last_active_at = parse_date(row.get("last_active_date"))
    days_since_signup = _days_between(signup_at, now)
    last_login_days_ago = _days_between(last_active_at, now)
    logins = parse_count(row.get("number_of_logins_last30days"))

    return UserSignal(
        user_id=email,
        customer_name=name,
        days_since_signup=(
            CSV_DEFAULT_DAYS_SINCE_SIGNUP if days_since_signup is None else days_since_signup
        ),
        monthly_revenue=parse_numeric(row.get("monthly_revenue")),
        subscription_plan=normalize_plan(row.get("plan")),
        number_of_logins_last30days=logins,
        # Uploads carry no feature-usage column; logins stand in for it.
        active_features_used=logins,
        support_tickets_opened=parse_count(row.get("support_tickets_opened")),
        last_payment_status=_clean_text(row.get("billing_status")),
        email_opens_last30days=parse_count(row.get("email_opens_last30days")),
        last_login_days_ago=(
            CSV_DEFAULT_LAST_LOGIN_DAYS_AGO if last_login_days_ago is None else last_login_days_ago
        ),
        billing_issue_count=0,
        last_active_at=last_active_at,
    )
