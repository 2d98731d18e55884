"""
Maps scored records onto `user_data` rows and writes the audit trail.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from churnpulse.core.time import utcnow
from churnpulse.crud.csv_uploads import create_csv_upload
from churnpulse.crud.sdk_health import create_sdk_health_log
from churnpulse.crud.user_data import upsert_user_data
from churnpulse.models.enums import HealthStatusEnum, SignalSourceEnum
from churnpulse.models.user_data import UserData
from churnpulse.pipeline.normalizer import UserSignal
from churnpulse.pipeline.scorer import ScoredResult

logger = logging.getLogger(__name__)

NO_SIGNAL_REASON = "No strong signals yet"


def _scored_values(result: ScoredResult) -> dict[str, Any]:
    return {
        "churn_score": result.churn_probability,
        "churn_reason": result.churn_reason or NO_SIGNAL_REASON,
        "risk_level": result.risk_level.value,
        "user_stage": result.lifecycle_stage.value,
        "understanding_score": result.understanding_score,
        "days_until_mature": result.days_until_mature,
        "action_recommended": result.action_recommended,
    }


def tracking_row_values(
    signal: UserSignal,
    result: ScoredResult,
    *,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    now = now or utcnow()
    values = _scored_values(result)
    values.update(
        {
            "plan": signal.subscription_plan.value,
            "usage": signal.monthly_revenue,
            "last_login": now - timedelta(days=signal.last_login_days_ago),
            "source": SignalSourceEnum.SDK.value,
        }
    )
    return values


def csv_row_values(signal: UserSignal, result: ScoredResult) -> dict[str, Any]:
    values = _scored_values(result)
    values.update(
        {
            "plan": signal.subscription_plan.value,
            "usage": signal.number_of_logins_last30days,
            "last_login": signal.last_active_at,
            "source": SignalSourceEnum.CSV.value,
            # Uploads always clear the soft-delete flag, so re-uploading a
            # customer brings a previously deleted row back.
            "is_deleted": False,
        }
    )
    return values


def materialize_tracking(
    db: Session,
    *,
    owner_id: str,
    signal: UserSignal,
    result: ScoredResult,
) -> UserData:
    return upsert_user_data(
        db,
        owner_id=owner_id,
        user_id=signal.user_id,
        values=tracking_row_values(signal, result),
    )


def materialize_csv(
    db: Session,
    *,
    owner_id: str,
    signal: UserSignal,
    result: ScoredResult,
) -> UserData:
    return upsert_user_data(
        db,
        owner_id=owner_id,
        user_id=signal.user_id,
        values=csv_row_values(signal, result),
    )


def log_sdk_health(
    db: Session,
    *,
    owner_id: str,
    status: HealthStatusEnum,
    api_key_id: Optional[int] = None,
    request_data: Optional[dict[str, Any]] = None,
    error_message: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> bool:
    """Best-effort heartbeat row. Returns False instead of raising."""
    try:
        create_sdk_health_log(
            db,
            owner_id=owner_id,
            status=status.value,
            api_key_id=api_key_id,
            request_data=request_data,
            error_message=error_message,
            user_agent=user_agent,
            source=SignalSourceEnum.SDK.value,
        )
    except Exception:
        db.rollback()
        logger.warning(
            "sdk_health.log_failed",
            extra={"owner_id": owner_id, "status": status.value},
            exc_info=True,
        )
        return False
    return True


def log_csv_upload(
    db: Session,
    *,
    owner_id: str,
    filename: str,
    rows_success: int,
    rows_failed: int,
) -> bool:
    try:
        create_csv_upload(
            db,
            owner_id=owner_id,
            filename=filename,
            rows_processed=rows_success,
            rows_failed=rows_failed,
        )
    except Exception:
        db.rollback()
        logger.warning(
            "csv_upload.log_failed",
            extra={"owner_id": owner_id, "upload_filename": filename},
            exc_info=True,
        )
        return False
    return True
