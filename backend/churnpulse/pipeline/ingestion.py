"""
Per-record normalize -> score -> persist, for both ingestion paths.

Every record runs in isolation: a failure is caught, logged and turned into
an error entry, and the next record starts from a clean session. The owner
id is always passed in explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.orm import Session

from churnpulse.core.metrics import record_failed, record_scored
from churnpulse.models.enums import HealthStatusEnum
from churnpulse.pipeline.materializer import (
    log_csv_upload,
    log_sdk_health,
    materialize_csv,
    materialize_tracking,
)
from churnpulse.pipeline.model_client import ChurnModelClient
from churnpulse.pipeline.normalizer import (
    MissingFieldsError,
    normalize_csv_row,
    normalize_tracking_record,
)
from churnpulse.pipeline.scorer import score_csv_signal, score_tracking_signal

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_ERROR = "error"
UNKNOWN_USER = "unknown"
DEFAULT_CSV_FILENAME = "csv-upload.csv"


@dataclass
class TrackingContext:
    owner_id: str
    api_key_id: Optional[int] = None
    user_agent: Optional[str] = None


@dataclass
class TrackingSummary:
    results: list[dict[str, Any]] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return sum(1 for item in self.results if item["status"] == STATUS_OK)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.results if item["status"] == STATUS_ERROR)

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": STATUS_OK,
            "processed": self.processed,
            "failed": self.failed,
            "total": len(self.results),
            "results": self.results,
        }


@dataclass
class CSVSummary:
    rows_processed: int = 0
    rows_success: int = 0
    error_details: list[dict[str, Any]] = field(default_factory=list)

    @property
    def rows_failed(self) -> int:
        return len(self.error_details)

    @property
    def message(self) -> str:
        message = f"{self.rows_success} rows processed successfully"
        if self.rows_failed:
            message = f"{message}, {self.rows_failed} failed"
        return message

    def to_payload(self) -> dict[str, Any]:
        return {
            "rows_processed": self.rows_processed,
            "rows_success": self.rows_success,
            "rows_failed": self.rows_failed,
            "error_details": self.error_details,
            "message": self.message,
        }


def _raw_user_id(raw: Any, key: str) -> str:
    if isinstance(raw, dict):
        value = raw.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return UNKNOWN_USER


def process_tracking_record(
    db: Session,
    raw: Any,
    *,
    context: TrackingContext,
    client: Optional[ChurnModelClient],
) -> dict[str, Any]:
    user_id = _raw_user_id(raw, "user_id")
    try:
        signal = normalize_tracking_record(raw)
        user_id = signal.user_id
        result = score_tracking_signal(signal, client)
        materialize_tracking(db, owner_id=context.owner_id, signal=signal, result=result)
    except MissingFieldsError as exc:
        logger.info(
            "track.record_rejected",
            extra={"owner_id": context.owner_id, "user_id": user_id, "fields": exc.fields},
        )
        record_failed(path="track")
        return {"status": STATUS_ERROR, "user_id": user_id, "error": str(exc)}
    except Exception as exc:
        db.rollback()
        logger.exception(
            "track.record_failed",
            extra={"owner_id": context.owner_id, "user_id": user_id},
        )
        record_failed(path="track")
        log_sdk_health(
            db,
            owner_id=context.owner_id,
            status=HealthStatusEnum.ERROR,
            api_key_id=context.api_key_id,
            request_data={"user_id": user_id},
            error_message=str(exc) or "Processing failed",
            user_agent=context.user_agent,
        )
        return {"status": STATUS_ERROR, "user_id": user_id, "error": "Processing failed"}

    log_sdk_health(
        db,
        owner_id=context.owner_id,
        status=HealthStatusEnum.SUCCESS,
        api_key_id=context.api_key_id,
        request_data={
            "user_id": signal.user_id,
            "plan": signal.subscription_plan.value,
            "revenue": signal.monthly_revenue,
        },
        user_agent=context.user_agent,
    )
    record_scored(path="track", strategy=result.strategy, risk_level=result.risk_level.value)
    payload = result.to_payload()
    payload["status"] = STATUS_OK
    return payload


def process_tracking_batch(
    db: Session,
    records: list[Any],
    *,
    context: TrackingContext,
    client: Optional[ChurnModelClient],
) -> TrackingSummary:
    summary = TrackingSummary()
    for raw in records:
        summary.results.append(
            process_tracking_record(db, raw, context=context, client=client)
        )
    logger.info(
        "track.batch_completed",
        extra={
            "owner_id": context.owner_id,
            "processed": summary.processed,
            "failed": summary.failed,
        },
    )
    return summary


def process_csv_row(
    db: Session,
    raw: Any,
    *,
    owner_id: str,
    client: Optional[ChurnModelClient],
) -> Optional[str]:
    """Score and persist one upload row. Returns an error message or None."""
    try:
        signal = normalize_csv_row(raw)
    except MissingFieldsError as exc:
        return str(exc)
    except Exception as exc:
        logger.exception(
            "csv.row_invalid",
            extra={"owner_id": owner_id, "user_id": _raw_user_id(raw, "customer_email")},
        )
        return f"Invalid row: {exc}"

    try:
        result = score_csv_signal(signal, client)
        materialize_csv(db, owner_id=owner_id, signal=signal, result=result)
    except Exception as exc:
        db.rollback()
        logger.exception(
            "csv.row_failed",
            extra={"owner_id": owner_id, "user_id": signal.user_id},
        )
        return f"Database error: {exc}"
    record_scored(path="csv", strategy=result.strategy, risk_level=result.risk_level.value)
    return None


def process_csv_batch(
    db: Session,
    rows: list[Any],
    *,
    owner_id: str,
    client: Optional[ChurnModelClient],
    filename: Optional[str] = None,
) -> CSVSummary:
    summary = CSVSummary(rows_processed=len(rows))
    for index, raw in enumerate(rows, start=1):
        error = process_csv_row(db, raw, owner_id=owner_id, client=client)
        if error is None:
            summary.rows_success += 1
            continue
        record_failed(path="csv")
        summary.error_details.append(
            {"row": index, "user_id": _raw_user_id(raw, "customer_email"), "error": error}
        )

    log_csv_upload(
        db,
        owner_id=owner_id,
        filename=filename or DEFAULT_CSV_FILENAME,
        rows_success=summary.rows_success,
        rows_failed=summary.rows_failed,
    )
    logger.info(
        "csv.batch_completed",
        extra={
            "owner_id": owner_id,
            "rows_success": summary.rows_success,
            "rows_failed": summary.rows_failed,
        },
    )
    return summary
