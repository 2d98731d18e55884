from typing import Any

from sqlalchemy.orm import Session

from churnpulse.models.sdk_health_logs import SDKHealthLog


def create_sdk_health_log(
    db: Session,
    *,
    owner_id: str,
    status: str,
    api_key_id: int | None = None,
    request_data: dict[str, Any] | None = None,
    error_message: str | None = None,
    user_agent: str | None = None,
    source: str | None = None,
) -> SDKHealthLog:
    log = SDKHealthLog(
        user_id=owner_id,
        api_key_id=api_key_id,
        status=status,
        request_data=request_data,
        error_message=error_message,
        user_agent=user_agent,
        source=source,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log
