import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from churnpulse.models.user_data import UserData

logger = logging.getLogger(__name__)


def get_user_data(db: Session, *, owner_id: str, user_id: str) -> UserData | None:
    return (
        db.query(UserData)
        .filter(UserData.owner_id == owner_id, UserData.user_id == user_id)
        .first()
    )


def _apply(row: UserData, values: dict[str, Any]) -> None:
    for key, value in values.items():
        setattr(row, key, value)


def upsert_user_data(
    db: Session,
    *,
    owner_id: str,
    user_id: str,
    values: dict[str, Any],
) -> UserData:
    """Insert or overwrite the assessment for (owner_id, user_id).

    Only the keys present in `values` are written on update, so callers
    that leave out `is_deleted` never change the soft-delete flag.
    """
    if not owner_id:
        raise ValueError("owner_id is required")
    if not user_id:
        raise ValueError("user_id is required")

    row = get_user_data(db, owner_id=owner_id, user_id=user_id)
    if row is None:
        row = UserData(owner_id=owner_id, user_id=user_id)
        _apply(row, values)
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent request inserted the pair first; last write wins.
            db.rollback()
            logger.info(
                "user_data.insert_race",
                extra={"owner_id": owner_id, "user_id": user_id},
            )
            row = get_user_data(db, owner_id=owner_id, user_id=user_id)
            if row is None:
                raise
            _apply(row, values)
            db.commit()
    else:
        _apply(row, values)
        db.commit()
    db.refresh(row)
    return row
