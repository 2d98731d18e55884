from sqlalchemy.orm import Session

from churnpulse.models.csv_uploads import CSVUpload


def create_csv_upload(
    db: Session,
    *,
    owner_id: str,
    filename: str,
    rows_processed: int,
    rows_failed: int,
    status: str = "completed",
) -> CSVUpload:
    upload = CSVUpload(
        user_id=owner_id,
        filename=filename,
        rows_processed=rows_processed,
        rows_failed=rows_failed,
        status=status,
    )
    db.add(upload)
    db.commit()
    db.refresh(upload)
    return upload
