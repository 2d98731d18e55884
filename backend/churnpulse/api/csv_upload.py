from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from churnpulse.api.dependencies import CORS_HEADERS, get_current_owner_id
from churnpulse.core.config import settings
from churnpulse.core.db import get_db
from churnpulse.pipeline.ingestion import process_csv_batch
from churnpulse.pipeline.model_client import get_model_client
from churnpulse.schemas.ingest import CSVUploadRequest, CSVUploadResponse


router = APIRouter(tags=["csv"])
logger = logging.getLogger(__name__)


@router.options("/churn-csv-handler", include_in_schema=False)
def csv_preflight() -> Response:
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@router.post("/churn-csv-handler", response_model=CSVUploadResponse)
async def upload_csv_rows(
    request: Request,
    owner_id: str = Depends(get_current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        payload = CSVUploadRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid data format")
    if len(payload.data) > settings.CSV_MAX_ROWS:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Upload exceeds {settings.CSV_MAX_ROWS} rows",
        )

    logger.info(
        "csv.upload_received",
        extra={"owner_id": owner_id, "rows": len(payload.data)},
    )
    summary = await run_in_threadpool(
        process_csv_batch,
        db,
        payload.data,
        owner_id=owner_id,
        client=get_model_client(),
        filename=payload.filename,
    )
    return summary.to_payload()
