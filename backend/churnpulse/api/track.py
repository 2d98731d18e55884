from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from churnpulse.api.dependencies import CORS_HEADERS, authenticate_api_key, extract_api_key
from churnpulse.core.config import settings
from churnpulse.core.db import get_db
from churnpulse.notifications.playbooks import trigger_playbooks
from churnpulse.pipeline.ingestion import TrackingContext, process_tracking_batch
from churnpulse.pipeline.model_client import get_model_client
from churnpulse.schemas.ingest import TrackResponse


router = APIRouter(tags=["track"])
logger = logging.getLogger(__name__)


@router.options("/track", include_in_schema=False)
def track_preflight() -> Response:
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@router.post("/track", response_model=TrackResponse)
async def track_users(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON in request body",
        )
    if not isinstance(body, (dict, list)):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be an object or an array of objects",
        )

    identity = await run_in_threadpool(authenticate_api_key, db, extract_api_key(request, body))

    records = body if isinstance(body, list) else [body]
    if len(records) > settings.TRACK_MAX_BATCH_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Batch exceeds {settings.TRACK_MAX_BATCH_SIZE} records",
        )

    context = TrackingContext(
        owner_id=identity.owner_id,
        api_key_id=identity.api_key_id,
        user_agent=request.headers.get("User-Agent"),
    )
    summary = await run_in_threadpool(
        process_tracking_batch,
        db,
        records,
        context=context,
        client=get_model_client(),
    )

    if summary.processed > 0:
        background_tasks.add_task(trigger_playbooks, identity.owner_id, summary.processed)
    return summary.to_payload()
