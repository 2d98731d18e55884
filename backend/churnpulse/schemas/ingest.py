from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator


class CSVUploadRequest(BaseModel):
    # Rows stay loosely typed; the normalizer coerces each one on its own
    # so a bad row cannot reject the whole upload.
    data: list[Any] = Field(min_length=1)
    filename: Optional[str] = None

    @field_validator("filename")
    @classmethod
    def strip_filename(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


class CSVRowError(BaseModel):
    row: int
    user_id: str
    error: str


class CSVUploadResponse(BaseModel):
    rows_processed: int
    rows_success: int
    rows_failed: int
    error_details: list[CSVRowError]
    message: str


class TrackResultOK(BaseModel):
    status: str
    user_id: str
    churn_probability: float
    risk_level: str
    lifecycle_stage: str
    understanding_score: int
    churn_reason: str
    action_recommended: str
    days_until_mature: int


class TrackResultError(BaseModel):
    status: str
    user_id: str
    error: str


class TrackResponse(BaseModel):
    status: str
    processed: int
    failed: int
    total: int
    results: list[Union[TrackResultOK, TrackResultError]]
