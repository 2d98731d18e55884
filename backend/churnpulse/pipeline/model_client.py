from __future__ import annotations

import logging
from dataclasses import dataclass
from time import monotonic
from typing import Any, Optional, Sequence

import requests
from pydantic import BaseModel, Field, ValidationError

from churnpulse.core.config import settings
from churnpulse.core.metrics import record_model_request
from churnpulse.models.enums import PlanEnum
from churnpulse.pipeline.normalizer import UserSignal

logger = logging.getLogger(__name__)


class ModelUnavailableError(RuntimeError):
    """The external model could not produce a usable score."""


class _ModelResponse(BaseModel):
    churn_score: float = Field(ge=0.0, le=1.0)
    churn_reason: Optional[str] = None
    understanding_score: Optional[float] = None
    insight: Optional[str] = None


@dataclass(frozen=True)
class ModelPrediction:
    churn_score: float
    churn_reason: Optional[str] = None
    understanding_score: Optional[float] = None
    insight: Optional[str] = None


def build_feature_payload(signal: UserSignal) -> dict[str, Any]:
    """Model input with the categorical fields one-hot encoded."""
    return {
        "days_since_signup": signal.days_since_signup,
        "monthly_revenue": signal.monthly_revenue,
        "subscription_plan_Pro": 1 if signal.subscription_plan == PlanEnum.PRO else 0,
        "subscription_plan_FreeTrial": 1 if signal.subscription_plan == PlanEnum.FREE else 0,
        "number_of_logins_last30days": signal.number_of_logins_last30days,
        "active_features_used": signal.active_features_used,
        "support_tickets_opened": signal.support_tickets_opened,
        "last_payment_status_Success": 1 if "success" in signal.payment_status else 0,
        "email_opens_last30days": signal.email_opens_last30days,
        "last_login_days_ago": signal.last_login_days_ago,
        "billing_issue_count": signal.billing_issue_count,
    }


def candidate_endpoints(base_url: str) -> list[str]:
    # Deployed model versions disagree on their route, so uploads probe
    # the known ones in order before posting to the bare URL.
    root = base_url.rstrip("/")
    return [
        f"{root}/api/v1/predict",
        f"{root}/predict",
        f"{root}/api/predict",
        base_url,
    ]


class ChurnModelClient:
    def __init__(self, api_url: str, api_key: str, timeout: float) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "X-API-Key": self.api_key,
        }

    def _post(self, url: str, payload: dict[str, Any]) -> ModelPrediction:
        start = monotonic()
        try:
            resp = requests.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            record_model_request("network_error", monotonic() - start)
            raise ModelUnavailableError(f"{url}: {exc}") from exc
        duration = monotonic() - start
        if resp.status_code < 200 or resp.status_code >= 300:
            record_model_request("http_error", duration)
            raise ModelUnavailableError(f"{url}: HTTP {resp.status_code}")
        try:
            parsed = _ModelResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            record_model_request("malformed", duration)
            raise ModelUnavailableError(f"{url}: malformed response") from exc
        record_model_request("success", duration)
        return ModelPrediction(
            churn_score=parsed.churn_score,
            churn_reason=parsed.churn_reason or None,
            understanding_score=parsed.understanding_score,
            insight=parsed.insight or None,
        )

    def predict(self, signal: UserSignal, *, endpoints: Optional[Sequence[str]] = None) -> ModelPrediction:
        """Score one signal, trying each endpoint until one answers with 2xx.

        Raises ModelUnavailableError when none of them produced a usable score.
        """
        payload = build_feature_payload(signal)
        last_error: Optional[ModelUnavailableError] = None
        for url in endpoints or [self.api_url]:
            try:
                return self._post(url, payload)
            except ModelUnavailableError as exc:
                logger.debug("churn_model.endpoint_failed", extra={"url": url, "error": str(exc)})
                last_error = exc
        raise ModelUnavailableError(f"All endpoints failed. Last error: {last_error}")


_client: ChurnModelClient | None = None
_client_signature: tuple | None = None


def _get_signature() -> tuple:
    return (
        settings.CHURN_API_URL,
        settings.CHURN_API_KEY,
        settings.CHURN_API_TIMEOUT_SECONDS,
    )


def get_model_client() -> ChurnModelClient | None:
    """Return the configured client, or None when the model is not set up."""
    global _client, _client_signature
    if not settings.churn_model_configured:
        return None
    signature = _get_signature()
    if _client is None or signature != _client_signature:
        _client = ChurnModelClient(*signature)
        _client_signature = signature
    return _client
