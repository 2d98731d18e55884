"""
Churn scoring for normalized signals.

The probability comes from the external model when it is configured and
answers; otherwise from one of two local heuristic policies. The tracking
and CSV paths keep separate weight tables on purpose: unifying them would
shift every score on one of the two entry points.

After the probability is settled the risk tier is derived (same thresholds
for both paths) and, for tracking only, the lifecycle stage.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from churnpulse.models.enums import LifecycleStageEnum, PlanEnum, RiskLevelEnum
from churnpulse.pipeline.model_client import (
    ChurnModelClient,
    ModelPrediction,
    ModelUnavailableError,
    candidate_endpoints,
)
from churnpulse.pipeline.normalizer import UserSignal

logger = logging.getLogger(__name__)

STRATEGY_EXTERNAL = "external"
STRATEGY_HEURISTIC = "heuristic"

HIGH_RISK_THRESHOLD = 0.7
MEDIUM_RISK_THRESHOLD = 0.4

NEW_USER_MAX_DAYS = 7
GROWING_USER_MAX_DAYS = 15
MATURE_SAFE_THRESHOLD = 0.3
MATURE_HIGH_RISK_THRESHOLD = 0.5

TRACKING_MODEL_REASON = "AI model prediction based on user behavior patterns"
TRACKING_FALLBACK_REASON = "Fallback prediction - external API unavailable"
NEW_USER_REASON = "Too early to predict churn accurately - Need at least 7 days of behavior data."
NEW_USER_ACTION = "Keep tracking. Reliable insights coming soon."
GROWING_USER_REASON = "Prediction getting stronger. More behavior signals are now available."
GROWING_USER_ACTION = "Monitor usage daily. Prediction is moderately accurate."
MATURE_SAFE_ACTION = "Low risk of churn. Consider upsell or referral opportunities."
MATURE_HIGH_RISK_ACTION = "Send win-back email or offer discount. Consider urgent retention action."
MATURE_MEDIUM_RISK_ACTION = "Monitor closely. Consider engagement campaigns."

HEALTHY_REASON = "User showing healthy engagement patterns"
DEFAULT_ACTION = "Continue standard engagement strategy"

SIGNAL_LOW_LOGINS = "low_logins"
SIGNAL_LOW_EMAIL_ENGAGEMENT = "low_email_engagement"
SIGNAL_HIGH_SUPPORT_VOLUME = "high_support_volume"
SIGNAL_FREE_NO_REVENUE = "free_plan_no_revenue"
SIGNAL_BILLING_ISSUES = "billing_issues"


@dataclass(frozen=True)
class ScoredResult:
    user_id: str
    churn_probability: float
    risk_level: RiskLevelEnum
    lifecycle_stage: LifecycleStageEnum
    understanding_score: int
    churn_reason: str
    action_recommended: str
    days_until_mature: int
    strategy: str

    def to_payload(self) -> dict:
        return {
            "user_id": self.user_id,
            "churn_probability": self.churn_probability,
            "risk_level": self.risk_level.value,
            "lifecycle_stage": self.lifecycle_stage.value,
            "understanding_score": self.understanding_score,
            "churn_reason": self.churn_reason,
            "action_recommended": self.action_recommended,
            "days_until_mature": self.days_until_mature,
        }


@dataclass(frozen=True)
class HeuristicWeights:
    base: float
    login_threshold: int
    low_logins: float
    email_threshold: int
    low_email_engagement: float
    ticket_threshold: int
    high_support_volume: float
    free_no_revenue: float
    billing_issues: float
    cap: float = 0.95


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def classify_risk(probability: float) -> RiskLevelEnum:
    if probability >= HIGH_RISK_THRESHOLD:
        return RiskLevelEnum.HIGH
    if probability >= MEDIUM_RISK_THRESHOLD:
        return RiskLevelEnum.MEDIUM
    return RiskLevelEnum.LOW


def _is_free_without_revenue(signal: UserSignal) -> bool:
    return signal.subscription_plan == PlanEnum.FREE and signal.monthly_revenue == 0


class ScoringStrategy:
    """A local churn heuristic: a base score plus one weight per signal."""

    name = "base"
    weights: HeuristicWeights

    def extract_signals(self, signal: UserSignal) -> list[str]:
        w = self.weights
        triggered = []
        if signal.number_of_logins_last30days < w.login_threshold:
            triggered.append(SIGNAL_LOW_LOGINS)
        if signal.email_opens_last30days < w.email_threshold:
            triggered.append(SIGNAL_LOW_EMAIL_ENGAGEMENT)
        if signal.support_tickets_opened > w.ticket_threshold:
            triggered.append(SIGNAL_HIGH_SUPPORT_VOLUME)
        if _is_free_without_revenue(signal):
            triggered.append(SIGNAL_FREE_NO_REVENUE)
        if "inactive" in signal.payment_status:
            triggered.append(SIGNAL_BILLING_ISSUES)
        return triggered

    def score(self, signal: UserSignal) -> float:
        w = self.weights
        increments = {
            SIGNAL_LOW_LOGINS: w.low_logins,
            SIGNAL_LOW_EMAIL_ENGAGEMENT: w.low_email_engagement,
            SIGNAL_HIGH_SUPPORT_VOLUME: w.high_support_volume,
            SIGNAL_FREE_NO_REVENUE: w.free_no_revenue,
            SIGNAL_BILLING_ISSUES: w.billing_issues,
        }
        total = w.base + sum(increments[name] for name in self.extract_signals(signal))
        return round(min(total, w.cap), 4)


class TrackingHeuristic(ScoringStrategy):
    name = "tracking"
    weights = HeuristicWeights(
        base=0.5,
        login_threshold=5,
        low_logins=0.3,
        email_threshold=3,
        low_email_engagement=0.2,
        ticket_threshold=2,
        high_support_volume=0.2,
        free_no_revenue=0.15,
        billing_issues=0.25,
    )


class CsvHeuristic(ScoringStrategy):
    """Upload policy. Besides the score it writes the reason, action and
    understanding texts shown on the dashboard, using its own thresholds."""

    name = "csv"
    weights = HeuristicWeights(
        base=0.2,
        login_threshold=5,
        low_logins=0.3,
        email_threshold=3,
        low_email_engagement=0.2,
        ticket_threshold=2,
        high_support_volume=0.2,
        free_no_revenue=0.15,
        billing_issues=0.25,
    )

    def explain(self, signal: UserSignal) -> str:
        # Clause order is shown as-is in the dashboard.
        reasons = []
        logins = signal.number_of_logins_last30days
        if logins < 3:
            reasons.append("Very low login activity (under 3 times)")
        elif logins < 8:
            reasons.append("Below average engagement")
        if signal.email_opens_last30days < 2:
            reasons.append("Poor email engagement")
        if signal.support_tickets_opened > 3:
            reasons.append("High support ticket volume indicates frustration")
        if _is_free_without_revenue(signal):
            reasons.append("Free plan user with no revenue conversion")
        status = signal.payment_status
        if "inactive" in status or "failed" in status:
            reasons.append("Billing/payment issues detected")
        if not reasons:
            return HEALTHY_REASON
        return "; ".join(reasons)

    def recommend(self, signal: UserSignal) -> str:
        actions = []
        if signal.number_of_logins_last30days < 3:
            actions.append("Send re-engagement email campaign")
        if signal.email_opens_last30days < 2:
            actions.append("Improve email subject lines and content")
        if signal.support_tickets_opened > 3:
            actions.append("Prioritize customer success outreach")
        if _is_free_without_revenue(signal):
            actions.append("Offer upgrade incentives and onboarding")
        if "inactive" in signal.payment_status:
            actions.append("Resolve billing issues immediately")
        if not actions:
            return DEFAULT_ACTION
        return "; ".join(actions)

    def understanding(self, signal: UserSignal) -> int:
        score = 85
        logins = signal.number_of_logins_last30days
        if logins < 3:
            score -= 20
        elif logins < 8:
            score -= 10
        if signal.email_opens_last30days < 2:
            score -= 15
        if signal.support_tickets_opened > 3:
            score -= 10
        if _is_free_without_revenue(signal):
            score -= 5
        if "inactive" in signal.payment_status:
            score -= 15
        return max(min(score, 100), 30)


def _ask_model(
    client: Optional[ChurnModelClient],
    signal: UserSignal,
    *,
    path: str,
    endpoints: Optional[Sequence[str]] = None,
) -> Optional[ModelPrediction]:
    if client is None:
        logger.debug("scoring.model_not_configured", extra={"path": path})
        return None
    try:
        return client.predict(signal, endpoints=endpoints)
    except ModelUnavailableError as exc:
        logger.warning(
            "scoring.fallback",
            extra={"path": path, "user_id": signal.user_id, "error": str(exc)},
        )
        return None


@dataclass(frozen=True)
class _Lifecycle:
    stage: LifecycleStageEnum
    understanding_score: float
    days_until_mature: int
    reason: Optional[str] = None
    action: str = ""


def derive_lifecycle(days_since_signup: int, probability: float) -> _Lifecycle:
    days = days_since_signup
    if days < NEW_USER_MAX_DAYS:
        return _Lifecycle(
            stage=LifecycleStageEnum.NEW_USER,
            understanding_score=min(40, days * 5 + 10),
            days_until_mature=NEW_USER_MAX_DAYS - days,
            reason=NEW_USER_REASON,
            action=NEW_USER_ACTION,
        )
    if days < GROWING_USER_MAX_DAYS:
        return _Lifecycle(
            stage=LifecycleStageEnum.GROWING_USER,
            understanding_score=40 + (days - NEW_USER_MAX_DAYS) * 2.5,
            days_until_mature=0,
            reason=GROWING_USER_REASON,
            action=GROWING_USER_ACTION,
        )

    understanding = min(100, 70 + (days - GROWING_USER_MAX_DAYS) * 0.5)
    # Mature users are always re-bucketed by probability, so the plain
    # mature_user stage is never emitted.
    if probability < MATURE_SAFE_THRESHOLD:
        stage, action = LifecycleStageEnum.MATURE_SAFE, MATURE_SAFE_ACTION
    elif probability >= MATURE_HIGH_RISK_THRESHOLD:
        stage, action = LifecycleStageEnum.HIGH_RISK_MATURE, MATURE_HIGH_RISK_ACTION
    else:
        stage, action = LifecycleStageEnum.MEDIUM_RISK_MATURE, MATURE_MEDIUM_RISK_ACTION
    return _Lifecycle(
        stage=stage,
        understanding_score=understanding,
        days_until_mature=0,
        action=action,
    )


def score_tracking_signal(
    signal: UserSignal,
    client: Optional[ChurnModelClient],
    strategy: Optional[ScoringStrategy] = None,
) -> ScoredResult:
    strategy = strategy or TrackingHeuristic()
    prediction = _ask_model(client, signal, path="track")
    if prediction is not None:
        probability = prediction.churn_score
        reason = prediction.churn_reason or TRACKING_MODEL_REASON
        used = STRATEGY_EXTERNAL
    else:
        probability = strategy.score(signal)
        reason = TRACKING_FALLBACK_REASON
        used = STRATEGY_HEURISTIC

    lifecycle = derive_lifecycle(signal.days_since_signup, probability)
    return ScoredResult(
        user_id=signal.user_id,
        churn_probability=probability,
        risk_level=classify_risk(probability),
        lifecycle_stage=lifecycle.stage,
        understanding_score=_round_half_up(lifecycle.understanding_score),
        churn_reason=lifecycle.reason or reason,
        action_recommended=lifecycle.action,
        days_until_mature=lifecycle.days_until_mature,
        strategy=used,
    )


def score_csv_signal(
    signal: UserSignal,
    client: Optional[ChurnModelClient],
    strategy: Optional[CsvHeuristic] = None,
) -> ScoredResult:
    strategy = strategy or CsvHeuristic()
    probability = strategy.score(signal)
    reason = strategy.explain(signal)
    action = strategy.recommend(signal)
    understanding = float(strategy.understanding(signal))
    used = STRATEGY_HEURISTIC

    endpoints = candidate_endpoints(client.api_url) if client is not None else None
    prediction = _ask_model(client, signal, path="csv", endpoints=endpoints)
    if prediction is not None:
        probability = prediction.churn_score
        reason = prediction.churn_reason or reason
        if prediction.understanding_score is not None:
            understanding = min(max(prediction.understanding_score, 0.0), 100.0)
        action = prediction.insight or action
        used = STRATEGY_EXTERNAL

    return ScoredResult(
        user_id=signal.user_id,
        churn_probability=probability,
        risk_level=classify_risk(probability),
        lifecycle_stage=LifecycleStageEnum.ANALYZED,
        understanding_score=_round_half_up(understanding),
        churn_reason=reason,
        action_recommended=action,
        days_until_mature=0,
        strategy=used,
    )
