"""
Startup-time checks for required configuration.
"""

from __future__ import annotations

from churnpulse.core.config import settings


def _is_production() -> bool:
    env = (settings.ENVIRONMENT or "").strip().lower()
    return env in {"production", "prod"}


def _has_placeholder_secret(value: str | None) -> bool:
    if not value:
        return True
    lowered = value.strip().lower()
    return lowered in {"changeme", "super-secret-key", "secret", "test-secret"}


def run_startup_checks() -> None:
    missing: list[str] = []
    insecure: list[str] = []

    if not settings.DATABASE_URL:
        missing.append("DATABASE_URL")
    if not settings.SECRET_KEY:
        missing.append("SECRET_KEY")

    # Half-configured model access silently degrades every score to the
    # heuristics, so require both or neither.
    if settings.CHURN_API_URL and not settings.CHURN_API_KEY:
        missing.append("CHURN_API_KEY")
    if settings.CHURN_API_KEY and not settings.CHURN_API_URL:
        missing.append("CHURN_API_URL")

    if _is_production():
        if _has_placeholder_secret(settings.SECRET_KEY) or len(settings.SECRET_KEY or "") < 32:
            insecure.append("SECRET_KEY")
        if settings.PLAYBOOK_WEBHOOK_URL and not settings.PLAYBOOK_WEBHOOK_TOKEN:
            missing.append("PLAYBOOK_WEBHOOK_TOKEN")

    if missing or insecure:
        parts = []
        if missing:
            parts.append(f"Missing required settings: {', '.join(sorted(set(missing)))}")
        if insecure:
            parts.append(f"Insecure settings detected: {', '.join(sorted(set(insecure)))}")
        raise RuntimeError("Startup checks failed. " + " ".join(parts))
