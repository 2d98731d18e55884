from __future__ import annotations

import logging

import requests

from churnpulse.core.config import settings
from churnpulse.core.metrics import record_playbook_trigger

logger = logging.getLogger(__name__)


def trigger_playbooks(owner_id: str, processed: int) -> bool:
    """Ask the playbook processor to re-evaluate freshly scored users.

    Runs after the response has been sent. At most one attempt is made and
    the outcome is only logged; callers never see a failure.
    """
    url = settings.PLAYBOOK_WEBHOOK_URL
    if not url:
        logger.debug("playbooks.not_configured", extra={"owner_id": owner_id})
        return False
    headers = {"Content-Type": "application/json"}
    if settings.PLAYBOOK_WEBHOOK_TOKEN:
        headers["Authorization"] = f"Bearer {settings.PLAYBOOK_WEBHOOK_TOKEN}"
    try:
        resp = requests.post(
            url,
            json={"owner_id": owner_id, "processed": processed},
            headers=headers,
            timeout=settings.PLAYBOOK_TIMEOUT_SECONDS,
        )
    except requests.RequestException:
        logger.warning("playbooks.trigger_failed", extra={"owner_id": owner_id}, exc_info=True)
        record_playbook_trigger(success=False)
        return False
    if resp.status_code >= 400:
        logger.warning(
            "playbooks.trigger_rejected",
            extra={"owner_id": owner_id, "status_code": resp.status_code},
        )
        record_playbook_trigger(success=False)
        return False
    logger.info("playbooks.triggered", extra={"owner_id": owner_id, "processed": processed})
    record_playbook_trigger(success=True)
    return True
