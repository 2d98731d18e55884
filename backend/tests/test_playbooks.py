import os

import requests

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "secret")

from churnpulse.core.config import settings
from churnpulse.notifications.playbooks import trigger_playbooks


class _FakeResponse:
    def __init__(self, status_code: int):
        self.status_code = status_code


def test_trigger_skipped_when_not_configured(monkeypatch):
    monkeypatch.setattr(settings, "PLAYBOOK_WEBHOOK_URL", None)

    def fail_post(*args, **kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr("churnpulse.notifications.playbooks.requests.post", fail_post)
    assert trigger_playbooks("owner-1", 3) is False


def test_trigger_posts_owner_and_count(monkeypatch):
    monkeypatch.setattr(settings, "PLAYBOOK_WEBHOOK_URL", "https://playbooks.example/run")
    monkeypatch.setattr(settings, "PLAYBOOK_WEBHOOK_TOKEN", "svc-token")
    captured = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        captured["url"] = url
        captured["json"] = json
        captured["headers"] = headers
        captured["timeout"] = timeout
        return _FakeResponse(202)

    monkeypatch.setattr("churnpulse.notifications.playbooks.requests.post", fake_post)

    assert trigger_playbooks("owner-1", 3) is True
    assert captured["url"] == "https://playbooks.example/run"
    assert captured["json"] == {"owner_id": "owner-1", "processed": 3}
    assert captured["headers"]["Authorization"] == "Bearer svc-token"
    assert captured["timeout"] == settings.PLAYBOOK_TIMEOUT_SECONDS


def test_trigger_without_token_sends_no_auth_header(monkeypatch):
    monkeypatch.setattr(settings, "PLAYBOOK_WEBHOOK_URL", "https://playbooks.example/run")
    monkeypatch.setattr(settings, "PLAYBOOK_WEBHOOK_TOKEN", None)
    captured = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        captured["headers"] = headers
        return _FakeResponse(200)

    monkeypatch.setattr("churnpulse.notifications.playbooks.requests.post", fake_post)
    assert trigger_playbooks("owner-1", 1) is True
    assert "Authorization" not in captured["headers"]


def test_trigger_failures_are_swallowed(monkeypatch):
    monkeypatch.setattr(settings, "PLAYBOOK_WEBHOOK_URL", "https://playbooks.example/run")

    monkeypatch.setattr(
        "churnpulse.notifications.playbooks.requests.post",
        lambda *args, **kwargs: _FakeResponse(500),
    )
    assert trigger_playbooks("owner-1", 2) is False

    def boom(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr("churnpulse.notifications.playbooks.requests.post", boom)
    assert trigger_playbooks("owner-1", 2) is False
