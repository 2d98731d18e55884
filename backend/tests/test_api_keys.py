import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "secret")
os.environ["SKIP_MIGRATIONS"] = "1"

import churnpulse.core.db as db_module
from churnpulse.core.keys import API_KEY_PREFIX, hash_api_key, is_allowed_static_key
from churnpulse.crud.api_keys import (
    create_api_key,
    get_active_api_key,
    mark_api_key_used,
    revoke_api_key,
)
from churnpulse.models.api_keys import APIKey
from scripts import create_api_key as create_api_key_script
from tests.factories import setup_db


def test_create_api_key_stores_only_hash(tmp_path):
    SessionLocal = setup_db(f"sqlite:///{tmp_path / 'keys.db'}", swap_app_session=False)
    with SessionLocal() as db:
        api_key, raw_key = create_api_key(db, "owner-1", name="Web SDK")
        assert raw_key.startswith(API_KEY_PREFIX)
        assert api_key.key_hash == hash_api_key(raw_key)
        assert api_key.key_hash != raw_key
        assert raw_key.startswith(api_key.key_prefix)
        assert api_key.is_active is True


def test_lookup_mark_and_revoke(tmp_path):
    SessionLocal = setup_db(f"sqlite:///{tmp_path / 'lookup.db'}", swap_app_session=False)
    with SessionLocal() as db:
        api_key, raw_key = create_api_key(db, "owner-1")
        found = get_active_api_key(db, raw_key)
        assert found is not None and found.id == api_key.id
        assert get_active_api_key(db, raw_key + "x") is None

        mark_api_key_used(db, found)
        assert found.last_used_at is not None

        assert revoke_api_key(db, "owner-2", api_key.id) is None
        revoked = revoke_api_key(db, "owner-1", api_key.id)
        assert revoked.is_active is False
        assert revoked.revoked_at is not None
        assert get_active_api_key(db, raw_key) is None


def test_static_key_allowlist():
    assert is_allowed_static_key("key-b", ["key-a", "key-b"])
    assert not is_allowed_static_key("key-c", ["key-a", "key-b"])
    assert not is_allowed_static_key("key-a", [])


def test_create_api_key_script(tmp_path, capsys, monkeypatch):
    SessionLocal = setup_db(f"sqlite:///{tmp_path / 'script.db'}")
    monkeypatch.setattr(create_api_key_script, "SessionLocal", SessionLocal)
    monkeypatch.setattr(create_api_key_script, "engine", db_module.engine)

    assert create_api_key_script.main(["create", "owner-5", "--name", "CLI"]) == 0
    out = capsys.readouterr().out.strip().splitlines()
    raw_key = out[-1]
    assert raw_key.startswith(API_KEY_PREFIX)

    with SessionLocal() as db:
        api_key = db.query(APIKey).one()
        assert api_key.user_id == "owner-5"
        assert api_key.name == "CLI"
        key_id = api_key.id

    assert create_api_key_script.main(["revoke", "owner-5", str(key_id)]) == 0
    assert create_api_key_script.main(["revoke", "owner-5", "999"]) == 1
    with SessionLocal() as db:
        assert db.query(APIKey).one().is_active is False
