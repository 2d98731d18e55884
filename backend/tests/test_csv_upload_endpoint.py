import os
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "secret")
os.environ["SKIP_MIGRATIONS"] = "1"

from churnpulse.main import app
import churnpulse.pipeline.ingestion as ingestion_module
from churnpulse.core.config import settings
from churnpulse.core.security import create_access_token
from churnpulse.models.csv_uploads import CSVUpload
from churnpulse.models.user_data import UserData
from churnpulse.pipeline.ingestion import DEFAULT_CSV_FILENAME
from tests.factories import csv_row, setup_db


client = TestClient(app)


@pytest.fixture
def SessionLocal(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "CHURN_API_URL", None)
    monkeypatch.setattr(settings, "CHURN_API_KEY", None)
    return setup_db(f"sqlite:///{tmp_path / 'csv.db'}")


def _auth(owner_id: str = "owner-9") -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': owner_id})}"}


def test_csv_upload_scores_rows_and_reports_failures(SessionLocal):
    payload = {
        "filename": " march.csv ",
        "data": [
            csv_row(),
            csv_row(customer_email="bob@example.com", customer_name=""),
            csv_row(
                customer_email="cy@example.com",
                customer_name="Cy",
                plan="free",
                monthly_revenue="",
                number_of_logins_last30days=1,
                email_opens_last30days=0,
                billing_status="Inactive",
            ),
        ],
    }

    resp = client.post("/churn-csv-handler", json=payload, headers=_auth())

    assert resp.status_code == 200
    assert resp.json() == {
        "rows_processed": 3,
        "rows_success": 2,
        "rows_failed": 1,
        "error_details": [
            {
                "row": 2,
                "user_id": "bob@example.com",
                "error": "Missing customer_email or customer_name",
            }
        ],
        "message": "2 rows processed successfully, 1 failed",
    }
    with SessionLocal() as db:
        rows = {row.user_id: row for row in db.query(UserData).all()}
        assert set(rows) == {"ada@example.com", "cy@example.com"}
        assert rows["ada@example.com"].owner_id == "owner-9"
        assert rows["ada@example.com"].risk_level == "low"
        assert rows["ada@example.com"].user_stage == "analyzed"
        assert rows["ada@example.com"].usage == 10
        assert rows["cy@example.com"].churn_score == 0.95
        assert rows["cy@example.com"].risk_level == "high"
        assert rows["cy@example.com"].understanding_score == 30
        assert rows["cy@example.com"].churn_reason.startswith("Very low login activity")

        upload = db.query(CSVUpload).one()
        assert upload.user_id == "owner-9"
        assert upload.filename == "march.csv"
        assert upload.rows_processed == 2
        assert upload.rows_failed == 1


def test_csv_upload_message_without_failures(SessionLocal):
    resp = client.post("/api/v1/churn-csv-handler", json={"data": [csv_row()]}, headers=_auth())
    assert resp.status_code == 200
    assert resp.json()["message"] == "1 rows processed successfully"
    assert resp.json()["error_details"] == []
    with SessionLocal() as db:
        assert db.query(CSVUpload).one().filename == DEFAULT_CSV_FILENAME


def test_csv_upload_reupload_overwrites(SessionLocal):
    client.post("/churn-csv-handler", json={"data": [csv_row()]}, headers=_auth())
    client.post(
        "/churn-csv-handler",
        json={"data": [csv_row(number_of_logins_last30days=0)]},
        headers=_auth(),
    )
    with SessionLocal() as db:
        rows = db.query(UserData).all()
        assert len(rows) == 1
        assert rows[0].churn_score == 0.5
        assert db.query(CSVUpload).count() == 2


def test_csv_upload_requires_authorization(SessionLocal):
    resp = client.post("/churn-csv-handler", json={"data": [csv_row()]})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Authorization required"

    resp = client.post(
        "/churn-csv-handler",
        json={"data": [csv_row()]},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid authorization"

    expired = create_access_token({"sub": "owner-9"}, expires_delta=timedelta(minutes=-5))
    resp = client.post(
        "/churn-csv-handler",
        json={"data": [csv_row()]},
        headers={"Authorization": f"Bearer {expired}"},
    )
    assert resp.status_code == 401
    with SessionLocal() as db:
        assert db.query(UserData).count() == 0


def test_csv_upload_accepts_user_id_claim(SessionLocal):
    token = create_access_token({"user_id": "owner-7"})
    resp = client.post(
        "/api/churn-csv-handler",
        json={"data": [csv_row()]},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 200
    with SessionLocal() as db:
        assert db.query(UserData).one().owner_id == "owner-7"


@pytest.mark.parametrize(
    "body",
    [
        {"data": []},
        {"data": "not-a-list"},
        {"rows": [{"customer_email": "a@example.com"}]},
        [1, 2, 3],
    ],
)
def test_csv_upload_rejects_bad_payload(SessionLocal, body):
    resp = client.post("/churn-csv-handler", json=body, headers=_auth())
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid data format"


def test_csv_upload_rejects_invalid_json(SessionLocal):
    headers = _auth()
    headers["Content-Type"] = "application/json"
    resp = client.post("/churn-csv-handler", content="{oops", headers=headers)
    assert resp.status_code == 400


def test_csv_upload_rejects_too_many_rows(SessionLocal, monkeypatch):
    monkeypatch.setattr(settings, "CSV_MAX_ROWS", 1)
    resp = client.post("/churn-csv-handler", json={"data": [csv_row(), csv_row()]}, headers=_auth())
    assert resp.status_code == 413


def test_csv_upload_non_object_rows_are_reported(SessionLocal):
    resp = client.post("/churn-csv-handler", json={"data": ["oops", csv_row()]}, headers=_auth())
    body = resp.json()
    assert body["rows_success"] == 1
    assert body["error_details"] == [
        {"row": 1, "user_id": "unknown", "error": "Missing customer_email or customer_name"}
    ]


def test_csv_preflight(SessionLocal):
    resp = client.options("/churn-csv-handler")
    assert resp.status_code == 200
    assert resp.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"


def test_csv_out_of_range_date_does_not_abort_upload(SessionLocal):
    rows = [
        csv_row(customer_email="a@example.com"),
        csv_row(customer_email="b@example.com", last_active_date="9999-12-31T23:00:00-05:00"),
        csv_row(customer_email="c@example.com", monthly_revenue=10**400),
    ]

    resp = client.post("/churn-csv-handler", json={"data": rows}, headers=_auth())

    assert resp.status_code == 200
    assert resp.json()["rows_success"] == 3
    with SessionLocal() as db:
        stored = {row.user_id: row for row in db.query(UserData).all()}
        assert set(stored) == {"a@example.com", "b@example.com", "c@example.com"}
        assert stored["b@example.com"].last_login is None


def test_csv_unexpected_normalizer_error_is_isolated(SessionLocal, monkeypatch):
    normalize = ingestion_module.normalize_csv_row

    def flaky(raw):
        if raw.get("customer_email") == "b@example.com":
            raise RuntimeError("bad row")
        return normalize(raw)

    monkeypatch.setattr(ingestion_module, "normalize_csv_row", flaky)
    rows = [csv_row(customer_email=email) for email in ("a@example.com", "b@example.com", "c@example.com")]

    resp = client.post("/churn-csv-handler", json={"data": rows}, headers=_auth())

    assert resp.status_code == 200
    body = resp.json()
    assert body["rows_success"] == 2
    assert body["error_details"] == [
        {"row": 2, "user_id": "b@example.com", "error": "Invalid row: bad row"}
    ]
    with SessionLocal() as db:
        assert {row.user_id for row in db.query(UserData).all()} == {"a@example.com", "c@example.com"}


def test_csv_browser_preflight_is_empty(SessionLocal):
    resp = client.options(
        "/churn-csv-handler",
        headers={
            "Origin": "https://app.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )
    assert resp.status_code == 200
    assert resp.content == b""
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
