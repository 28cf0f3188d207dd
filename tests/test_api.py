import io
import json

import pytest

from resumeflame import parsers, payments
from resumeflame.auth_store import seed_operator
from resumeflame.security import compute_hmac_sha256_hex

from conftest import RESUME_TEXT, REWRITE, StubGenerator

PDF_BYTES = b"%PDF-1.4\n% fake body for tests\n"
SECRET = "whsec-test"


def _upload(client, data=PDF_BYTES, name="cv.pdf", mime="application/pdf", visitor="v-1"):
    return client.post(
        "/api/upload",
        data={"file": (io.BytesIO(data), name, mime)},
        content_type="multipart/form-data",
        headers={"X-Visitor-Id": visitor},
    )


@pytest.fixture
def extracted(monkeypatch):
    holder = {"text": RESUME_TEXT}
    monkeypatch.setattr(parsers, "extract_pdf_text", lambda _b: holder["text"])
    return holder


def _signed_post(client, payload, secret=SECRET):
    body = json.dumps(payload).encode()
    return client.post(
        "/api/webhook",
        data=body,
        content_type="application/json",
        headers={"X-Signature": compute_hmac_sha256_hex(secret, body)},
    )


def _order(sid, tier="basic"):
    return {
        "meta": {"event_name": "order_created", "custom_data": {"resume_id": sid, "tier": tier}},
        "data": {"id": 555, "attributes": {"status": "paid"}},
    }


def test_healthz(client):
    assert client.get("/healthz").get_json() == {"status": "ok"}


# ------------------------------
# Upload
# ------------------------------
def test_upload_creates_pending_submission(client, app_store, extracted):
    r = _upload(client)

    assert r.status_code == 200
    sid = r.get_json()["id"]
    doc = app_store.get(sid)
    assert doc["raw_text"] == RESUME_TEXT
    assert doc["tier"] == "pending_payment"
    assert doc["visitor_id"] == "v-1"
    assert doc["file_name"] == "cv.pdf"
    assert doc["paid"] is False


def test_upload_rejects_non_pdf(client, extracted):
    r = _upload(client, data=b"plain text resume", name="cv.txt", mime="text/plain")
    assert r.status_code == 400
    assert r.get_json()["error"] == "Only PDF files are accepted"


def test_upload_rejects_large_files(client, extracted):
    big = PDF_BYTES + b"0" * (5 * 1024 * 1024)
    r = _upload(client, data=big)
    assert r.status_code == 400
    assert "5MB" in r.get_json()["error"]


def test_upload_rejects_short_text(client, extracted):
    extracted["text"] = "too short"
    r = _upload(client)
    assert r.status_code == 400
    assert r.get_json()["error"] == parsers.NOT_ENOUGH_TEXT


def test_upload_requires_file(client):
    r = client.post("/api/upload")
    assert r.status_code == 400


# ------------------------------
# Read
# ------------------------------
def test_read_results(client, app_store):
    sid = app_store.create(RESUME_TEXT)

    r = client.get(f"/api/roast?id={sid}")

    assert r.status_code == 200
    resume = r.get_json()["resume"]
    assert resume["id"] == sid
    assert resume["paid"] is False
    assert "raw_text" not in resume


def test_read_unknown_and_missing_id(client):
    assert client.get("/api/roast?id=nope").status_code == 404
    assert client.get("/api/roast").status_code == 400


# ------------------------------
# Trigger
# ------------------------------
def test_confirm_payment_twice(client, app_store, generator):
    sid = app_store.create(RESUME_TEXT)

    first = client.post("/api/confirm-payment", json={"resumeId": sid, "tier": "basic"})
    second = client.post("/api/confirm-payment", json={"resumeId": sid, "tier": "basic"})

    assert first.status_code == 200
    assert first.get_json() == {"success": True}
    assert second.get_json() == {"success": True, "already_processed": True}
    assert generator.calls == {"critique": 1, "rewrite": 1}
    view = client.get(f"/api/roast?id={sid}").get_json()["resume"]
    assert view["rewrite"] == REWRITE
    assert view["critique"]["score"] == 4


def test_confirm_payment_generation_failure(db):
    from resumeflame.app import create_app
    from resumeflame.config import TestConfig
    from resumeflame.errors import AuthError

    gen = StubGenerator(critique=[AuthError("nope")], rewrite=[AuthError("nope")])
    app = create_app(TestConfig, db=db, generator=gen)
    store = app.extensions["resumeflame.store"]
    sid = store.create(RESUME_TEXT)

    r = app.test_client().post("/api/confirm-payment", json={"resumeId": sid})

    assert r.status_code == 500
    assert r.get_json() == {"success": False, "error": "Failed to generate results"}
    doc = store.col.find_one({"_id": sid})
    assert doc["raw_text"] is None
    assert doc["paid"] is True
    assert doc["processing_error"]


def test_confirm_payment_cleanup_failure_returns_json(client, app_store, monkeypatch):
    from pymongo.errors import PyMongoError

    def broken(*_a, **_kw):
        raise PyMongoError("clear failed")

    monkeypatch.setattr(app_store, "clear_raw_text", broken)
    sid = app_store.create(RESUME_TEXT)

    r = client.post("/api/confirm-payment", json={"resumeId": sid})

    assert r.status_code == 500
    assert r.get_json() == {"success": False, "error": "Failed to generate results"}
    assert app_store.col.find_one({"_id": sid})["processing_error"]


def test_confirm_payment_preconditions(client, app_store):
    assert client.post("/api/confirm-payment", json={}).status_code == 400
    r = client.post("/api/confirm-payment", json={"resumeId": "missing"})
    assert r.status_code == 404
    assert r.get_json()["success"] is False


# ------------------------------
# Webhook
# ------------------------------
def test_webhook_rejects_bad_signature(client, app_store, generator):
    sid = app_store.create(RESUME_TEXT)
    before = app_store.col.find_one({"_id": sid})

    r = _signed_post(client, _order(sid), secret="wrong-secret")

    assert r.status_code == 401
    assert app_store.col.find_one({"_id": sid}) == before
    assert sum(generator.calls.values()) == 0


def test_webhook_rejects_missing_signature(client, app_store):
    sid = app_store.create(RESUME_TEXT)
    r = client.post("/api/webhook", json=_order(sid))
    assert r.status_code == 401


def test_webhook_runs_workflow(client, app_store, generator):
    sid = app_store.create(RESUME_TEXT)

    r = _signed_post(client, _order(sid, tier="pro"))

    assert r.status_code == 200
    assert r.get_json() == {"received": True, "success": True}
    doc = app_store.col.find_one({"_id": sid})
    assert doc["paid"] is True
    assert doc["tier"] == "pro"
    assert doc["payment_reference"] == "555"
    assert doc["raw_text"] is None

    # a provider retry after delivery is a no-op
    again = _signed_post(client, _order(sid, tier="pro"))
    assert again.get_json()["already_processed"] is True
    assert generator.calls == {"critique": 1, "rewrite": 1}


def test_webhook_ignores_other_events(client):
    r = _signed_post(client, {"meta": {"event_name": "subscription_created"}, "data": {}})
    assert r.status_code == 200
    assert r.get_json() == {"received": True}


# ------------------------------
# Checkout
# ------------------------------
def test_create_checkout(client, app_store, monkeypatch):
    sid = app_store.create(RESUME_TEXT)
    seen = {}

    def fake_checkout(config, submission_id, tier, origin):
        seen.update(submission_id=submission_id, tier=tier)
        return "https://shop.example/c?embed=1"

    monkeypatch.setattr(payments, "create_checkout", fake_checkout)

    r = client.post("/api/create-checkout", json={"resumeId": sid, "tier": "basic"})

    assert r.get_json() == {"checkoutUrl": "https://shop.example/c?embed=1"}
    assert seen == {"submission_id": sid, "tier": "basic"}


def test_create_checkout_validation(client):
    assert client.post("/api/create-checkout", json={"resumeId": "x"}).status_code == 400
    assert client.post("/api/create-checkout", json={"resumeId": "x", "tier": "basic"}).status_code == 404


# ------------------------------
# Operator cleanup
# ------------------------------
def _operator_token(client, db):
    seed_operator(db, "ops@example.com", "s3cret-pass1")
    r = client.post("/auth/login", json={"email": "ops@example.com", "password": "s3cret-pass1"})
    assert r.status_code == 200
    return r.get_json()["access_token"]


def test_cleanup_requires_operator(client, app_store):
    sid = app_store.create(RESUME_TEXT)
    r = client.post("/api/cleanup", json={"resumeId": sid})
    assert r.status_code == 401
    assert app_store.get(sid)["raw_text"] == RESUME_TEXT


def test_cleanup_clears_text_only(client, app_store, db):
    sid = app_store.create(RESUME_TEXT)
    app_store.col.update_one({"_id": sid}, {"$set": {"paid": True, "payment_reference": "o-1"}})
    token = _operator_token(client, db)

    r = client.post("/api/cleanup", json={"resumeId": sid}, headers={"Authorization": f"Bearer {token}"})

    assert r.get_json() == {"success": True}
    doc = app_store.col.find_one({"_id": sid})
    assert doc["raw_text"] is None
    assert doc["payment_reference"] == "o-1"


def test_cleanup_unknown_submission(client, db):
    token = _operator_token(client, db)
    r = client.post("/api/cleanup", json={"resumeId": "nope"}, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 404


def test_login_rejects_bad_password(client, db):
    seed_operator(db, "ops@example.com", "s3cret-pass1")
    r = client.post("/auth/login", json={"email": "ops@example.com", "password": "wrong"})
    assert r.status_code == 401


def test_reseeding_operator_replaces_password(client, db):
    seed_operator(db, "ops@example.com", "old-pass-123")
    seed_operator(db, "OPS@example.com", "new-pass-456")

    assert db.operators.count_documents({}) == 1
    old = client.post("/auth/login", json={"email": "ops@example.com", "password": "old-pass-123"})
    new = client.post("/auth/login", json={"email": "ops@example.com", "password": "new-pass-456"})
    assert old.status_code == 401
    assert new.status_code == 200
