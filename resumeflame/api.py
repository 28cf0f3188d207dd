# api.py
from __future__ import annotations
import logging

from flask import Blueprint, current_app, jsonify, request
from werkzeug.utils import secure_filename

from resumeflame import parsers, payments
from resumeflame.auth import operator_required
from resumeflame.errors import ConfigError, ResumeFlameError, ValidationError
from resumeflame.extensions import limiter
from resumeflame.llm_client import GenerationClient
from resumeflame.security import verify_signature
from resumeflame.storage import SubmissionStore
from resumeflame.workflow import confirm_payment

LOG = logging.getLogger("resumeflame.api")

api_bp = Blueprint("api", __name__)


def get_store() -> SubmissionStore:
    return current_app.extensions["resumeflame.store"]


def get_generator() -> GenerationClient:
    return current_app.extensions["resumeflame.generator"]


def _json_body() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


@api_bp.errorhandler(ResumeFlameError)
def _handle_error(e: ResumeFlameError):
    if e.status_code >= 500:
        LOG.error("%s %s failed: %s", request.method, request.path, e.message)
    return jsonify({"error": e.message}), e.status_code


# ------------------------------
# Upload
# ------------------------------
@api_bp.post("/upload")
@limiter.limit("30/minute")
def upload():
    f = request.files.get("file")
    if f is None or f.filename == "":
        raise ValidationError("No file provided")

    raw_bytes = f.read()
    try:
        text = parsers.parse_resume_upload(
            f.filename,
            f.mimetype,
            raw_bytes,
            max_bytes=current_app.config["MAX_UPLOAD_BYTES"],
            min_chars=current_app.config["MIN_TEXT_CHARS"],
        )
    finally:
        del raw_bytes  # minimize plaintext lifetime

    visitor_id = request.headers.get("X-Visitor-Id") or "anonymous"
    sid = get_store().create(text, file_name=secure_filename(f.filename), visitor_id=visitor_id)
    LOG.info("[upload] stored resume %s, text length=%d", sid, len(text))
    return jsonify({"id": sid})


# ------------------------------
# Results (polled by the browser)
# ------------------------------
@api_bp.get("/roast")
def read_results():
    sid = request.args.get("id")
    if not sid:
        raise ValidationError("Missing id")
    return jsonify({"resume": get_store().public_view(sid)})


# ------------------------------
# Payment
# ------------------------------
@api_bp.post("/create-checkout")
def create_checkout():
    data = _json_body()
    sid = data.get("resumeId")
    tier = data.get("tier")
    if not sid or not tier:
        raise ValidationError("Missing resumeId or tier")
    get_store().get(sid)  # 404 before talking to the provider

    origin = request.headers.get("Origin") or request.host_url
    url = payments.create_checkout(current_app.config, sid, tier, origin)
    return jsonify({"checkoutUrl": url})


@api_bp.post("/confirm-payment")
def confirm():
    data = _json_body()
    sid = data.get("resumeId")
    if not sid:
        raise ValidationError("Missing resume ID")

    try:
        result = confirm_payment(get_store(), get_generator(), sid, tier=data.get("tier"))
    except ResumeFlameError as e:
        return jsonify({"success": False, "error": e.message}), e.status_code
    return jsonify(result.to_response()), result.status_code


@api_bp.post("/webhook")
def webhook():
    secret = current_app.config.get("LEMONSQUEEZY_WEBHOOK_SECRET")
    if not secret:
        raise ConfigError("Webhook secret not configured")

    raw = request.get_data(cache=False)
    verify_signature(secret, raw, request.headers.get("X-Signature"))

    event = payments.parse_purchase_event(raw)
    if event is None:
        return jsonify({"received": True})

    LOG.info("Payment confirmed for resume %s, tier: %s", event.submission_id, event.tier)
    result = confirm_payment(
        get_store(),
        get_generator(),
        event.submission_id,
        tier=event.tier,
        payment_reference=event.order_id,
    )
    return jsonify({"received": True, **result.to_response()}), result.status_code


# ------------------------------
# Operator cleanup
# ------------------------------
@api_bp.post("/cleanup")
@operator_required
def cleanup():
    data = _json_body()
    sid = data.get("resumeId")
    if not sid:
        raise ValidationError("Missing resume ID")

    # Only the text goes; payment fields stay for accounting
    if not get_store().clear_raw_text(sid):
        return jsonify({"error": "Resume not found"}), 404
    LOG.info("Cleaned up resume text for %s", sid)
    return jsonify({"success": True})
