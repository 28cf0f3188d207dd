# auth.py
from __future__ import annotations
import logging
from datetime import timedelta
from functools import wraps

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import create_access_token, get_jwt, verify_jwt_in_request

from resumeflame.auth_store import OPERATOR_ROLE, find_operator, seed_operator, verify_password
from resumeflame.extensions import limiter

LOG = logging.getLogger("resumeflame.auth")

auth_bp = Blueprint("auth", __name__)

TOKEN_TTL = timedelta(minutes=15)


def _db():
    return current_app.extensions["resumeflame.store"].db


@auth_bp.route("/login", methods=["POST"], strict_slashes=False)
@limiter.limit("10/minute")
def login():
    """
    Request: { "email": "...", "password": "..." }
    Response: { "access_token": "...", "token_type": "Bearer", "expires_in": 900 }
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"error": "email and password are required"}), 400

    user = find_operator(_db(), email)
    if not user or not verify_password(password, user.get("pw_hash", "")):
        return jsonify({"error": "invalid credentials"}), 401

    claims = {"roles": user.get("roles", []), "email": user["email"]}
    token = create_access_token(identity=user["email"], additional_claims=claims, expires_delta=TOKEN_TTL)
    return jsonify({
        "access_token": token,
        "token_type": "Bearer",
        "expires_in": int(TOKEN_TTL.total_seconds()),
    }), 200


def operator_required(fn):
    """Require a valid JWT carrying the operator role."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        if OPERATOR_ROLE not in (get_jwt().get("roles") or []):
            return jsonify({"error": "operator role required"}), 403
        return fn(*args, **kwargs)
    return wrapper


def init_auth(app):
    """Seed the operator account from ADMIN_EMAIL / ADMIN_PASSWORD when both are set."""
    email = app.config.get("ADMIN_EMAIL") or ""
    password = app.config.get("ADMIN_PASSWORD") or ""
    if email and password:
        seed_operator(app.extensions["resumeflame.store"].db, email, password)
        LOG.info("Seeded operator account %s", email)
