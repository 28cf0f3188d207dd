# app.py
from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS
from flask_talisman import Talisman
from pymongo.database import Database

# --- Load env BEFORE importing config (so config sees env) ---
load_dotenv(Path.cwd() / ".env")

from resumeflame import auth_store
from resumeflame.api import api_bp
from resumeflame.auth import auth_bp, init_auth
from resumeflame.config import config_for_env, validate_required_secrets
from resumeflame.extensions import jwt, limiter
from resumeflame.llm_client import GenerationClient
from resumeflame.storage import SubmissionStore, connect

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("resumeflame").setLevel(level.upper())


def _security_headers(app: Flask) -> None:
    if app.config.get("DEBUG") or app.config.get("TESTING"):
        # Dev: do not force HTTPS
        Talisman(
            app,
            force_https=False,
            content_security_policy={"default-src": ["'self'"], "frame-ancestors": ["'none'"]},
            session_cookie_secure=False,
            frame_options="DENY",
            referrer_policy="strict-origin-when-cross-origin",
        )
    else:
        Talisman(
            app,
            force_https=True,
            content_security_policy={"default-src": ["'self'"], "frame-ancestors": ["'none'"]},
            session_cookie_secure=True,
            frame_options="DENY",
            referrer_policy="strict-origin-when-cross-origin",
        )


def create_app(
    config_object=None,
    *,
    db: Optional[Database] = None,
    generator: Optional[GenerationClient] = None,
) -> Flask:
    """Build the Flask app.

    ``db`` and ``generator`` default to a MongoDB connection and an OpenAI
    backed client built from config; tests pass their own.
    """
    app = Flask(__name__)
    app.config.from_object(config_object or config_for_env())
    if not app.config.get("TESTING"):
        validate_required_secrets()  # raises only when ENV=prod and secrets missing
    _configure_logging(app.config.get("LOG_LEVEL", "INFO"))
    app.url_map.strict_slashes = False

    CORS(
        app,
        resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
        supports_credentials=False,
        allow_headers=["Authorization", "Content-Type", "X-Visitor-Id"],
        methods=["GET", "POST", "OPTIONS"],
    )
    _security_headers(app)
    jwt.init_app(app)
    limiter.init_app(app)

    if db is None:
        db = connect(app.config["MONGO_URI"], app.config["MONGO_DB"])
    store = SubmissionStore(db, fernet_key=app.config.get("FERNET_KEY"))
    store.migrate()
    auth_store.ensure_indexes(db)
    if generator is None:
        generator = GenerationClient(
            app.config.get("OPENAI_API_KEY"),
            base_url=app.config.get("OPENAI_BASE_URL"),
            model=app.config.get("OPENAI_MODEL") or "gpt-4o-mini",
        )
    app.extensions["resumeflame.store"] = store
    app.extensions["resumeflame.generator"] = generator

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(auth_bp, url_prefix="/auth")
    init_auth(app)

    @app.get("/healthz")
    def healthz():
        return jsonify({"status": "ok"})

    @app.errorhandler(413)
    def too_large(_e):
        return jsonify({"error": "File must be under 5MB"}), 413

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
