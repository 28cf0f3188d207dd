# auth_store.py
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from passlib.hash import pbkdf2_sha256
from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database

OPERATOR_ROLE = "operator"


def ensure_indexes(db: Database) -> None:
    db.operators.create_index([("email", ASCENDING)], unique=True, name="uniq_email")


def _norm_email(email: str) -> str:
    return (email or "").lower().strip()


def find_operator(db: Database, email: str) -> Optional[Dict[str, Any]]:
    return db.operators.find_one({"email": _norm_email(email)})


def _hash_password(pw: str) -> str:
    return pbkdf2_sha256.hash(pw)


def verify_password(pw: str, pw_hash: str) -> bool:
    try:
        return pbkdf2_sha256.verify(pw, pw_hash)
    except ValueError:
        # malformed or foreign hash
        return False


def seed_operator(db: Database, email: str, password: str) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    return db.operators.find_one_and_update(
        {"email": _norm_email(email)},
        {"$set": {"pw_hash": _hash_password(password), "roles": [OPERATOR_ROLE], "updated_at": now},
         "$setOnInsert": {"created_at": now}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
