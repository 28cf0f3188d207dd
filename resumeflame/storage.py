# storage.py
from __future__ import annotations
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database

from resumeflame.errors import ConfigError, NotFoundError
from resumeflame.models import Critique, Tier

LOG = logging.getLogger("resumeflame.storage")

SCHEMA_VERSION = 2
PUBLIC_FIELDS = ("score", "critique", "rewrite", "paid", "tier", "processing_error")


def new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def connect(uri: str, db_name: str) -> Database:
    client = MongoClient(uri, serverSelectionTimeoutMS=5000, tz_aware=True)
    return client[db_name]


class SubmissionStore:
    """One document per submission in the ``submissions`` collection.

    Every mutation is a single-document update. Artifact writes carry the
    "still absent" condition in their filter so a late duplicate can never
    overwrite the first result.
    """

    def __init__(self, db: Database, fernet_key: Optional[str] = None):
        self.db = db
        self.col = db.submissions
        try:
            self._fernet = Fernet(fernet_key.encode()) if fernet_key else None
        except ValueError as e:
            raise ConfigError(f"FERNET_KEY is not a valid Fernet key: {e}") from e

    # -------- schema --------
    def migrate(self) -> None:
        """Create indexes and backfill fields added after the first schema."""
        self.col.create_index([("created_at", ASCENDING)], name="submissions_created")
        res = self.col.update_many(
            {"processing_error": {"$exists": False}},
            {"$set": {"processing_error": None}},
        )
        self.db.meta.update_one(
            {"_id": "schema"}, {"$set": {"version": SCHEMA_VERSION}}, upsert=True
        )
        if res.modified_count:
            LOG.info("Backfilled processing_error on %d submissions", res.modified_count)

    # -------- raw text sealing --------
    def _seal(self, text: str) -> str:
        if not self._fernet:
            return text
        return self._fernet.encrypt(text.encode("utf-8")).decode("ascii")

    def _open(self, stored: Optional[str]) -> Optional[str]:
        if stored is None or not self._fernet:
            return stored
        try:
            return self._fernet.decrypt(stored.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            raise ConfigError("stored text cannot be decrypted with FERNET_KEY") from e

    # -------- reads --------
    def get(self, submission_id: str) -> Dict[str, Any]:
        doc = self.col.find_one({"_id": submission_id})
        if not doc:
            raise NotFoundError("Resume not found")
        doc["raw_text"] = self._open(doc.get("raw_text"))
        return doc

    def public_view(self, submission_id: str) -> Dict[str, Any]:
        doc = self.col.find_one(
            {"_id": submission_id}, {field: 1 for field in PUBLIC_FIELDS}
        )
        if not doc:
            raise NotFoundError("Not found")
        critique = doc.get("critique")
        return {
            "id": doc["_id"],
            "score": doc.get("score"),
            "critique": json.loads(critique) if critique else None,
            "rewrite": doc.get("rewrite"),
            "paid": bool(doc.get("paid")),
            "tier": doc.get("tier"),
            "processing_error": doc.get("processing_error"),
        }

    # -------- writes --------
    def create(
        self,
        raw_text: str,
        *,
        file_name: str = "",
        visitor_id: str = "anonymous",
        tier: Tier = Tier.PENDING_PAYMENT,
    ) -> str:
        sid = new_id()
        now = _now()
        self.col.insert_one({
            "_id": sid,
            "raw_text": self._seal(raw_text),
            "file_name": file_name,
            "visitor_id": visitor_id,
            "paid": False,
            "tier": Tier(tier).value,
            "score": None,
            "critique": None,
            "rewrite": None,
            "processing_error": None,
            "payment_reference": None,
            "created_at": now,
            "updated_at": now,
        })
        return sid

    def mark_paid(self, submission_id: str, tier: Tier, payment_reference: Optional[str] = None) -> None:
        update: Dict[str, Any] = {"paid": True, "tier": Tier(tier).value, "updated_at": _now()}
        if payment_reference:
            update["payment_reference"] = payment_reference
        self.col.update_one({"_id": submission_id}, {"$set": update})

    def set_critique_if_absent(self, submission_id: str, critique: Critique) -> bool:
        doc = self.col.find_one_and_update(
            {"_id": submission_id, "critique": None},
            {"$set": {
                "score": critique.score,
                "critique": json.dumps(critique.to_dict(), ensure_ascii=False),
                "updated_at": _now(),
            }},
            return_document=ReturnDocument.AFTER,
        )
        return doc is not None

    def set_rewrite_if_absent(self, submission_id: str, rewrite: str) -> bool:
        res = self.col.update_one(
            {"_id": submission_id, "rewrite": None},
            {"$set": {"rewrite": rewrite, "updated_at": _now()}},
        )
        return res.modified_count == 1

    def set_processing_error(self, submission_id: str, message: str) -> None:
        # sticky: the first recorded error wins
        self.col.update_one(
            {"_id": submission_id, "processing_error": None},
            {"$set": {"processing_error": message, "updated_at": _now()}},
        )

    def clear_raw_text(self, submission_id: str) -> bool:
        res = self.col.update_one(
            {"_id": submission_id},
            {"$set": {"raw_text": None, "updated_at": _now()}},
        )
        return res.matched_count == 1
