# models.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Tier(str, Enum):
    FREE = "free"
    PENDING_PAYMENT = "pending_payment"
    BASIC = "basic"
    PRO = "pro"


PAID_TIERS = (Tier.BASIC, Tier.PRO)
DEFAULT_PAID_TIER = Tier.BASIC


@dataclass
class Critique:
    score: int
    roast_lines: List[str]
    issues: List[str]
    one_liner: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "roast_lines": list(self.roast_lines),
            "issues": list(self.issues),
            "one_liner": self.one_liner,
        }


@dataclass
class WorkflowResult:
    success: bool
    already_processed: bool = False
    error: Optional[str] = None
    failed_steps: List[str] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        body: Dict[str, Any] = {"success": True}
        if self.already_processed:
            body["already_processed"] = True
        return body

    @property
    def status_code(self) -> int:
        return 200 if self.success else 500
