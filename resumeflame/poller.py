# poller.py
from __future__ import annotations
import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from resumeflame.errors import NotFoundError, PollTimeoutError

LOG = logging.getLogger("resumeflame.poller")

POLL_INTERVAL = 2.0
MAX_ATTEMPTS = 60
MAX_CONSECUTIVE_FAILURES = 3
TIMEOUT = 10


def is_final(resume: Dict[str, Any]) -> bool:
    """Done once both artifacts exist or the sticky error is set."""
    if resume.get("processing_error"):
        return True
    return bool(resume.get("critique")) and bool(resume.get("rewrite"))


def poll_results(
    base_url: str,
    submission_id: str,
    *,
    interval: float = POLL_INTERVAL,
    max_attempts: int = MAX_ATTEMPTS,
    max_failures: int = MAX_CONSECUTIVE_FAILURES,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """Read ``/api/roast?id=`` until the submission reaches a final state.

    Returns the public record. Raises NotFoundError after ``max_failures``
    consecutive failed reads and PollTimeoutError after ``max_attempts``
    reads without a final state. A record that ends with
    ``processing_error`` set is returned, not raised; callers show the
    contact-support message from it.
    """
    http = session or requests.Session()
    url = base_url.rstrip("/") + "/api/roast"
    failures = 0

    for attempt in range(1, max_attempts + 1):
        try:
            r = http.get(url, params={"id": submission_id}, timeout=TIMEOUT)
            ok = r.status_code == 200
            body = r.json() if ok else None
            resume = body.get("resume") if isinstance(body, dict) else None
        except (requests.RequestException, ValueError) as e:
            LOG.warning("Poll %d for %s failed: %s", attempt, submission_id, e)
            ok, resume = False, None

        if ok and isinstance(resume, dict):
            failures = 0
            if is_final(resume):
                return resume
        else:
            failures += 1
            if failures >= max_failures:
                raise NotFoundError(f"Results for {submission_id} could not be loaded")

        if attempt < max_attempts:
            sleep(interval)

    raise PollTimeoutError(f"Results for {submission_id} not ready after {max_attempts} attempts")
