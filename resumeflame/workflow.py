"""Payment confirmation: mark a submission paid, generate its critique and
rewrite, and destroy the uploaded text whatever happens.

Both the client-confirmed endpoint and the payment webhook call
:func:`confirm_payment`. The run is resumable: a record left half-done by a
crash or a transport timeout is finished by the next trigger, because each
generation step only runs while its artifact is still absent.
"""
from __future__ import annotations
import logging
from typing import Optional

from resumeflame.errors import GenerationError, NoInputError, ValidationError
from resumeflame.llm_client import GenerationClient, fix_request, roast_request
from resumeflame.models import DEFAULT_PAID_TIER, PAID_TIERS, Tier, WorkflowResult
from resumeflame.prompts import parse_critique
from resumeflame.storage import SubmissionStore

LOG = logging.getLogger("resumeflame.workflow")

PROCESSING_ERROR_MESSAGE = (
    "We couldn't finish generating your results. "
    "Please contact support with your resume ID."
)


def resolve_tier(requested: Optional[str], stored: Optional[str]) -> Tier:
    if requested:
        try:
            tier = Tier(requested)
        except ValueError:
            raise ValidationError(f"Unknown tier: {requested}") from None
        if tier not in PAID_TIERS:
            raise ValidationError(f"Tier '{requested}' cannot be purchased")
        return tier
    if stored in {t.value for t in PAID_TIERS}:
        return Tier(stored)
    return DEFAULT_PAID_TIER


def is_delivered(doc: dict) -> bool:
    return bool(doc.get("paid")) and bool(doc.get("critique")) and bool(doc.get("rewrite"))


def _generate_critique(store: SubmissionStore, generator: GenerationClient, sid: str, text: str) -> bool:
    try:
        content = generator.generate(roast_request(text))
        critique = parse_critique(content)
    except GenerationError as e:
        LOG.error("[%s] critique generation failed: %s", sid, e)
        return False
    if store.set_critique_if_absent(sid, critique):
        LOG.info("[%s] critique stored, score=%d", sid, critique.score)
    else:
        LOG.info("[%s] critique already written by another run; kept existing", sid)
    return True


def _generate_rewrite(store: SubmissionStore, generator: GenerationClient, sid: str, text: str, tier: Tier) -> bool:
    try:
        rewrite = generator.generate(fix_request(text, tier.value))
    except GenerationError as e:
        LOG.error("[%s] rewrite generation failed: %s", sid, e)
        return False
    if store.set_rewrite_if_absent(sid, rewrite):
        LOG.info("[%s] rewrite stored (%s tier)", sid, tier.value)
    else:
        LOG.info("[%s] rewrite already written by another run; kept existing", sid)
    return True


def _run_step(name: str, submission_id: str, failed: list, step) -> None:
    """Run one mutating step; a failure is recorded and the next step still runs."""
    try:
        if not step():
            failed.append(name)
    except Exception:
        LOG.exception("[%s] unexpected failure in %s step", submission_id, name)
        failed.append(name)


def confirm_payment(
    store: SubmissionStore,
    generator: GenerationClient,
    submission_id: str,
    tier: Optional[str] = None,
    payment_reference: Optional[str] = None,
) -> WorkflowResult:
    """Run the confirmation workflow for one submission.

    Precondition failures (ConfigError, NotFoundError, ValidationError,
    NoInputError) are raised before anything is written. Each of mark-paid,
    critique and rewrite is attempted even when an earlier one failed. Any
    failure, including a failed text cleanup, is recorded in the sticky
    ``processing_error`` field and reported as an unsuccessful result.
    """
    generator.check_configured()
    doc = store.get(submission_id)

    if is_delivered(doc):
        LOG.info("[%s] already delivered; nothing to do", submission_id)
        return WorkflowResult(success=True, already_processed=True)

    selected = resolve_tier(tier, doc.get("tier"))
    text = doc.get("raw_text")
    if not text:
        raise NoInputError("No resume text stored for this resume ID")

    def mark_paid() -> bool:
        store.mark_paid(submission_id, selected, payment_reference)
        LOG.info("[%s] marked paid, tier=%s", submission_id, selected.value)
        return True

    failed = []
    try:
        _run_step("mark_paid", submission_id, failed, mark_paid)
        if doc.get("critique") is None:
            _run_step("critique", submission_id, failed,
                      lambda: _generate_critique(store, generator, submission_id, text))
        if doc.get("rewrite") is None:
            _run_step("rewrite", submission_id, failed,
                      lambda: _generate_rewrite(store, generator, submission_id, text, selected))
    except Exception:
        LOG.exception("[%s] unexpected failure during confirmation", submission_id)
        failed.append("unexpected")
    finally:
        if not _destroy_text(store, submission_id):
            failed.append("cleanup")

    if failed:
        _record_error(store, submission_id)
        return WorkflowResult(success=False, error="Failed to generate results", failed_steps=failed)

    LOG.info("[%s] delivered", submission_id)
    return WorkflowResult(success=True)


def _destroy_text(store: SubmissionStore, submission_id: str) -> bool:
    try:
        store.clear_raw_text(submission_id)
    except Exception:
        LOG.exception("[%s] could not clear resume text", submission_id)
        return False
    return True


def _record_error(store: SubmissionStore, submission_id: str) -> None:
    try:
        store.set_processing_error(submission_id, PROCESSING_ERROR_MESSAGE)
    except Exception:
        LOG.exception("[%s] could not record processing error", submission_id)
