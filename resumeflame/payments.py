# payments.py
from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import requests

from resumeflame.errors import ConfigError, PaymentProviderError, ValidationError
from resumeflame.models import DEFAULT_PAID_TIER, PAID_TIERS

LOG = logging.getLogger("resumeflame.payments")

CHECKOUTS_URL = "https://api.lemonsqueezy.com/v1/checkouts"
JSON_API = "application/vnd.api+json"
TIMEOUT = 20

PURCHASE_EVENT = "order_created"


@dataclass(frozen=True)
class PurchaseEvent:
    submission_id: str
    tier: str
    order_id: Optional[str]


def _variant_for(config: Mapping[str, Any], tier: str) -> Optional[str]:
    key = "LEMONSQUEEZY_VARIANT_ID_PRO" if tier == "pro" else "LEMONSQUEEZY_VARIANT_ID_BASIC"
    return config.get(key)


def create_checkout(
    config: Mapping[str, Any],
    submission_id: str,
    tier: str,
    origin: str,
    session: Optional[requests.Session] = None,
) -> str:
    """Create a hosted checkout and return its overlay URL.

    The submission id and tier travel in ``checkout_data.custom`` and come
    back to us in the webhook's ``meta.custom_data``.
    """
    if tier not in {t.value for t in PAID_TIERS}:
        raise ValidationError(f"Unknown tier: {tier}")

    variant_id = _variant_for(config, tier)
    store_id = config.get("LEMONSQUEEZY_STORE_ID")
    api_key = config.get("LEMONSQUEEZY_API_KEY")
    if not variant_id or not store_id or not api_key:
        LOG.error(
            "Missing payment config: variant=%s store=%s api_key=%s",
            bool(variant_id), bool(store_id), bool(api_key),
        )
        raise ConfigError("Payment not configured")

    payload = {
        "data": {
            "type": "checkouts",
            "attributes": {
                "product_options": {
                    "redirect_url": f"{origin.rstrip('/')}/roast/{submission_id}?paid=1&tier={tier}",
                },
                "checkout_data": {
                    "custom": {"resume_id": submission_id, "tier": tier},
                },
            },
            "relationships": {
                "store": {"data": {"type": "stores", "id": str(store_id)}},
                "variant": {"data": {"type": "variants", "id": str(variant_id)}},
            },
        }
    }
    headers = {
        "Accept": JSON_API,
        "Content-Type": JSON_API,
        "Authorization": f"Bearer {api_key}",
    }

    http = session or requests
    try:
        r = http.post(CHECKOUTS_URL, data=json.dumps(payload), headers=headers, timeout=TIMEOUT)
    except requests.RequestException as e:
        raise PaymentProviderError(f"Checkout request failed: {e}") from e

    try:
        data = r.json()
    except ValueError:
        data = {}

    if not r.ok:
        detail = ((data.get("errors") or [{}])[0] or {}).get("detail")
        LOG.error("Lemon Squeezy API error %s: %s", r.status_code, detail or r.text[:200])
        raise PaymentProviderError(detail or "Failed to create checkout")

    url = ((data.get("data") or {}).get("attributes") or {}).get("url")
    if not url:
        raise PaymentProviderError("No checkout URL returned")

    # embed=1 lets lemon.js open it as an overlay
    return url + ("&" if "?" in url else "?") + "embed=1"


def parse_purchase_event(body: bytes) -> Optional[PurchaseEvent]:
    """Return the purchase carried by a webhook body, or None for other events."""
    try:
        event: Dict[str, Any] = json.loads(body or b"{}")
    except ValueError as e:
        raise ValidationError("Webhook body is not JSON") from e
    if not isinstance(event, dict):
        raise ValidationError("Webhook body must be a JSON object")

    meta = event.get("meta") or {}
    if meta.get("event_name") != PURCHASE_EVENT:
        return None

    data = event.get("data") or {}
    status = (data.get("attributes") or {}).get("status")
    if status != "paid":
        LOG.info("Ignoring %s with status=%s", PURCHASE_EVENT, status)
        return None

    custom = meta.get("custom_data") or {}
    submission_id = custom.get("resume_id")
    if not submission_id:
        raise ValidationError("Missing resume_id")

    order_id = data.get("id")
    return PurchaseEvent(
        submission_id=str(submission_id),
        tier=custom.get("tier") or DEFAULT_PAID_TIER.value,
        order_id=str(order_id) if order_id is not None else None,
    )
