import hmac
import hashlib
from typing import Any, Mapping, Optional

def _parse_x_signature(x_signature: str) -> tuple[Optional[str], Optional[str]]:
    """
    x-signature looks like: "ts=1700000000,v1=abcdef..."
    """
    ts = None
    v1 = None
    for part in x_signature.split(","):
        k, _, v = part.strip().partition("=")
        if k == "ts":
            ts = v
        elif k == "v1":
            v1 = v
    return ts, v1

def build_signature_manifest(*, data_id: str, x_request_id: str, ts: str) -> str:
    return f"id:{data_id};request-id:{x_request_id};ts:{ts};"

def verify_mp_signature(*, secret: str, x_signature: str, x_request_id: str, data_id: str) -> bool:
    """
    HMAC SHA256 of the manifest with the webhook secret, hex digest,
    compared to the v1 part of the x-signature header.
    """
    ts, v1 = _parse_x_signature(x_signature)
    if not ts or not v1:
        return False

    manifest = build_signature_manifest(data_id=data_id, x_request_id=x_request_id, ts=ts)
    digest = hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()
    return hmac.compare_digest(digest, v1)

def _extract_id_from_resource_url(resource: str, needle: str) -> str | None:
    """
    resource example: https://api.mercadopago.com/v1/payments/123
    """
    if not resource or needle not in resource:
        return None
    return resource.rstrip("/").split("/")[-1] or None

def extract_payment_id(body: Mapping[str, Any], query_params: Mapping[str, str]) -> str | None:
    """
    Pull the MP payment id out of a notification.

    Accepts the webhook shape {"type": "payment", "data": {"id": ...}} as well
    as the IPN style ?topic=payment&id=... Any other topic yields None.
    """
    mp_type = body.get("type") or query_params.get("type")
    topic = body.get("topic") or query_params.get("topic")
    if mp_type != "payment" and topic != "payment":
        return None

    data = body.get("data") or {}
    payment_id = (
        data.get("id")
        or query_params.get("data.id")
        or query_params.get("id")
        or _extract_id_from_resource_url(str(body.get("resource") or ""), "payments")
    )
    return str(payment_id) if payment_id else None
