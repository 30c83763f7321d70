import hashlib
import hmac

from app.integrations.mp_webhooks import build_signature_manifest, extract_payment_id, verify_mp_signature


def _sign(secret: str, data_id: str, request_id: str, ts: str) -> str:
    manifest = build_signature_manifest(data_id=data_id, x_request_id=request_id, ts=ts)
    v1 = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return f"ts={ts},v1={v1}"


def test_valid_signature_is_accepted():
    header = _sign("s3cret", "1001", "req-1", "1700000000")
    assert verify_mp_signature(secret="s3cret", x_signature=header, x_request_id="req-1", data_id="1001")


def test_signature_for_other_payment_is_rejected():
    header = _sign("s3cret", "1001", "req-1", "1700000000")
    assert not verify_mp_signature(secret="s3cret", x_signature=header, x_request_id="req-1", data_id="1002")


def test_malformed_signature_is_rejected():
    assert not verify_mp_signature(secret="s3cret", x_signature="garbage", x_request_id="req-1", data_id="1")


def test_extract_payment_id_from_webhook_body():
    assert extract_payment_id({"type": "payment", "data": {"id": 1234}}, {}) == "1234"


def test_extract_payment_id_from_ipn_query():
    assert extract_payment_id({}, {"topic": "payment", "id": "99"}) == "99"


def test_extract_payment_id_from_resource_url():
    body = {"topic": "payment", "resource": "https://api.mercadopago.com/v1/payments/77"}
    assert extract_payment_id(body, {}) == "77"


def test_other_topics_are_ignored():
    assert extract_payment_id({"type": "merchant_order", "data": {"id": "1"}}, {}) is None
    assert extract_payment_id({}, {}) is None
