import logging

from fastapi import APIRouter, Request, HTTPException, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import GatewayError
from app.db.session import get_db
from app.integrations.mercadopago_client import MercadoPagoGateway, get_gateway
from app.integrations.mp_webhooks import extract_payment_id, verify_mp_signature
from app.services import reconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mp", tags=["mercado_pago"])


def _maybe_verify_signature(request: Request, data_id: str) -> None:
    """
    Verify MP signature only if:
    - mp_webhook_secret is configured
    - required headers exist
    Sandbox + some topics may omit headers.
    """
    if not settings.mp_webhook_secret:
        return

    x_signature = request.headers.get("x-signature", "")
    x_request_id = request.headers.get("x-request-id", "")

    if not x_signature or not x_request_id:
        logger.warning("MP signature headers missing; skipping verification for data_id=%s", data_id)
        return

    ok = verify_mp_signature(
        secret=settings.mp_webhook_secret,
        x_signature=x_signature,
        x_request_id=x_request_id,
        data_id=str(data_id),
    )
    if not ok:
        raise HTTPException(401, "Invalid signature")


@router.post("/webhook")
async def mp_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: MercadoPagoGateway = Depends(get_gateway),
):
    qp = dict(request.query_params)
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    logger.debug("MP webhook hit query=%s body=%s", qp, body)

    payment_id = extract_payment_id(body, qp)
    if not payment_id:
        return {"ok": True, "ignored": True}

    _maybe_verify_signature(request, data_id=payment_id)

    try:
        outcome = await reconciler.reconcile_by_callback(db, gateway, body, query_params=qp)
    except GatewayError as exc:
        # Non-2xx makes MP deliver the notification again later
        logger.warning("MP status lookup failed for mp_id=%s: %s", payment_id, exc)
        raise HTTPException(502, exc.as_detail())

    if outcome is None:
        return {"ok": True, "ignored": True}

    return {
        "ok": True,
        "payment_id": outcome.payment.id,
        "status": outcome.payment.status,
        "transitioned": outcome.transitioned,
    }
