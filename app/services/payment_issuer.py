import logging
import re
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import GatewayError, ValidationError
from app.integrations.mercadopago_client import MercadoPagoGateway
from app.models.payment import Payment, PaymentStatus
from app.models.user import User
from app.services.plan_catalog import require_plan
from app.utils.dt import as_utc_aware, utcnow

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


def normalize_tax_id(tax_id: str | None) -> str:
    digits = _NON_DIGITS.sub("", tax_id or "")
    if len(digits) not in (11, 14):
        raise ValidationError("A valid CPF or CNPJ is required")
    return digits


def build_idempotency_key(user_id: int, plan_id: str, now: datetime) -> str:
    return f"{user_id}_{plan_id}_{int(now.timestamp() * 1000)}"


def find_reusable_payment(db: Session, user_id: int, plan_id: str, now: datetime | None = None) -> Payment | None:
    """Latest pending payment for this user and plan whose artifact is still displayable."""
    now = now or utcnow()
    candidates = db.scalars(
        select(Payment)
        .where(
            Payment.user_id == user_id,
            Payment.plan_id == plan_id,
            Payment.status == PaymentStatus.PENDING.value,
        )
        .order_by(Payment.issued_at.desc(), Payment.id.desc())
    ).all()
    for payment in candidates:
        if as_utc_aware(payment.artifact_expires_at) > now:
            return payment
    return None


def issue_payment(
    db: Session,
    gateway: MercadoPagoGateway,
    user: User,
    plan_id: str,
    tax_id: str | None,
    *,
    phone: str | None = None,
    now: datetime | None = None,
) -> Payment:
    """
    Create a PIX charge at the gateway and persist it as a pending payment.

    The plan price is read once here and stored on the payment. Nothing is
    written when the gateway call fails.
    """
    plan = require_plan(plan_id)
    tax_digits = normalize_tax_id(tax_id)
    now = now or utcnow()

    reference = build_idempotency_key(user.id, plan.id.value, now)
    amount = plan.price

    try:
        intent = gateway.create_pix_intent(
            amount=amount,
            payer_tax_id=tax_digits,
            payer_email=user.email,
            idempotency_key=reference,
            description=f"{settings.mp_statement_descriptor} - {plan.display_name}",
        )
    except GatewayError as exc:
        logger.warning(
            "PIX issuance failed user_id=%s plan=%s status=%s", user.id, plan.id.value, exc.status
        )
        raise

    payment = Payment(
        user_id=user.id,
        plan_id=plan.id.value,
        amount=amount,
        status=PaymentStatus.PENDING.value,
        provider_reference=intent.provider_reference,
        provider_payment_id=intent.provider_payment_id,
        qr_code=intent.qr_payload,
        qr_code_base64=intent.qr_image,
        copy_paste=intent.copy_paste,
        issued_at=now,
        artifact_expires_at=now + timedelta(minutes=settings.pix_expiration_minutes),
    )

    # Checkout also refreshes the payer details kept on the account
    user.tax_id = tax_digits
    if phone:
        user.phone = phone

    db.add(payment)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Could not persist payment for provider_payment_id=%s", intent.provider_payment_id
        )
        raise
    db.refresh(payment)

    logger.info(
        "PIX issued payment_id=%s user_id=%s plan=%s amount=%s mp_id=%s",
        payment.id, user.id, plan.id.value, amount, payment.provider_payment_id,
    )
    return payment
