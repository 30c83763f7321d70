"""
Payment status reconciliation.

Polling and the MP callback both end in apply_status(). The gateway is always
queried first; the local transition is a single conditional UPDATE keyed on
the payment id, so when two paths race only one of them sees rowcount == 1
and goes on to activate the plan.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError
from app.integrations.mercadopago_client import GatewayPaymentStatus, MercadoPagoGateway
from app.integrations.mp_webhooks import extract_payment_id
from app.models.payment import Payment, PaymentStatus
from app.services.activator import ActivationResult, activate_with_retry
from app.utils.dt import as_utc_aware, utcnow

logger = logging.getLogger(__name__)

# Local states a transition may start from
_ALLOWED_SOURCES: dict[PaymentStatus, tuple[PaymentStatus, ...]] = {
    # Gateway truth wins over local display expiry
    PaymentStatus.APPROVED: (PaymentStatus.PENDING, PaymentStatus.EXPIRED),
    PaymentStatus.EXPIRED: (PaymentStatus.PENDING,),
    PaymentStatus.REFUNDED: (PaymentStatus.PENDING, PaymentStatus.APPROVED),
}


@dataclass
class ReconcileOutcome:
    payment: Payment
    gateway_status: str | None = None
    transitioned: bool = False
    activation: ActivationResult | None = None

    @property
    def approved(self) -> bool:
        return self.payment.status == PaymentStatus.APPROVED.value


def map_gateway_status(gateway_status: str | None) -> PaymentStatus | None:
    """Only an approval moves the record; rejected/cancelled leave it pending."""
    if gateway_status == "approved":
        return PaymentStatus.APPROVED
    return None


def compare_and_set_status(
    db: Session,
    payment: Payment,
    target: PaymentStatus,
    *,
    now: datetime,
    values: Mapping[str, Any] | None = None,
) -> Payment:
    """
    Move payment to target if it is still in one of the allowed source states.
    Raises ConflictError when another writer got there first.
    """
    sources = [s.value for s in _ALLOWED_SOURCES[target]]
    changes = {"status": target.value, "updated_at": now}
    if values:
        changes.update(values)

    rowcount = db.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status.in_(sources))
        .values(**changes)
        .execution_options(synchronize_session=False)
    ).rowcount

    if rowcount != 1:
        db.rollback()
        db.refresh(payment)
        raise ConflictError(
            f"Payment {payment.id} is {payment.status}, cannot move to {target.value}"
        )

    db.commit()
    db.refresh(payment)
    return payment


def _artifact_expired(payment: Payment, now: datetime) -> bool:
    expires_at = as_utc_aware(payment.artifact_expires_at)
    return expires_at is not None and now > expires_at


def apply_status(
    db: Session,
    payment: Payment,
    gateway: GatewayPaymentStatus,
    *,
    now: datetime | None = None,
) -> ReconcileOutcome:
    now = now or utcnow()
    outcome = ReconcileOutcome(payment=payment, gateway_status=gateway.status)
    target = map_gateway_status(gateway.status)

    if target is PaymentStatus.APPROVED:
        if payment.status not in (PaymentStatus.PENDING.value, PaymentStatus.EXPIRED.value):
            return outcome
        try:
            compare_and_set_status(db, payment, PaymentStatus.APPROVED, now=now, values={"confirmed_at": now})
        except ConflictError as exc:
            logger.info("Approval already applied elsewhere: %s", exc)
            return outcome

        outcome.transitioned = True
        logger.info(
            "Payment approved payment_id=%s user_id=%s plan=%s mp_id=%s",
            payment.id, payment.user_id, payment.plan_id, payment.provider_payment_id,
        )
        outcome.activation = activate_with_retry(db, payment, now=now)
        return outcome

    if payment.status == PaymentStatus.PENDING.value and _artifact_expired(payment, now):
        try:
            compare_and_set_status(db, payment, PaymentStatus.EXPIRED, now=now)
        except ConflictError as exc:
            logger.info("Expiry skipped: %s", exc)
            return outcome
        outcome.transitioned = True
        logger.info(
            "Payment expired payment_id=%s mp_status=%s", payment.id, gateway.status
        )
        return outcome

    logger.debug("No transition for payment_id=%s mp_status=%s", payment.id, gateway.status)
    return outcome


async def reconcile_by_polling(
    db: Session,
    gateway: MercadoPagoGateway,
    payment_id: int,
    *,
    now: datetime | None = None,
) -> ReconcileOutcome:
    payment = db.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} not found")

    if payment.status not in (PaymentStatus.PENDING.value, PaymentStatus.EXPIRED.value):
        return ReconcileOutcome(payment=payment)

    status = await gateway.get_payment_status(payment.provider_payment_id)
    return apply_status(db, payment, status, now=now)


async def reconcile_by_callback(
    db: Session,
    gateway: MercadoPagoGateway,
    notification: Mapping[str, Any],
    *,
    query_params: Mapping[str, str] | None = None,
    now: datetime | None = None,
) -> ReconcileOutcome | None:
    """
    The notification body is only a trigger: the status is always re-read
    from the gateway. Unknown or foreign payments are logged and ignored.
    """
    provider_payment_id = extract_payment_id(notification, query_params or {})
    if not provider_payment_id:
        logger.info("Callback ignored: not a payment notification")
        return None

    payment = db.scalars(
        select(Payment).where(Payment.provider_payment_id == provider_payment_id)
    ).first()
    if payment is None:
        logger.warning("Callback for unknown mp_id=%s ignored", provider_payment_id)
        return None

    if payment.status not in (PaymentStatus.PENDING.value, PaymentStatus.EXPIRED.value):
        return ReconcileOutcome(payment=payment)

    status = await gateway.get_payment_status(provider_payment_id)
    if status.external_reference and status.external_reference != payment.provider_reference:
        logger.warning(
            "Callback ignored: mp_id=%s reference %r does not match payment_id=%s",
            provider_payment_id, status.external_reference, payment.id,
        )
        return None

    return apply_status(db, payment, status, now=now)
