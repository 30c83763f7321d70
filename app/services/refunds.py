import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models.payment import Payment, PaymentStatus
from app.services.reconciler import compare_and_set_status
from app.utils.dt import utcnow

logger = logging.getLogger(__name__)


def refund_payment(db: Session, payment_id: int, *, now: datetime | None = None) -> Payment:
    """
    Administrative refund bookkeeping. Any plan already granted from this
    payment is left as is. Raises ConflictError if the payment is expired
    or already refunded.
    """
    now = now or utcnow()
    payment = db.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} not found")

    compare_and_set_status(db, payment, PaymentStatus.REFUNDED, now=now, values={"refunded_at": now})
    logger.info("Payment refunded payment_id=%s user_id=%s", payment.id, payment.user_id)
    return payment
