"""
Entitlement activation.

A grant replaces the user's plan window with [now, now + duration_days].
Every grant comes from an approved payment. The payment's activated_at
column is claimed with a conditional update in the same transaction as the
user write, so repeated calls for the same approval change nothing and
emit no second notification.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ActivationError, NotFoundError, ValidationError
from app.models.notification import NotificationKind
from app.models.payment import Payment, PaymentStatus
from app.models.user import User
from app.services import notifications
from app.services.plan_catalog import require_plan
from app.utils.dt import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivationResult:
    user_id: int
    plan_id: str
    started_at: datetime | None
    expires_at: datetime | None
    performed: bool


def activate(
    db: Session,
    user_id: int,
    plan_id: str,
    *,
    payment_id: int,
    now: datetime | None = None,
) -> ActivationResult:
    now = now or utcnow()
    plan = require_plan(plan_id)

    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")

    try:
        claimed = db.execute(
            update(Payment)
            .where(
                Payment.id == payment_id,
                Payment.status == PaymentStatus.APPROVED.value,
                Payment.activated_at.is_(None),
            )
            .values(activated_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            db.rollback()
            db.refresh(user)
            logger.info(
                "Activation skipped: payment_id=%s already activated or not approved", payment_id
            )
            return ActivationResult(
                user_id=user.id,
                plan_id=plan.id.value,
                started_at=user.plan_started_at,
                expires_at=user.plan_expires_at,
                performed=False,
            )

        started_at = now
        expires_at = now + timedelta(days=plan.duration_days)
        # Every column is written explicitly; the loaded User may be stale
        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                plan_id=plan.id.value,
                plan_started_at=started_at,
                plan_expires_at=expires_at,
                plan_payment_id=payment_id,
                has_paid_access=True,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        raise ActivationError(f"Could not activate plan for user {user_id}: {exc}") from exc

    logger.info(
        "Plan activated user_id=%s plan=%s payment_id=%s expires_at=%s",
        user_id, plan.id.value, payment_id, expires_at.isoformat(),
    )

    notifications.notify(
        db,
        user_id,
        "Pagamento aprovado!",
        f"Seu plano {plan.display_name} foi ativado. Aproveite a plataforma!",
        NotificationKind.SUCCESS,
    )

    return ActivationResult(
        user_id=user_id,
        plan_id=plan.id.value,
        started_at=started_at,
        expires_at=expires_at,
        performed=True,
    )


def activate_with_retry(
    db: Session,
    payment: Payment,
    *,
    now: datetime | None = None,
    attempts: int | None = None,
) -> ActivationResult | None:
    """
    Bounded in-process retries. Returns None when every attempt failed; the
    payment then stays approved with activated_at NULL for the sweep.
    """
    attempts = attempts or settings.activation_max_attempts
    for attempt in range(1, attempts + 1):
        try:
            return activate(db, payment.user_id, payment.plan_id, payment_id=payment.id, now=now)
        except (ActivationError, NotFoundError, ValidationError):
            logger.exception(
                "Activation attempt %s/%s failed for payment_id=%s", attempt, attempts, payment.id
            )
    logger.error("Activation deferred to sweep for payment_id=%s", payment.id)
    return None


def retry_pending_activations(db: Session, *, now: datetime | None = None) -> list[ActivationResult]:
    """Re-run the grant for approved payments that never got activated."""
    pending = db.scalars(
        select(Payment)
        .where(
            Payment.status == PaymentStatus.APPROVED.value,
            Payment.activated_at.is_(None),
        )
        .order_by(Payment.confirmed_at, Payment.id)
    ).all()

    results = []
    for payment in pending:
        result = activate_with_retry(db, payment, now=now, attempts=1)
        if result is not None:
            results.append(result)
    if pending:
        logger.info("Activation sweep: %s pending, %s activated", len(pending), len(results))
    return results
