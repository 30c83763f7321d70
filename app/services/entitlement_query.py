"""Read-time plan validity. Expiry is applied lazily, on access."""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.roles import is_admin
from app.models.user import User
from app.services.plan_catalog import get_plan
from app.utils.dt import as_utc_aware, utcnow

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str  # admin / active / no_plan / expired
    days_remaining: int = 0


def days_remaining(expires_at: datetime | None, now: datetime | None = None) -> int:
    if expires_at is None:
        return 0
    now = now or utcnow()
    seconds = (as_utc_aware(expires_at) - now).total_seconds()
    return max(0, math.ceil(seconds / SECONDS_PER_DAY))


def _downgrade_expired(db: Session, user: User, now: datetime) -> bool:
    # Conditional on the window still being past, so a grant that landed
    # after we read the user is never clobbered.
    rowcount = db.execute(
        update(User)
        .where(
            User.id == user.id,
            User.has_paid_access.is_(True),
            User.plan_expires_at <= now,
        )
        .values(has_paid_access=False)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    db.refresh(user)
    if rowcount == 1:
        logger.info("Plan expired for user_id=%s; paid access revoked", user.id)
    return rowcount == 1


def check_access(db: Session, user: User, now: datetime | None = None) -> AccessDecision:
    now = now or utcnow()

    if is_admin(user.role):
        return AccessDecision(True, "admin", days_remaining(user.plan_expires_at, now))

    if not user.has_paid_access:
        return AccessDecision(False, "no_plan")

    expires_at = as_utc_aware(user.plan_expires_at)
    if expires_at is not None and now > expires_at:
        _downgrade_expired(db, user, now)
        if not user.has_paid_access:
            return AccessDecision(False, "expired")
        # A newer grant won the race; judge the fresh window
        return check_access(db, user, now)

    return AccessDecision(True, "active", days_remaining(expires_at, now))


def entitlement_summary(user: User, now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()
    plan = get_plan(user.plan_id)
    started_at = as_utc_aware(user.plan_started_at)
    expires_at = as_utc_aware(user.plan_expires_at)
    return {
        "plan_id": user.plan_id,
        "plan_name": plan.display_name if plan else None,
        "started_at": started_at.isoformat() if started_at else None,
        "expires_at": expires_at.isoformat() if expires_at else None,
        "days_remaining": days_remaining(expires_at, now),
        "has_paid_access": user.has_paid_access,
        "is_admin": is_admin(user.role),
    }
