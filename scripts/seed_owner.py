import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.logging import configure_logging
from app.core.roles import Role
from app.core.security import hash_password
from app.db.session import SessionLocal, init_db
from app.models.user import User
from app.utils.dt import utcnow

logger = logging.getLogger("seed_owner")

# Owners bypass the paid-access check; the window is informational only
OWNER_WINDOW_DAYS = 365 * 100

def upsert_owner(db: Session, email: str, password: str | None = None) -> User:
    owner = db.query(User).filter(User.email == email.lower()).first()
    if owner:
        if owner.role != Role.OWNER.value:
            owner.role = Role.OWNER.value
            owner.has_paid_access = True
            logger.info("Promoted %s to owner", email)
        return owner

    now = utcnow()
    owner = User(
        email=email.lower(),
        name="Admin Master",
        role=Role.OWNER.value,
        password_hash=hash_password(password) if password else None,
        has_paid_access=True,
        plan_id="anual",
        plan_started_at=now,
        plan_expires_at=now + timedelta(days=OWNER_WINDOW_DAYS),
    )
    db.add(owner)
    logger.info("Created owner account %s", email)
    return owner

def main():
    configure_logging(settings.log_level)
    init_db()
    db = SessionLocal()
    try:
        upsert_owner(db, settings.owner_email, settings.owner_password or None)
        db.commit()
    finally:
        db.close()

if __name__ == "__main__":
    main()
