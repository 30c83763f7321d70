import logging

from sqlalchemy.orm import Session

from app.models.notification import Notification, NotificationKind

logger = logging.getLogger(__name__)


def notify(
    db: Session,
    user_id: int,
    title: str,
    message: str,
    kind: NotificationKind | str = NotificationKind.INFO,
) -> Notification | None:
    """Fire-and-forget: a failure here is logged and never propagated."""
    try:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            kind=NotificationKind(kind).value,
        )
        db.add(notification)
        db.commit()
        return notification
    except Exception:
        db.rollback()
        logger.exception("Failed to store notification for user_id=%s title=%r", user_id, title)
        return None
