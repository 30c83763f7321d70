import logging

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.services.activator import retry_pending_activations

logger = logging.getLogger("retry_activations")

def main():
    configure_logging(settings.log_level)
    db = SessionLocal()
    try:
        results = retry_pending_activations(db)
        logger.info("Activated %s payment(s)", sum(1 for r in results if r.performed))
    finally:
        db.close()

if __name__ == "__main__":
    main()
