from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.services.entitlement_query import AccessDecision, check_access

_DENIAL_MESSAGES = {
    "no_plan": "Access blocked. Please purchase a plan.",
    "expired": "Your plan has expired. Renew to continue.",
}

def require_paid_access(db: Session = Depends(get_db), user: User = Depends(get_current_user)) -> AccessDecision:
    decision = check_access(db, user)
    if not decision.allowed:
        raise HTTPException(
            status_code=403,
            detail={
                "message": _DENIAL_MESSAGES.get(decision.reason, "Access blocked."),
                "reason": decision.reason,
                "redirect": "/plans",
            },
        )
    return decision
