from fastapi import APIRouter, Depends

from app.api.deps_billing import require_paid_access
from app.services.entitlement_query import AccessDecision

router = APIRouter(prefix="/premium", tags=["premium"])

@router.get("/feature")
def premium_feature(access: AccessDecision = Depends(require_paid_access)):
    return {
        "ok": True,
        "message": "You have premium access!",
        "access": access.reason,
        "days_remaining": access.days_remaining,
    }
