from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import require_capability
from app.core.errors import ConflictError, NotFoundError
from app.core.roles import Capability
from app.db.session import get_db
from app.models.payment import Payment
from app.models.user import User
from app.schemas.billing import ActivationSweepOut, AdminPaymentOut
from app.services.activator import retry_pending_activations
from app.services.refunds import refund_payment

router = APIRouter(prefix="/admin", tags=["admin"])

@router.get("/payments", response_model=list[AdminPaymentOut])
def list_payments(
    status: str | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    _: User = Depends(require_capability(Capability.VIEW_PAYMENTS)),
):
    q = db.query(Payment)
    if status:
        q = q.filter(Payment.status == status)
    return q.order_by(Payment.issued_at.desc(), Payment.id.desc()).limit(min(limit, 500)).all()

@router.post("/payments/{payment_id}/refund", response_model=AdminPaymentOut)
def refund(
    payment_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_capability(Capability.MANAGE_PAYMENTS)),
):
    try:
        return refund_payment(db, payment_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Payment not found")
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))

@router.post("/activations/retry", response_model=ActivationSweepOut)
def retry_activations(
    db: Session = Depends(get_db),
    _: User = Depends(require_capability(Capability.MANAGE_PAYMENTS)),
):
    results = retry_pending_activations(db)
    return ActivationSweepOut(activated=sum(1 for r in results if r.performed))
