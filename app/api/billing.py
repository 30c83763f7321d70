import logging

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import GatewayError, NotFoundError, ValidationError
from app.core.roles import Capability, has_capability
from app.db.session import get_db
from app.api.deps import get_current_user
from app.integrations.mercadopago_client import MercadoPagoGateway, get_gateway
from app.models.payment import Payment
from app.models.user import User
from app.schemas.billing import PlanOut, CreatePixIn, PixOut, PaymentOut, PaymentStatusOut
from app.services import payment_issuer, reconciler
from app.services.entitlement_query import entitlement_summary
from app.services.plan_catalog import list_plans, require_plan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])

PAYMENT_UNAVAILABLE = "Payment unavailable, try again later"

def _pix_out(payment: Payment, reused: bool = False) -> PixOut:
    return PixOut(
        **PaymentOut.model_validate(payment).model_dump(),
        qr_code=payment.qr_code,
        qr_code_base64=payment.qr_code_base64,
        copy_paste=payment.copy_paste,
        reused=reused,
    )

# Display available plans
@router.get("/plans", response_model=list[PlanOut])
def get_plans():
    return [
        PlanOut(
            id=plan.id.value,
            display_name=plan.display_name,
            price=plan.price,
            duration_days=plan.duration_days,
            description=plan.description,
            original_price=plan.original_price,
            promotional=plan.promotional,
            currency=settings.mp_currency,
        )
        for plan in list_plans()
    ]

# Create a PIX charge for a plan
@router.post("/pix", response_model=PixOut)
def create_pix_payment(
    payload: CreatePixIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: MercadoPagoGateway = Depends(get_gateway),
):
    try:
        plan = require_plan(payload.plan_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    # The issuer does not enforce uniqueness; hand back the QR still on screen
    existing = payment_issuer.find_reusable_payment(db, user.id, plan.id.value)
    if existing:
        return _pix_out(existing, reused=True)

    try:
        payment = payment_issuer.issue_payment(
            db, gateway, user, plan.id.value, payload.tax_id, phone=payload.phone
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except GatewayError as exc:
        logger.warning("PIX issuance unavailable for user_id=%s: %s", user.id, exc)
        raise HTTPException(status_code=502, detail=PAYMENT_UNAVAILABLE)

    return _pix_out(payment)

# Poll the gateway for the current truth of a payment
@router.get("/payments/{payment_id}/status", response_model=PaymentStatusOut)
async def get_payment_status(
    payment_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    gateway: MercadoPagoGateway = Depends(get_gateway),
):
    payment = db.get(Payment, payment_id)
    if not payment or (payment.user_id != user.id and not has_capability(user.role, Capability.VIEW_PAYMENTS)):
        raise HTTPException(status_code=404, detail="Payment not found")

    try:
        outcome = await reconciler.reconcile_by_polling(db, gateway, payment_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Payment not found")
    except GatewayError as exc:
        # Transient; the client simply polls again
        logger.warning("Status poll failed for payment_id=%s: %s", payment_id, exc)
        return PaymentStatusOut(payment_id=payment.id, status=payment.status, approved=False)

    return PaymentStatusOut(
        payment_id=outcome.payment.id,
        status=outcome.payment.status,
        approved=outcome.approved,
    )

# Current user's plan window and payment history
@router.get("/me")
def my_billing(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    payments = (db.query(Payment)
                .filter(Payment.user_id == user.id)
                .order_by(Payment.issued_at.desc(), Payment.id.desc())
                .all()
                )
    return {
        "user_id": user.id,
        "entitlement": entitlement_summary(user),
        "payments": [PaymentOut.model_validate(p).model_dump(mode="json") for p in payments],
    }
