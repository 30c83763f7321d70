from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

class PlanOut(BaseModel):
    id: str
    display_name: str
    price: Decimal
    duration_days: int
    description: str
    original_price: Decimal | None
    promotional: bool
    currency: str

class CreatePixIn(BaseModel):
    plan_id: str = Field(min_length=1)
    tax_id: str = Field(min_length=1)
    phone: str | None = None

class PaymentOut(BaseModel):
    id: int
    plan_id: str
    amount: Decimal
    status: str
    issued_at: datetime
    artifact_expires_at: datetime
    confirmed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)

class PixOut(PaymentOut):
    qr_code: str
    qr_code_base64: str
    copy_paste: str
    reused: bool = False

class PaymentStatusOut(BaseModel):
    payment_id: int
    status: str
    approved: bool

class AdminPaymentOut(PaymentOut):
    user_id: int
    provider_payment_id: str
    provider_reference: str
    activated_at: datetime | None
    refunded_at: datetime | None

class ActivationSweepOut(BaseModel):
    activated: int
