import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Enum, DateTime, String, Text, Numeric, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.utils.dt import utcnow


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REFUNDED = "refunded"
    EXPIRED = "expired"


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    plan_id: Mapped[str] = mapped_column(String(32))

    # Price snapshot taken at issuance; never recomputed from the catalog
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    status: Mapped[str] = mapped_column(
        Enum(*[s.value for s in PaymentStatus], name="payment_status"),
        default=PaymentStatus.PENDING.value,
        index=True,
    )

    # Our idempotency key, echoed back by MP as external_reference
    provider_reference: Mapped[str] = mapped_column(String(128), unique=True)
    # MP payment id, used to re-query the gateway
    provider_payment_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    # PIX artifact, written once at issuance
    qr_code: Mapped[str] = mapped_column(Text, default="")
    qr_code_base64: Mapped[str] = mapped_column(Text, default="")
    copy_paste: Mapped[str] = mapped_column(Text, default="")

    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    artifact_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # NULL on an approved payment means the entitlement grant is still owed
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User")

    __table_args__ = (
        Index("ix_payments_user_plan_status", "user_id", "plan_id", "status"),
    )
