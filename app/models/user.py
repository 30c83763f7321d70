from datetime import datetime
from sqlalchemy import Boolean, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.roles import Role
from app.db.base import Base
from app.utils.dt import utcnow

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str] = mapped_column(String(120), default="")

    # Payer details captured at checkout (CPF/CNPJ digits only)
    tax_id: Mapped[str] = mapped_column(String(14), default="")
    phone: Mapped[str] = mapped_column(String(32), default="")

    role: Mapped[str] = mapped_column(
        Enum(*[r.value for r in Role], name="user_role"),
        default=Role.USER.value,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Cached "plan currently valid"; plan_expires_at is the source of truth
    has_paid_access: Mapped[bool] = mapped_column(Boolean, default=False)

    # Entitlement window. Replaced wholesale by every grant.
    plan_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    plan_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    plan_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    plan_payment_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
