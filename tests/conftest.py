import asyncio
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator, Iterator

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("MP_ACCESS_TOKEN", "TEST-token")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.errors import GatewayError
from app.core.roles import Role
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import get_db
from app.integrations.mercadopago_client import GatewayPaymentStatus, PixIntent, get_gateway
from app.models import notification, payment, user  # noqa: F401
from app.models.payment import Payment, PaymentStatus
from app.models.user import User

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeGateway:
    """In-memory stand-in for Mercado Pago."""

    def __init__(self) -> None:
        self.statuses: dict[str, str] = {}
        self.references: dict[str, str] = {}
        self.created: list[dict] = []
        self.status_calls: list[str] = []
        self.fail_create = False
        self.fail_status = False
        self._next_id = 1000
        self._gate: asyncio.Event | None = None
        self._gate_size = 0
        self._waiting = 0

    def hold_status_until(self, callers: int) -> None:
        """Make get_payment_status wait until `callers` lookups are in flight."""
        self._gate = None
        self._gate_size = callers
        self._waiting = 0

    def create_pix_intent(self, amount, payer_tax_id, payer_email, idempotency_key, description=""):
        if self.fail_create:
            raise GatewayError("Mercado Pago rejected the payment", status=500, response={"message": "boom"})
        self._next_id += 1
        mp_id = str(self._next_id)
        self.created.append({
            "amount": amount,
            "payer_tax_id": payer_tax_id,
            "payer_email": payer_email,
            "idempotency_key": idempotency_key,
            "description": description,
        })
        self.statuses[mp_id] = "pending"
        self.references[mp_id] = idempotency_key
        return PixIntent(
            provider_payment_id=mp_id,
            provider_reference=idempotency_key,
            qr_payload=f"00020126-pix-{mp_id}",
            qr_image="iVBORw0KGgo=",
            copy_paste=f"00020126-pix-{mp_id}",
            status="pending",
        )

    async def get_payment_status(self, provider_payment_id: str) -> GatewayPaymentStatus:
        self.status_calls.append(provider_payment_id)
        if self._gate_size:
            if self._gate is None:
                self._gate = asyncio.Event()
            self._waiting += 1
            if self._waiting >= self._gate_size:
                self._gate.set()
            await self._gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail_status:
            raise GatewayError("Mercado Pago status lookup failed", status=503, response="unavailable")
        return GatewayPaymentStatus(
            provider_payment_id=provider_payment_id,
            status=self.statuses.get(provider_payment_id, "pending"),
            external_reference=self.references.get(provider_payment_id),
        )


@pytest.fixture()
def engine(tmp_path) -> Iterator[Engine]:
    test_engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'billing.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def make_user(db: Session):
    counter = {"n": 0}

    def _make(role: Role = Role.USER, **fields) -> User:
        counter["n"] += 1
        u = User(
            email=fields.pop("email", f"user{counter['n']}@example.com"),
            role=role.value,
            **fields,
        )
        db.add(u)
        db.commit()
        db.refresh(u)
        return u

    return _make


@pytest.fixture()
def make_payment(db: Session):
    counter = {"n": 0}

    def _make(u: User, status: PaymentStatus = PaymentStatus.PENDING, issued_at: datetime = T0, plan_id: str = "mensal") -> Payment:
        counter["n"] += 1
        p = Payment(
            user_id=u.id,
            plan_id=plan_id,
            amount=Decimal("29.90"),
            status=status.value,
            provider_reference=f"{u.id}_{plan_id}_{counter['n']}",
            provider_payment_id=str(5000 + counter["n"]),
            qr_code="qr",
            qr_code_base64="img",
            copy_paste="qr",
            issued_at=issued_at,
            artifact_expires_at=issued_at + timedelta(minutes=30),
            confirmed_at=issued_at if status == PaymentStatus.APPROVED else None,
        )
        db.add(p)
        db.commit()
        db.refresh(p)
        return p

    return _make


@pytest.fixture()
def client(session_factory: sessionmaker, gateway: FakeGateway) -> Iterator[TestClient]:
    from app.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        test_client.close()
        app.dependency_overrides.clear()


def auth_headers(u: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(subject=str(u.id), role=u.role)}"}
