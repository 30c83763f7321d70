from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core.errors import GatewayError, ValidationError
from app.models.payment import Payment, PaymentStatus
from app.services import plan_catalog
from app.services.payment_issuer import find_reusable_payment, issue_payment, normalize_tax_id
from app.utils.dt import as_utc_aware
from conftest import T0


def _payment_count(db) -> int:
    return db.scalar(select(func.count()).select_from(Payment))


def test_issue_creates_pending_payment_with_price_snapshot(db, gateway, make_user):
    u = make_user()
    payment = issue_payment(db, gateway, u, "mensal", "123.456.789-09", now=T0)

    assert payment.status == PaymentStatus.PENDING.value
    assert payment.amount == Decimal("29.90")
    assert payment.provider_reference == f"{u.id}_mensal_{int(T0.timestamp() * 1000)}"
    assert payment.provider_payment_id in gateway.statuses
    assert payment.copy_paste and payment.qr_code_base64
    assert as_utc_aware(payment.issued_at) == T0
    assert as_utc_aware(payment.artifact_expires_at) == T0 + timedelta(minutes=30)
    assert payment.confirmed_at is None

    sent = gateway.created[0]
    assert sent["amount"] == Decimal("29.90")
    assert sent["payer_tax_id"] == "12345678909"
    assert sent["payer_email"] == u.email
    assert sent["idempotency_key"] == payment.provider_reference

    db.refresh(u)
    assert u.tax_id == "12345678909"


def test_catalog_change_does_not_touch_issued_payment(db, gateway, make_user, monkeypatch):
    u = make_user()
    payment = issue_payment(db, gateway, u, "mensal", "12345678909", now=T0)

    repriced = replace(plan_catalog.PLANS[plan_catalog.PlanId.MENSAL], price=Decimal("99.90"))
    monkeypatch.setitem(plan_catalog.PLANS, plan_catalog.PlanId.MENSAL, repriced)

    db.refresh(payment)
    assert payment.amount == Decimal("29.90")


def test_gateway_failure_persists_nothing(db, gateway, make_user):
    gateway.fail_create = True
    u = make_user()
    with pytest.raises(GatewayError):
        issue_payment(db, gateway, u, "anual", "12345678909", now=T0)
    assert _payment_count(db) == 0


@pytest.mark.parametrize("tax_id", [None, "", "abc", "123"])
def test_missing_tax_id_is_rejected_before_gateway(db, gateway, make_user, tax_id):
    u = make_user()
    with pytest.raises(ValidationError):
        issue_payment(db, gateway, u, "mensal", tax_id, now=T0)
    assert gateway.created == []
    assert _payment_count(db) == 0


def test_unknown_plan_is_rejected_before_gateway(db, gateway, make_user):
    u = make_user()
    with pytest.raises(ValidationError):
        issue_payment(db, gateway, u, "vitalicio", "12345678909", now=T0)
    assert gateway.created == []


def test_cnpj_is_accepted():
    assert normalize_tax_id("12.345.678/0001-95") == "12345678000195"


def test_issuer_does_not_deduplicate(db, gateway, make_user):
    u = make_user()
    first = issue_payment(db, gateway, u, "mensal", "12345678909", now=T0)
    second = issue_payment(db, gateway, u, "mensal", "12345678909", now=T0 + timedelta(seconds=1))
    assert first.id != second.id
    assert first.provider_reference != second.provider_reference


def test_find_reusable_payment_only_while_artifact_is_displayable(db, gateway, make_user):
    u = make_user()
    payment = issue_payment(db, gateway, u, "mensal", "12345678909", now=T0)

    assert find_reusable_payment(db, u.id, "mensal", now=T0 + timedelta(minutes=10)).id == payment.id
    assert find_reusable_payment(db, u.id, "anual", now=T0 + timedelta(minutes=10)) is None
    assert find_reusable_payment(db, u.id, "mensal", now=T0 + timedelta(minutes=31)) is None
