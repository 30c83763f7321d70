from decimal import Decimal

import pytest

from app.core.errors import ValidationError
from app.services.plan_catalog import PlanId, get_plan, list_plans, require_plan


def test_mensal_plan_definition():
    plan = require_plan("mensal")
    assert plan.id is PlanId.MENSAL
    assert plan.display_name == "Plano Mensal"
    assert plan.price == Decimal("29.90")
    assert plan.duration_days == 30
    assert not plan.promotional


def test_semestral_is_promotional():
    plan = require_plan(PlanId.SEMESTRAL)
    assert plan.promotional
    assert plan.original_price == Decimal("500.00")


def test_anual_lasts_a_year():
    assert require_plan("anual").duration_days == 365


@pytest.mark.parametrize("plan_id", [None, "", "weekly", "MENSAL"])
def test_unknown_plans(plan_id):
    assert get_plan(plan_id) is None
    with pytest.raises(ValidationError):
        require_plan(plan_id)


def test_list_plans_covers_every_id():
    assert {p.id for p in list_plans()} == set(PlanId)
    assert all(p.duration_days > 0 for p in list_plans())
