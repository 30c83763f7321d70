"""Static plan catalog. Pure lookup, no persistence."""
import enum
from dataclasses import dataclass
from decimal import Decimal

from app.core.errors import ValidationError


class PlanId(str, enum.Enum):
    MENSAL = "mensal"
    SEMESTRAL = "semestral"
    ANUAL = "anual"


@dataclass(frozen=True)
class PlanDefinition:
    id: PlanId
    display_name: str
    price: Decimal
    duration_days: int
    description: str = ""
    original_price: Decimal | None = None

    @property
    def promotional(self) -> bool:
        return self.original_price is not None


PLANS: dict[PlanId, PlanDefinition] = {
    PlanId.MENSAL: PlanDefinition(
        id=PlanId.MENSAL,
        display_name="Plano Mensal",
        price=Decimal("29.90"),
        duration_days=30,
        description="Acesso completo mensal",
    ),
    PlanId.SEMESTRAL: PlanDefinition(
        id=PlanId.SEMESTRAL,
        display_name="Plano Semestral",
        price=Decimal("19.90"),
        duration_days=30,
        description="Acesso completo com preço promocional",
        original_price=Decimal("500.00"),
    ),
    PlanId.ANUAL: PlanDefinition(
        id=PlanId.ANUAL,
        display_name="Plano Anual",
        price=Decimal("199.90"),
        duration_days=365,
        description="Acesso completo por 1 ano",
    ),
}


def get_plan(plan_id: str | PlanId | None) -> PlanDefinition | None:
    if not plan_id:
        return None
    try:
        return PLANS.get(PlanId(plan_id))
    except ValueError:
        return None


def require_plan(plan_id: str | PlanId | None) -> PlanDefinition:
    plan = get_plan(plan_id)
    if plan is None:
        raise ValidationError(f"Unknown plan: {plan_id!r}")
    return plan


def list_plans() -> list[PlanDefinition]:
    return list(PLANS.values())
