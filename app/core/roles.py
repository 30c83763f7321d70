import enum


class Role(str, enum.Enum):
    USER = "user"
    CARETAKER_ADMIN = "caretaker_admin"
    FULL_ADMIN = "full_admin"
    CO_OWNER = "co_owner"
    OWNER = "owner"


class Capability(str, enum.Enum):
    BYPASS_PAID_ACCESS = "bypass_paid_access"
    VIEW_PAYMENTS = "view_payments"
    MANAGE_PAYMENTS = "manage_payments"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.USER: frozenset(),
    Role.CARETAKER_ADMIN: frozenset({Capability.BYPASS_PAID_ACCESS}),
    Role.FULL_ADMIN: frozenset({Capability.BYPASS_PAID_ACCESS, Capability.VIEW_PAYMENTS}),
    Role.CO_OWNER: frozenset(Capability),
    Role.OWNER: frozenset(Capability),
}


def has_capability(role: Role | str | None, capability: Capability) -> bool:
    if role is None:
        return False
    try:
        role = Role(role)
    except ValueError:
        return False
    return capability in ROLE_CAPABILITIES[role]


def is_admin(role: Role | str | None) -> bool:
    return has_capability(role, Capability.BYPASS_PAID_ACCESS)
