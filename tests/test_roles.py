import pytest

from app.core.roles import Capability, Role, has_capability, is_admin


def test_plain_user_has_no_capabilities():
    assert not any(has_capability(Role.USER, c) for c in Capability)
    assert not is_admin("user")


@pytest.mark.parametrize("role", [r for r in Role if r is not Role.USER])
def test_every_staff_role_bypasses_paid_access(role):
    assert is_admin(role)
    assert is_admin(role.value)


def test_payment_management_is_owner_level():
    assert has_capability(Role.OWNER, Capability.MANAGE_PAYMENTS)
    assert has_capability(Role.CO_OWNER, Capability.MANAGE_PAYMENTS)
    assert not has_capability(Role.FULL_ADMIN, Capability.MANAGE_PAYMENTS)
    assert has_capability(Role.FULL_ADMIN, Capability.VIEW_PAYMENTS)
    assert not has_capability(Role.CARETAKER_ADMIN, Capability.VIEW_PAYMENTS)


def test_unknown_role_is_denied():
    assert not has_capability("superuser", Capability.BYPASS_PAID_ACCESS)
    assert not has_capability(None, Capability.BYPASS_PAID_ACCESS)
