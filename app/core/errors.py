from typing import Any


class BillingError(Exception):
    """Base class for payment and entitlement failures."""


class ValidationError(BillingError):
    """Input rejected before any external call is made."""


class NotFoundError(BillingError):
    pass


class ConflictError(BillingError):
    """A transition was attempted on a record that already left the expected state."""


class ActivationError(BillingError):
    pass


class GatewayError(BillingError):
    """Mercado Pago could not be reached or answered with an error."""

    def __init__(self, message: str, *, status: int | None = None, response: Any = None):
        super().__init__(message)
        self.status = status
        self.response = response

    def as_detail(self) -> dict[str, Any]:
        return {"mp_status": self.status, "mp_response": self.response}
