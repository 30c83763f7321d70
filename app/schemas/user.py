from datetime import datetime

from pydantic import BaseModel, ConfigDict

class EntitlementOut(BaseModel):
    plan_id: str | None
    plan_name: str | None
    started_at: str | None
    expires_at: str | None
    days_remaining: int
    has_paid_access: bool
    is_admin: bool

class UserOut(BaseModel):
    id: int
    email: str
    name: str
    role: str
    has_paid_access: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class MeOut(UserOut):
    entitlement: EntitlementOut
