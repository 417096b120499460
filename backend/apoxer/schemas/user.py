from datetime import datetime
from pydantic import BaseModel

from ..enums import PlanTier


class UserPublic(BaseModel):
    id: str
    email: str
    username: str
    display_name: str | None = None
    plan_tier: PlanTier
    plan_expires_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True
