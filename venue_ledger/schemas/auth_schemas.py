"""
Authentication Schemas
"""

from pydantic import BaseModel, Field, field_validator

from venue_ledger.models.user_model import UserRole


class Identity(BaseModel):
    """Authenticated caller, as provided by the session layer"""

    email: str = Field(..., description="Caller email address")
    role: UserRole = Field(..., description="Caller role")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
