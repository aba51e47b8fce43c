from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import Literal

from models.base import Document, new_id

Role = Literal["visitor", "sponsor", "claimer", "admin"]
SELF_ASSIGNABLE_ROLES = {"visitor", "sponsor", "claimer"}


class User(Document):
    user_id: str = Field(default_factory=new_id)
    email: EmailStr
    name: str
    phone: str | None = None
    role: Role = "visitor"
    email_verified: bool = False

    otp_code: str | None = None
    otp_expires_at: datetime | None = None
    refresh_token: str | None = None

    def otp_matches(self, code: str, now: datetime) -> bool:
        if not self.otp_code or not self.otp_expires_at:
            return False
        if now > self.otp_expires_at:
            return False
        return self.otp_code == str(code)


class PublicUser(BaseModel):
    """User profile without credentials."""
    user_id: str
    email: EmailStr
    name: str
    phone: str | None = None
    role: Role
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls.model_validate(user.model_dump(exclude={"otp_code", "otp_expires_at", "refresh_token"}))


class AuthSession(BaseModel):
    user: PublicUser
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
