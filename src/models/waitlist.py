from datetime import datetime, timedelta
from pydantic import EmailStr, Field
from typing import Literal

from core.security import generate_magic_link_token
from models.base import Document, new_id, utcnow
from models.status import StatusMachine

WaitlistStatus = Literal["waiting", "notified", "claimed", "expired"]

WAITLIST_STATUS = StatusMachine("waitlist entry", {
    "waiting": {"notified", "expired"},
    # Re-promoting a notified or expired entry issues a fresh link
    "notified": {"notified", "claimed", "expired"},
    "expired": {"notified"},
    "claimed": set(),
})


class WaitlistEntry(Document):
    entry_id: str = Field(default_factory=new_id)
    cause_id: str
    user_id: str
    full_name: str
    email: EmailStr
    phone: str
    organization: str
    message: str | None = None
    notify_email: bool = True
    notify_sms: bool = False
    position: int
    status: WaitlistStatus = "waiting"
    magic_link_token: str | None = None
    magic_link_sent_at: datetime | None = None
    magic_link_expires: datetime | None = None

    def issue_magic_link(self, ttl: timedelta, now: datetime | None = None) -> str:
        WAITLIST_STATUS.ensure(self.status, "notified")
        now = now or utcnow()
        self.magic_link_token = generate_magic_link_token()
        self.magic_link_sent_at = now
        self.magic_link_expires = now + ttl
        self.status = "notified"
        self.touch(now)
        return self.magic_link_token

    def magic_link_valid(self, token: str, now: datetime) -> bool:
        if not self.magic_link_token or not self.magic_link_expires:
            return False
        if now > self.magic_link_expires:
            return False
        return self.magic_link_token == token

    def link_expired(self, now: datetime) -> bool:
        return self.magic_link_expires is not None and now > self.magic_link_expires

    def set_status(self, status: str) -> None:
        WAITLIST_STATUS.ensure(self.status, status)
        self.status = status
        if status in ("expired", "claimed"):
            self.clear_magic_link()
        self.touch()

    def clear_magic_link(self) -> None:
        self.magic_link_token = None
        self.magic_link_sent_at = None
        self.magic_link_expires = None
