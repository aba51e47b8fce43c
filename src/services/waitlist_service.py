import logging
from datetime import datetime, timedelta
from typing import Callable
from urllib.parse import urlencode

from pydantic import BaseModel

from core.errors import AuthError, ConflictError, PermissionDeniedError, StateError, ValidationError
from data_access.causes import CauseRepository
from data_access.claims import ClaimRepository
from data_access.dynamodb import TransactionCancelled, retry_on_stale_write
from data_access.waitlist import WaitlistRepository
from models.base import utcnow
from models.claim import Claim, ShippingAddress
from models.user import User
from models.waitlist import WAITLIST_STATUS, WaitlistEntry
from services.claim_service import ClaimService
from services.notification_service import MAGIC_LINK, NotificationQueue

logger = logging.getLogger(__name__)

INVALID_LINK = "Invalid or already used magic link"


class Promotion(BaseModel):
    entry: WaitlistEntry
    magic_link: str
    email_queued: bool


class MagicLinkDetails(BaseModel):
    entry_id: str
    cause_id: str
    cause_title: str
    full_name: str
    email: str
    phone: str
    organization: str
    expires_at: datetime


class WaitlistService:
    def __init__(
        self,
        entries: WaitlistRepository,
        causes: CauseRepository,
        claims: ClaimRepository,
        claim_service: ClaimService,
        queue: NotificationQueue,
        frontend_url: str,
        link_ttl: timedelta = timedelta(hours=48),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.entries = entries
        self.causes = causes
        self.claims = claims
        self.claim_service = claim_service
        self.queue = queue
        self.frontend_url = frontend_url.rstrip("/")
        self.link_ttl = link_ttl
        self.clock = clock

    @retry_on_stale_write
    def join(self, cause_id: str, user: User, contact: dict) -> WaitlistEntry:
        cause = self.causes.require(cause_id)
        if cause.status != "waitlist":
            raise StateError("This cause is not accepting waitlist entries")
        if self.entries.has_joined(cause_id, user.user_id):
            raise ConflictError("You are already on the waitlist for this cause")

        entry = WaitlistEntry(cause_id=cause_id, user_id=user.user_id,
                              position=cause.waitlist_seq + 1, **contact)
        try:
            return self.entries.join(entry, cause.waitlist_seq)
        except TransactionCancelled:
            if self.entries.has_joined(cause_id, user.user_id):
                raise ConflictError("You are already on the waitlist for this cause")
            if self.causes.require(cause_id).status != "waitlist":
                raise StateError("This cause is not accepting waitlist entries")
            # Another join took the position; retried with a fresh read
            raise

    def get(self, entry_id: str, user: User) -> WaitlistEntry:
        entry = self.entries.require(entry_id)
        if user.role != "admin" and entry.user_id != user.user_id:
            raise PermissionDeniedError("Not authorized to view this waitlist entry")
        return entry

    def list_all(self) -> list[WaitlistEntry]:
        return self.entries.list_all()

    def list_by_cause(self, cause_id: str, user: User) -> list[WaitlistEntry]:
        cause = self.causes.require(cause_id)
        is_sponsor = any(s.user_id == user.user_id for s in cause.sponsors)
        if user.role != "admin" and not is_sponsor:
            raise PermissionDeniedError("Not authorized to view this waitlist")
        return self.entries.list_by_cause(cause_id)

    def list_by_user(self, user_id: str, viewer: User) -> list[WaitlistEntry]:
        if viewer.role != "admin" and viewer.user_id != user_id:
            raise PermissionDeniedError("Not authorized to view these waitlist entries")
        return self.entries.list_by_user(user_id)

    @retry_on_stale_write
    def set_status(self, entry_id: str, status: str) -> WaitlistEntry:
        """Manual admin change. Expiring or claiming clears the magic link."""
        entry = self.entries.require(entry_id)
        if status == "notified":
            raise ValidationError("Use promote to notify a waitlist entry")
        previous_token = entry.magic_link_token
        entry.set_status(status)
        if previous_token and not entry.magic_link_token:
            return self.entries.save_without_link(entry, previous_token)
        return self.entries.save(entry)

    @retry_on_stale_write
    def promote(self, entry_id: str) -> Promotion:
        entry = self.entries.require(entry_id)
        cause = self.causes.require(entry.cause_id)
        if cause.status != "sponsored":
            raise StateError("The cause must be fully sponsored before promoting waitlist entries")
        if not cause.is_claimable_by(entry.user_id):
            raise StateError("This cause has already been claimed")
        if not WAITLIST_STATUS.can(entry.status, "notified"):
            raise StateError(f"Cannot promote a waitlist entry that is {entry.status}")

        previous_token = entry.magic_link_token
        token = entry.issue_magic_link(self.link_ttl, self.clock())
        self.entries.save_with_link(entry, previous_token)
        logger.info(f"Waitlist entry {entry_id} promoted, link expires {entry.magic_link_expires.isoformat()}")

        link = f"{self.frontend_url}/claim/magic-link?" + urlencode({"token": token, "causeId": cause.cause_id})
        queued = self.queue.enqueue({
            "type": MAGIC_LINK,
            "email_to": entry.email,
            "full_name": entry.full_name,
            "cause_title": cause.title,
            "link": link,
            "expires_at": entry.magic_link_expires.isoformat(),
        })
        return Promotion(entry=entry, magic_link=link, email_queued=queued)

    def _resolve(self, token: str) -> WaitlistEntry:
        """Looks up a live token; lapsed links are expired on the spot."""
        entry = self.entries.get_by_token(token) if token else None
        if entry is None or entry.status != "notified":
            raise AuthError(INVALID_LINK)

        now = self.clock()
        if entry.link_expired(now):
            self._expire(entry, token)
            raise AuthError("Magic link has expired")
        if not entry.magic_link_valid(token, now):
            raise AuthError(INVALID_LINK)
        return entry

    def _expire(self, entry: WaitlistEntry, token: str) -> None:
        try:
            entry.set_status("expired")
            self.entries.save_without_link(entry, token)
            logger.info(f"Waitlist entry {entry.entry_id} expired at redemption")
        except TransactionCancelled:
            logger.info(f"Waitlist entry {entry.entry_id} changed while expiring, left as is")

    def inspect(self, token: str) -> MagicLinkDetails:
        """Read-only view of a magic link for the landing page."""
        entry = self._resolve(token)
        cause = self.causes.require(entry.cause_id)
        return MagicLinkDetails(
            entry_id=entry.entry_id,
            cause_id=cause.cause_id,
            cause_title=cause.title,
            full_name=entry.full_name,
            email=entry.email,
            phone=entry.phone,
            organization=entry.organization,
            expires_at=entry.magic_link_expires,
        )

    def redeem(self, token: str, shipping_address: ShippingAddress, phone: str | None = None,
               organization: str | None = None) -> Claim:
        """Turns a magic link into a claim.

        The claim, the cause's claimant, the entry's ``claimed`` status and
        the token's removal are committed together; a second redemption of
        the same token finds nothing to redeem.
        """
        entry = self._resolve(token)
        cause = self.causes.require(entry.cause_id)
        if cause.status != "sponsored" or not cause.is_claimable_by(entry.user_id):
            raise StateError("This cause is no longer available for claiming")

        claim = Claim.open(
            cause_id=cause.cause_id,
            cause_title=cause.title,
            user_id=entry.user_id,
            full_name=entry.full_name,
            email=entry.email,
            phone=phone or entry.phone,
            organization=organization or entry.organization,
            shipping_address=shipping_address,
            from_waitlist=True,
        )
        try:
            self.claims.create_for_cause(claim, entry=entry, token=token)
        except TransactionCancelled:
            current = self.entries.get(entry.entry_id)
            if current is None or current.status != "notified" or current.magic_link_token != token:
                raise AuthError(INVALID_LINK)
            raise self.claim_service.explain_cancellation(cause.cause_id, entry.user_id)

        logger.info(f"Magic link for waitlist entry {entry.entry_id} redeemed as claim {claim.claim_id}")
        return claim
