import logging

from core.errors import NotFoundError, ValidationError
from data_access.causes import CauseRepository
from models.cause import CAUSE_STATUS, Cause
from models.user import User

logger = logging.getLogger(__name__)


class CauseService:
    """Cause lifecycle: submission, moderation, visibility and closing."""

    def __init__(self, causes: CauseRepository):
        self.causes = causes

    def submit(self, fields: dict, submitter: User) -> Cause:
        cause = Cause(
            **fields,
            status="pending",
            is_online=False,
            created_by=submitter.user_id,
            creator_name=submitter.name,
            creator_email=submitter.email,
        )
        self.causes.create(cause)
        logger.info(f"Cause {cause.cause_id} submitted by {submitter.user_id}")
        return cause

    def admin_create(self, fields: dict, admin: User, online: bool = True) -> Cause:
        """Admin-authored causes skip moderation and open immediately."""
        cause = Cause(**fields, status="open", is_online=online, created_by=admin.user_id,
                      creator_name=admin.name, creator_email=admin.email)
        self.causes.create(cause)
        logger.info(f"Cause {cause.cause_id} created by admin {admin.user_id}")
        return cause

    def get(self, cause_id: str, viewer: User | None = None) -> Cause:
        cause = self.causes.require(cause_id)
        if cause.is_online or self._can_see_offline(cause, viewer):
            return cause
        raise NotFoundError("Cause not found")

    @staticmethod
    def _can_see_offline(cause: Cause, viewer: User | None) -> bool:
        if viewer is None:
            return False
        return viewer.role == "admin" or viewer.user_id == cause.created_by

    def list_public(self) -> list[Cause]:
        return self.causes.list_online()

    def list_all(self) -> list[Cause]:
        return self.causes.list_all()

    def list_for(self, viewer: User | None) -> list[Cause]:
        if viewer is not None and viewer.role == "admin":
            return self.list_all()
        return self.list_public()

    def list_by_status(self, status: str, viewer: User | None = None) -> list[Cause]:
        if status not in CAUSE_STATUS.statuses:
            raise ValidationError(f"Invalid cause status '{status}'")
        causes = self.causes.list_by_status(status)
        if viewer is not None and viewer.role == "admin":
            return causes
        return [cause for cause in causes if cause.is_online]

    def list_by_creator(self, user_id: str) -> list[Cause]:
        return self.causes.list_by_creator(user_id)

    def list_by_sponsor(self, user_id: str) -> list[Cause]:
        return self.causes.list_by_sponsor_user(user_id)

    def approve(self, cause_id: str) -> Cause:
        cause = self.causes.mutate(cause_id, lambda c: c.approve())
        logger.info(f"Cause {cause_id} approved")
        return cause

    def reject(self, cause_id: str, reason: str | None = None) -> Cause:
        cause = self.causes.mutate(cause_id, lambda c: c.reject(reason))
        logger.info(f"Cause {cause_id} rejected: {cause.rejection_reason}")
        return cause

    def toggle_online(self, cause_id: str) -> Cause:
        cause = self.causes.mutate(cause_id, lambda c: c.toggle_online())
        logger.info(f"Cause {cause_id} is now {'online' if cause.is_online else 'offline'}")
        return cause

    def force_close(self, cause_id: str) -> Cause:
        cause = self.causes.mutate(cause_id, lambda c: c.force_close())
        logger.info(f"Cause {cause_id} force-closed")
        return cause

    def set_waitlist(self, cause_id: str, enabled: bool) -> Cause:
        cause = self.causes.mutate(cause_id, lambda c: c.set_waitlist(enabled))
        logger.info(f"Cause {cause_id} waitlist {'opened' if enabled else 'closed'}, status {cause.status}")
        return cause

    def update(self, cause_id: str, fields: dict) -> Cause:
        return self.causes.mutate(cause_id, lambda c: c.update_details(fields))

    def delete(self, cause_id: str) -> None:
        self.causes.require(cause_id)
        self.causes.delete(cause_id)
        logger.info(f"Cause {cause_id} deleted")
