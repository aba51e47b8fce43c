from typing import Optional

from fastapi import APIRouter, Depends

from api.deps import ensure_self_or_admin, get_current_user, get_optional_user, require_admin
from api.schemas import (
    AdminCauseCreate,
    CauseCreate,
    CauseUpdate,
    RejectRequest,
    SponsorshipCreate,
    WaitlistToggleRequest,
    envelope,
)
from core.dependencies import get_cause_service, get_sponsorship_service
from models.user import User
from services.cause_service import CauseService
from services.sponsorship_service import SponsorshipService

router = APIRouter(prefix="/causes", tags=["causes"])


@router.get("")
def list_causes(user: Optional[User] = Depends(get_optional_user),
                cause_service: CauseService = Depends(get_cause_service)):
    return envelope(cause_service.list_for(user))


@router.get("/pending-sponsorships")
def pending_sponsorships(_: User = Depends(require_admin),
                         sponsorships: SponsorshipService = Depends(get_sponsorship_service)):
    return envelope(sponsorships.list_pending())


@router.get("/status/{status}")
def list_by_status(status: str, user: Optional[User] = Depends(get_optional_user),
                   cause_service: CauseService = Depends(get_cause_service)):
    return envelope(cause_service.list_by_status(status, user))


@router.get("/claimer/{user_id}")
def list_by_creator(user_id: str, user: User = Depends(get_current_user),
                    cause_service: CauseService = Depends(get_cause_service)):
    ensure_self_or_admin(user, user_id, "Unauthorized access to user causes")
    return envelope(cause_service.list_by_creator(user_id))


@router.get("/sponsor/{user_id}")
def list_by_sponsor(user_id: str, user: User = Depends(get_current_user),
                    cause_service: CauseService = Depends(get_cause_service)):
    ensure_self_or_admin(user, user_id, "Unauthorized access to sponsored causes")
    return envelope(cause_service.list_by_sponsor(user_id))


@router.get("/{cause_id}")
def get_cause(cause_id: str, user: Optional[User] = Depends(get_optional_user),
              cause_service: CauseService = Depends(get_cause_service)):
    return envelope(cause_service.get(cause_id, user))


@router.post("/submit", status_code=201)
def submit_cause(body: CauseCreate, user: User = Depends(get_current_user),
                 cause_service: CauseService = Depends(get_cause_service)):
    cause = cause_service.submit(body.model_dump(), user)
    return envelope(cause, "Cause submitted for review")


@router.post("", status_code=201)
def create_cause(body: AdminCauseCreate, admin: User = Depends(require_admin),
                 cause_service: CauseService = Depends(get_cause_service)):
    fields = body.model_dump(exclude={"is_online"})
    return envelope(cause_service.admin_create(fields, admin, online=body.is_online), "Cause created")


@router.put("/{cause_id}")
def update_cause(cause_id: str, body: CauseUpdate, _: User = Depends(require_admin),
                 cause_service: CauseService = Depends(get_cause_service)):
    return envelope(cause_service.update(cause_id, body.model_dump(exclude_unset=True)), "Cause updated")


@router.delete("/{cause_id}")
def delete_cause(cause_id: str, _: User = Depends(require_admin),
                 cause_service: CauseService = Depends(get_cause_service)):
    cause_service.delete(cause_id)
    return envelope(message="Cause deleted")


@router.patch("/{cause_id}/approve")
def approve_cause(cause_id: str, _: User = Depends(require_admin),
                  cause_service: CauseService = Depends(get_cause_service)):
    return envelope(cause_service.approve(cause_id), "Cause approved")


@router.patch("/{cause_id}/reject")
def reject_cause(cause_id: str, body: RejectRequest, _: User = Depends(require_admin),
                 cause_service: CauseService = Depends(get_cause_service)):
    return envelope(cause_service.reject(cause_id, body.reason), "Cause rejected")


@router.patch("/{cause_id}/toggle-status")
def toggle_online(cause_id: str, _: User = Depends(require_admin),
                  cause_service: CauseService = Depends(get_cause_service)):
    cause = cause_service.toggle_online(cause_id)
    return envelope(cause, f"Cause is now {'online' if cause.is_online else 'offline'}")


@router.patch("/{cause_id}/force-close-claims")
def force_close(cause_id: str, _: User = Depends(require_admin),
                cause_service: CauseService = Depends(get_cause_service)):
    return envelope(cause_service.force_close(cause_id), "Cause closed")


@router.patch("/{cause_id}/waitlist")
def toggle_waitlist(cause_id: str, body: WaitlistToggleRequest, _: User = Depends(require_admin),
                    cause_service: CauseService = Depends(get_cause_service)):
    return envelope(cause_service.set_waitlist(cause_id, body.enabled))


@router.post("/{cause_id}/sponsors", status_code=201)
def add_sponsorship(cause_id: str, body: SponsorshipCreate, user: User = Depends(get_current_user),
                    sponsorships: SponsorshipService = Depends(get_sponsorship_service)):
    sponsor = sponsorships.add_sponsorship(cause_id, body.model_dump(exclude_none=True), user)
    return envelope(sponsor, "Sponsorship request submitted for approval")


@router.patch("/{cause_id}/sponsors/{sponsor_id}/approve")
def approve_sponsor(cause_id: str, sponsor_id: str, _: User = Depends(require_admin),
                    sponsorships: SponsorshipService = Depends(get_sponsorship_service)):
    return envelope(sponsorships.approve_sponsor(cause_id, sponsor_id), "Sponsorship approved")


@router.patch("/{cause_id}/sponsors/{sponsor_id}/reject")
def reject_sponsor(cause_id: str, sponsor_id: str, body: RejectRequest, _: User = Depends(require_admin),
                   sponsorships: SponsorshipService = Depends(get_sponsorship_service)):
    return envelope(sponsorships.reject_sponsor(cause_id, sponsor_id, body.reason), "Sponsorship rejected")
