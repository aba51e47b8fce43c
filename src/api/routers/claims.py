from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from api.deps import get_current_user, require_admin
from api.schemas import ClaimCreate, ClaimStatusUpdate, NoteRequest, ProofRequest, envelope
from core.dependencies import get_claim_service
from models.user import User
from services.claim_service import ClaimService

router = APIRouter(prefix="/claims", tags=["claims"])


@router.get("")
def list_claims(
    status: Optional[str] = None,
    cause_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
    page: int = 1,
    _: User = Depends(require_admin),
    claim_service: ClaimService = Depends(get_claim_service),
):
    return envelope(claim_service.list_all(status, cause_id, start_date, end_date, search, page))


@router.get("/user/{user_id}")
def list_user_claims(user_id: str, user: User = Depends(get_current_user),
                     claim_service: ClaimService = Depends(get_claim_service)):
    return envelope(claim_service.list_for_user(user_id, user))


@router.get("/{claim_id}")
def get_claim(claim_id: str, user: User = Depends(get_current_user),
              claim_service: ClaimService = Depends(get_claim_service)):
    return envelope(claim_service.get(claim_id, user))


@router.post("", status_code=201)
def create_claim(body: ClaimCreate, user: User = Depends(get_current_user),
                 claim_service: ClaimService = Depends(get_claim_service)):
    details = body.model_dump(exclude={"cause_id"})
    return envelope(claim_service.create_claim(body.cause_id, user, details), "Claim submitted")


@router.patch("/{claim_id}/status")
def update_status(claim_id: str, body: ClaimStatusUpdate, _: User = Depends(require_admin),
                  claim_service: ClaimService = Depends(get_claim_service)):
    update = claim_service.update_status(claim_id, body.status, body.tracking_number, body.tracking_url, body.note)
    message = f"Claim status updated to {update.claim.status}"
    if update.email_queued is False:
        message += ", but the notification email could not be queued"
    return envelope(update, message)


@router.patch("/{claim_id}/verify")
def verify_claim(claim_id: str, _: User = Depends(require_admin),
                 claim_service: ClaimService = Depends(get_claim_service)):
    return envelope(claim_service.verify(claim_id), "Claim verified")


@router.post("/{claim_id}/notes", status_code=201)
def add_note(claim_id: str, body: NoteRequest, admin: User = Depends(require_admin),
             claim_service: ClaimService = Depends(get_claim_service)):
    return envelope(claim_service.add_note(claim_id, body.text, admin))


@router.post("/{claim_id}/proof")
def add_proof(claim_id: str, body: ProofRequest, user: User = Depends(get_current_user),
              claim_service: ClaimService = Depends(get_claim_service)):
    claim = claim_service.add_proof_of_impact(claim_id, user, body.images, body.description)
    return envelope(claim, "Proof of impact submitted")
