from fastapi import APIRouter, Depends

from api.deps import ensure_self_or_admin, get_current_user
from api.schemas import envelope
from core.dependencies import get_claimer_service
from models.user import User
from services.claimer_service import ClaimerService

router = APIRouter(prefix="/claimers", tags=["claimers"])


@router.get("/{user_id}/causes")
def created_causes(user_id: str, user: User = Depends(get_current_user),
                   claimers: ClaimerService = Depends(get_claimer_service)):
    ensure_self_or_admin(user, user_id, "Unauthorized access to user causes")
    return envelope(claimers.created_causes(user_id))


@router.get("/{user_id}/stats")
def stats(user_id: str, user: User = Depends(get_current_user),
          claimers: ClaimerService = Depends(get_claimer_service)):
    ensure_self_or_admin(user, user_id, "Unauthorized access to user stats")
    return envelope(claimers.stats(user_id))
