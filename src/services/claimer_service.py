from pydantic import BaseModel

from data_access.causes import CauseRepository
from data_access.claims import ClaimRepository
from models.cause import Cause


class ClaimerStats(BaseModel):
    active_causes: int
    total_raised: int
    totes_claimed: int


class ClaimerService:
    """Dashboard data for users who create causes and claim totes."""

    def __init__(self, causes: CauseRepository, claims: ClaimRepository):
        self.causes = causes
        self.claims = claims

    def created_causes(self, user_id: str) -> list[Cause]:
        return self.causes.list_by_creator(user_id)

    def stats(self, user_id: str) -> ClaimerStats:
        causes = self.causes.list_by_creator(user_id)
        return ClaimerStats(
            active_causes=sum(1 for cause in causes if cause.is_online),
            total_raised=sum(cause.raised for cause in causes),
            totes_claimed=len(self.claims.list_by_user(user_id)),
        )
