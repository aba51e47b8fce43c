import logging

from data_access.causes import cause_key
from data_access.dynamodb import VersionedRepository
from data_access.waitlist import magic_link_key, waitlist_key
from models.base import utcnow
from models.claim import Claim
from models.waitlist import WaitlistEntry

logger = logging.getLogger(__name__)

CLAIM_PREFIX = "CLAIM#"
CLAIM_SK = "CLAIM"
CLAIM_COLLECTION = "CLAIM"
CLAIM_USER_PREFIX = "CLAIM_USER#"


def claim_key(claim_id: str) -> dict:
    return {"PK": f"{CLAIM_PREFIX}{claim_id}", "SK": CLAIM_SK}


def claim_marker_key(cause_id: str, user_id: str) -> dict:
    return {"PK": f"CAUSE#{cause_id}", "SK": f"{CLAIM_USER_PREFIX}{user_id}"}


def user_owner_key(user_id: str) -> str:
    return f"USER#{user_id}#CLAIM"


class ClaimRepository(VersionedRepository[Claim]):
    model = Claim
    not_found_message = "Claim not found"

    def key(self, doc_id: str) -> dict:
        return claim_key(doc_id)

    def doc_id(self, doc: Claim) -> str:
        return doc.claim_id

    def index_keys(self, doc: Claim) -> dict:
        return {
            "GSI1PK": CLAIM_COLLECTION,
            "GSI1SK": doc.created_at.isoformat(),
            "GSI2PK": user_owner_key(doc.user_id),
            "GSI2SK": doc.created_at.isoformat(),
        }

    def list_all(self) -> list[Claim]:
        return self.list_collection(CLAIM_COLLECTION)

    def list_by_user(self, user_id: str) -> list[Claim]:
        return self.list_owned(user_owner_key(user_id))

    def has_claimed(self, cause_id: str, user_id: str) -> bool:
        return self.data_access.get(claim_marker_key(cause_id, user_id)) is not None

    def create_for_cause(self, claim: Claim, entry: WaitlistEntry | None = None,
                         token: str | None = None) -> Claim:
        """Writes the claim and marks the cause claimed in one transaction.

        When redeeming a magic link, the waitlist entry is moved to
        ``claimed`` and its token consumed in the same transaction.
        Raises TransactionCancelled if any precondition no longer holds.
        """
        now = utcnow().isoformat()
        actions = [
            {"Update": {
                "Key": cause_key(claim.cause_id),
                "UpdateExpression": "SET claimed_by = :user, updated_at = :now, #version = #version + :one",
                "ConditionExpression": "#status = :sponsored AND (attribute_not_exists(claimed_by) OR claimed_by = :user)",
                "ExpressionAttributeNames": {"#status": "status", "#version": "version"},
                "ExpressionAttributeValues": {":user": claim.user_id, ":now": now, ":one": 1, ":sponsored": "sponsored"},
            }},
            {"Put": {
                "Item": {**claim_marker_key(claim.cause_id, claim.user_id), "claim_id": claim.claim_id},
                "ConditionExpression": "attribute_not_exists(PK)",
            }},
            {"Put": {
                "Item": self.to_item(claim),
                "ConditionExpression": "attribute_not_exists(PK)",
            }},
        ]
        if entry is not None:
            actions.append({"Update": {
                "Key": waitlist_key(entry.entry_id),
                "UpdateExpression": (
                    "SET #status = :claimed, updated_at = :now, #version = #version + :one "
                    "REMOVE magic_link_token, magic_link_sent_at, magic_link_expires"
                ),
                "ConditionExpression": "#status = :notified AND magic_link_token = :token",
                "ExpressionAttributeNames": {"#status": "status", "#version": "version"},
                "ExpressionAttributeValues": {
                    ":claimed": "claimed", ":notified": "notified", ":token": token, ":now": now, ":one": 1,
                },
            }})
            actions.append({"Delete": {"Key": magic_link_key(token)}})

        self.data_access.transact_write(actions)
        logger.info(f"Claim {claim.claim_id} created for cause {claim.cause_id}")
        return claim
