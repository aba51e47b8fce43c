from boto3.dynamodb.conditions import Attr

from data_access.dynamodb import VersionedRepository
from models.cause import Cause

CAUSE_PREFIX = "CAUSE#"
CAUSE_SK = "CAUSE"
CAUSE_COLLECTION = "CAUSE"


def cause_key(cause_id: str) -> dict:
    return {"PK": f"{CAUSE_PREFIX}{cause_id}", "SK": CAUSE_SK}


def creator_owner_key(user_id: str) -> str:
    return f"USER#{user_id}#CAUSE"


class CauseRepository(VersionedRepository[Cause]):
    """Cause documents, with their embedded sponsor list as the aggregate."""

    model = Cause
    not_found_message = "Cause not found"

    def key(self, doc_id: str) -> dict:
        return cause_key(doc_id)

    def doc_id(self, doc: Cause) -> str:
        return doc.cause_id

    def index_keys(self, doc: Cause) -> dict:
        keys = {"GSI1PK": CAUSE_COLLECTION, "GSI1SK": doc.created_at.isoformat()}
        if doc.created_by:
            keys["GSI2PK"] = creator_owner_key(doc.created_by)
            keys["GSI2SK"] = doc.created_at.isoformat()
        return keys

    def list_all(self) -> list[Cause]:
        return self.list_collection(CAUSE_COLLECTION)

    def list_online(self) -> list[Cause]:
        return self.list_collection(CAUSE_COLLECTION, filter_expression=Attr("is_online").eq(True))

    def list_by_status(self, status: str) -> list[Cause]:
        return self.list_collection(CAUSE_COLLECTION, filter_expression=Attr("status").eq(status))

    def list_by_creator(self, user_id: str) -> list[Cause]:
        return self.list_owned(creator_owner_key(user_id))

    def list_by_sponsor_user(self, user_id: str) -> list[Cause]:
        return [
            cause for cause in self.list_all()
            if any(s.user_id == user_id for s in cause.sponsors)
        ]

    def list_with_pending_sponsors(self) -> list[Cause]:
        return [
            cause for cause in self.list_all()
            if any(s.status == "pending" for s in cause.sponsors)
        ]
