import logging

from boto3.dynamodb.conditions import Attr

from data_access.causes import cause_key
from data_access.dynamodb import VersionedRepository
from models.waitlist import WaitlistEntry

logger = logging.getLogger(__name__)

WAITLIST_PREFIX = "WAITLIST#"
ENTRY_SK = "ENTRY"
WAITLIST_COLLECTION = "WAITLIST"
WAITLIST_USER_PREFIX = "WAITLIST_USER#"
MAGIC_LINK_PREFIX = "MAGICLINK#"
TOKEN_SK = "TOKEN"


def waitlist_key(entry_id: str) -> dict:
    return {"PK": f"{WAITLIST_PREFIX}{entry_id}", "SK": ENTRY_SK}


def waitlist_marker_key(cause_id: str, user_id: str) -> dict:
    return {"PK": f"CAUSE#{cause_id}", "SK": f"{WAITLIST_USER_PREFIX}{user_id}"}


def magic_link_key(token: str) -> dict:
    return {"PK": f"{MAGIC_LINK_PREFIX}{token}", "SK": TOKEN_SK}


def cause_owner_key(cause_id: str) -> str:
    return f"CAUSE#{cause_id}#WAITLIST"


class WaitlistRepository(VersionedRepository[WaitlistEntry]):
    model = WaitlistEntry
    not_found_message = "Waitlist entry not found"

    def key(self, doc_id: str) -> dict:
        return waitlist_key(doc_id)

    def doc_id(self, doc: WaitlistEntry) -> str:
        return doc.entry_id

    def index_keys(self, doc: WaitlistEntry) -> dict:
        return {
            "GSI1PK": WAITLIST_COLLECTION,
            "GSI1SK": doc.created_at.isoformat(),
            "GSI2PK": cause_owner_key(doc.cause_id),
            "GSI2SK": f"{doc.position:08d}",
        }

    def list_all(self) -> list[WaitlistEntry]:
        entries = self.list_collection(WAITLIST_COLLECTION, newest_first=False)
        return sorted(entries, key=lambda e: (e.position, e.created_at))

    def list_by_cause(self, cause_id: str) -> list[WaitlistEntry]:
        return self.list_owned(cause_owner_key(cause_id), newest_first=False)

    def list_by_user(self, user_id: str) -> list[WaitlistEntry]:
        return self.list_collection(WAITLIST_COLLECTION, filter_expression=Attr("user_id").eq(user_id))

    def has_joined(self, cause_id: str, user_id: str) -> bool:
        return self.data_access.get(waitlist_marker_key(cause_id, user_id)) is not None

    def get_by_token(self, token: str) -> WaitlistEntry | None:
        link = self.data_access.get(magic_link_key(token))
        if not link:
            return None
        return self.get(link["entry_id"])

    def join(self, entry: WaitlistEntry, current_seq: int) -> WaitlistEntry:
        """Appends ``entry`` at ``current_seq + 1``.

        The cause's sequence counter, the one-entry-per-user marker and the
        entry are written together; the counter write is conditional on the
        value we read, so two joins can never share a position.
        """
        entry.position = current_seq + 1
        self.data_access.transact_write([
            {"Update": {
                "Key": cause_key(entry.cause_id),
                "UpdateExpression": "SET waitlist_seq = :next, #version = #version + :one",
                "ConditionExpression": "#status = :waitlist AND waitlist_seq = :current",
                "ExpressionAttributeNames": {"#status": "status", "#version": "version"},
                "ExpressionAttributeValues": {
                    ":next": entry.position, ":current": current_seq, ":one": 1, ":waitlist": "waitlist",
                },
            }},
            {"Put": {
                "Item": {**waitlist_marker_key(entry.cause_id, entry.user_id), "entry_id": entry.entry_id},
                "ConditionExpression": "attribute_not_exists(PK)",
            }},
            {"Put": {
                "Item": self.to_item(entry),
                "ConditionExpression": "attribute_not_exists(PK)",
            }},
        ])
        logger.info(f"Waitlist entry {entry.entry_id} joined cause {entry.cause_id} at position {entry.position}")
        return entry

    def save_with_link(self, entry: WaitlistEntry, previous_token: str | None = None) -> WaitlistEntry:
        """Saves a (re)promoted entry together with its token lookup item."""
        item = {**self.to_item(entry), "version": entry.version + 1}
        actions = [
            {"Put": {
                "Item": item,
                "ConditionExpression": "#version = :expected",
                "ExpressionAttributeNames": {"#version": "version"},
                "ExpressionAttributeValues": {":expected": entry.version},
            }},
            {"Put": {
                "Item": {
                    **magic_link_key(entry.magic_link_token),
                    "entry_id": entry.entry_id,
                    "cause_id": entry.cause_id,
                },
            }},
        ]
        if previous_token and previous_token != entry.magic_link_token:
            actions.append({"Delete": {"Key": magic_link_key(previous_token)}})
        self.data_access.transact_write(actions)
        entry.version += 1
        return entry

    def save_without_link(self, entry: WaitlistEntry, previous_token: str | None) -> WaitlistEntry:
        """Saves an entry whose magic link was cleared, dropping the token lookup."""
        item = {**self.to_item(entry), "version": entry.version + 1}
        actions = [
            {"Put": {
                "Item": item,
                "ConditionExpression": "#version = :expected",
                "ExpressionAttributeNames": {"#version": "version"},
                "ExpressionAttributeValues": {":expected": entry.version},
            }},
        ]
        if previous_token:
            actions.append({"Delete": {"Key": magic_link_key(previous_token)}})
        self.data_access.transact_write(actions)
        entry.version += 1
        return entry
