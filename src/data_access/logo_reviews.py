from boto3.dynamodb.conditions import Attr

from data_access.dynamodb import VersionedRepository
from models.logo_review import LogoReview

LOGO_REVIEW_PREFIX = "LOGOREVIEW#"
REVIEW_SK = "REVIEW"
LOGO_REVIEW_COLLECTION = "LOGOREVIEW"


def logo_review_key(review_id: str) -> dict:
    return {"PK": f"{LOGO_REVIEW_PREFIX}{review_id}", "SK": REVIEW_SK}


class LogoReviewRepository(VersionedRepository[LogoReview]):
    model = LogoReview
    not_found_message = "Logo review not found"

    def key(self, doc_id: str) -> dict:
        return logo_review_key(doc_id)

    def doc_id(self, doc: LogoReview) -> str:
        return doc.review_id

    def index_keys(self, doc: LogoReview) -> dict:
        return {
            "GSI1PK": LOGO_REVIEW_COLLECTION,
            "GSI1SK": doc.created_at.isoformat(),
        }

    def list_all(self, status: str | None = None) -> list[LogoReview]:
        filter_expression = Attr("status").eq(status) if status else None
        return self.list_collection(LOGO_REVIEW_COLLECTION, filter_expression=filter_expression)
