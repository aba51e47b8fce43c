import logging

from data_access.dynamodb import VersionedRepository
from models.base import utcnow
from models.order import Order

logger = logging.getLogger(__name__)

ORDER_PREFIX = "ORDER#"
ORDER_SK = "ORDER"
ORDER_COLLECTION = "ORDER"


def order_key(order_id: str) -> dict:
    return {"PK": f"{ORDER_PREFIX}{order_id}", "SK": ORDER_SK}


class OrderRepository(VersionedRepository[Order]):
    """Orders change only through conditional status updates; once paid only
    the sponsor linkage may still be written."""

    model = Order
    not_found_message = "Order not found"

    def key(self, doc_id: str) -> dict:
        return order_key(doc_id)

    def doc_id(self, doc: Order) -> str:
        return doc.order_id

    def index_keys(self, doc: Order) -> dict:
        return {"GSI1PK": ORDER_COLLECTION, "GSI1SK": doc.created_at.isoformat()}

    def _set_status(self, order_id: str, status: str, payment_id: str | None,
                    condition: str, values: dict) -> Order | None:
        attributes = self.data_access.update(
            order_key(order_id),
            "SET #status = :status, payment_id = :payment_id, updated_at = :now",
            names={"#status": "status"},
            values={
                ":status": status,
                ":payment_id": payment_id,
                ":now": utcnow().isoformat(),
                **values,
            },
            condition=f"attribute_exists(PK) AND {condition}",
        )
        return self.from_item(attributes) if attributes else None

    def mark_paid(self, order_id: str, payment_id: str) -> Order | None:
        """Returns the paid order, or None when it was already paid (duplicate event)."""
        return self._set_status(order_id, "paid", payment_id, "#status <> :paid", {":paid": "paid"})

    def mark_failed(self, order_id: str, payment_id: str | None) -> Order | None:
        return self._set_status(order_id, "failed", payment_id, "#status = :created", {":created": "created"})

    def link_sponsor(self, order_id: str, sponsor_id: str) -> str:
        """Links the sponsor created for this order. First writer wins; the
        winning sponsor id is returned either way."""
        attributes = self.data_access.update(
            order_key(order_id),
            "SET sponsor_id = :sponsor_id, updated_at = :now",
            values={":sponsor_id": sponsor_id, ":now": utcnow().isoformat()},
            condition="attribute_exists(PK) AND attribute_not_exists(sponsor_id)",
        )
        if attributes:
            return sponsor_id
        existing = self.require(order_id)
        logger.info(f"Order {order_id} already linked to sponsor {existing.sponsor_id}")
        return existing.sponsor_id
