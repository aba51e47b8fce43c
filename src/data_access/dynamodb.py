import json
import logging
from decimal import Decimal
from typing import Any, Callable, Generic, TypeVar

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from pydantic import BaseModel
from tenacity import retry, stop_after_attempt, wait_random, retry_if_exception_type

from core.errors import ConflictError, NotFoundError, StaleWriteError
from models.base import Document

logger = logging.getLogger(__name__)

COLLECTION_INDEX = "CollectionIndex"
OWNER_INDEX = "OwnerIndex"

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
TRANSACTION_CANCELED = "TransactionCanceledException"

# Losing an optimistic-lock race re-reads and re-applies the change.
retry_on_stale_write = retry(
    retry=retry_if_exception_type(StaleWriteError),
    stop=stop_after_attempt(5),
    wait=wait_random(min=0.01, max=0.1),
    reraise=True,
)


class TransactionCancelled(StaleWriteError):
    def __init__(self, reasons: list[str] | None = None):
        super().__init__()
        self.reasons = reasons or []


def to_item(model: BaseModel) -> dict:
    """Model -> DynamoDB item (floats become Decimal, None is dropped)."""
    return json.loads(model.model_dump_json(exclude_none=True), parse_float=Decimal)


def create_table(dynamodb_resource, table_name: str):
    """Creates the single table with its two overloaded indexes."""
    return dynamodb_resource.create_table(
        TableName=table_name,
        BillingMode="PAY_PER_REQUEST",
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": name, "AttributeType": "S"}
            for name in ("PK", "SK", "GSI1PK", "GSI1SK", "GSI2PK", "GSI2SK")
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": COLLECTION_INDEX,
                "KeySchema": [
                    {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                    {"AttributeName": "GSI1SK", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
            {
                "IndexName": OWNER_INDEX,
                "KeySchema": [
                    {"AttributeName": "GSI2PK", "KeyType": "HASH"},
                    {"AttributeName": "GSI2SK", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
    )


class DynamoDataAccess:
    def __init__(self, table):
        self.table = table
        self.client = table.meta.client

    def get(self, key: dict) -> dict | None:
        response = self.table.get_item(Key=key)
        return response.get("Item")

    def put_new(self, item: dict) -> dict:
        try:
            self.table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(PK)"
            )
            return item
        except ClientError as e:
            if e.response['Error']['Code'] == CONDITIONAL_CHECK_FAILED:
                raise ConflictError(f"Item {item['PK']} already exists")
            raise

    def put_versioned(self, item: dict, expected_version: int) -> dict:
        """Replaces the item only if nobody wrote it since we read ``expected_version``."""
        item = {**item, "version": expected_version + 1}
        try:
            self.table.put_item(
                Item=item,
                ConditionExpression="#version = :expected",
                ExpressionAttributeNames={"#version": "version"},
                ExpressionAttributeValues={":expected": expected_version},
            )
            return item
        except ClientError as e:
            if e.response['Error']['Code'] == CONDITIONAL_CHECK_FAILED:
                logger.info(f"Stale write on {item['PK']} at version {expected_version}")
                raise StaleWriteError()
            raise

    def update(self, key: dict, update_expression: str, names: dict | None = None,
               values: dict | None = None, condition: str | None = None) -> dict | None:
        """Targeted update. Returns the new attributes, or None when the condition failed."""
        kwargs: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": update_expression,
            "ReturnValues": "ALL_NEW",
        }
        if names:
            kwargs["ExpressionAttributeNames"] = names
        if values:
            kwargs["ExpressionAttributeValues"] = values
        if condition:
            kwargs["ConditionExpression"] = condition
        try:
            response = self.table.update_item(**kwargs)
            return response.get("Attributes", {})
        except ClientError as e:
            if e.response['Error']['Code'] == CONDITIONAL_CHECK_FAILED:
                return None
            raise

    def delete(self, key: dict) -> None:
        self.table.delete_item(Key=key)

    def query_index(self, index_name: str, partition_value: str, newest_first: bool = True,
                    filter_expression=None) -> list[dict]:
        pk_name = "GSI1PK" if index_name == COLLECTION_INDEX else "GSI2PK"
        kwargs: dict[str, Any] = {
            "IndexName": index_name,
            "KeyConditionExpression": Key(pk_name).eq(partition_value),
            "ScanIndexForward": not newest_first,
        }
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        return self._paginate(kwargs)

    def _paginate(self, kwargs: dict) -> list[dict]:
        items = []
        while True:
            response = self.table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def transact_write(self, actions: list[dict]) -> None:
        """Runs Put/Update/Delete actions atomically.

        The resource client converts plain Python values itself, so actions
        carry the same shapes as ``put_item`` and ``update_item``.
        """
        transact_items = [
            {kind: dict(body, TableName=self.table.name)}
            for action in actions
            for kind, body in action.items()
        ]

        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if e.response['Error']['Code'] == TRANSACTION_CANCELED:
                reasons = [r.get("Code", "None") for r in e.response.get("CancellationReasons", [])]
                logger.info(f"Transaction cancelled: {reasons}")
                raise TransactionCancelled(reasons)
            raise


DocT = TypeVar("DocT", bound=Document)


class VersionedRepository(Generic[DocT]):
    """Whole-document storage with optimistic locking on ``version``."""

    model: type[DocT]
    not_found_message = "Not found"

    def __init__(self, data_access: DynamoDataAccess):
        self.data_access = data_access

    def key(self, doc_id: str) -> dict:
        raise NotImplementedError

    def index_keys(self, doc: DocT) -> dict:
        return {}

    def doc_id(self, doc: DocT) -> str:
        raise NotImplementedError

    def to_item(self, doc: DocT) -> dict:
        return {**to_item(doc), **self.key(self.doc_id(doc)), **self.index_keys(doc)}

    def from_item(self, item: dict) -> DocT:
        return self.model.model_validate(item)

    def get(self, doc_id: str) -> DocT | None:
        item = self.data_access.get(self.key(doc_id))
        return self.from_item(item) if item else None

    def require(self, doc_id: str) -> DocT:
        doc = self.get(doc_id)
        if doc is None:
            raise NotFoundError(self.not_found_message)
        return doc

    def create(self, doc: DocT) -> DocT:
        self.data_access.put_new(self.to_item(doc))
        return doc

    def save(self, doc: DocT) -> DocT:
        self.data_access.put_versioned(self.to_item(doc), doc.version)
        doc.version += 1
        return doc

    @retry_on_stale_write
    def mutate(self, doc_id: str, mutator: Callable[[DocT], Any]) -> DocT:
        """Read, apply ``mutator`` in memory, write back conditionally; retried on races."""
        doc = self.require(doc_id)
        mutator(doc)
        return self.save(doc)

    def delete(self, doc_id: str) -> None:
        self.data_access.delete(self.key(doc_id))

    def list_collection(self, collection: str, newest_first: bool = True,
                        filter_expression=None) -> list[DocT]:
        items = self.data_access.query_index(COLLECTION_INDEX, collection, newest_first, filter_expression)
        return [self.from_item(item) for item in items]

    def list_owned(self, owner_key: str, newest_first: bool = True,
                   filter_expression=None) -> list[DocT]:
        items = self.data_access.query_index(OWNER_INDEX, owner_key, newest_first, filter_expression)
        return [self.from_item(item) for item in items]
