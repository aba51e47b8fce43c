import logging
from datetime import datetime

from core.errors import ConflictError
from data_access.dynamodb import DynamoDataAccess, TransactionCancelled, to_item
from models.base import utcnow
from models.user import User

logger = logging.getLogger(__name__)

USER_PREFIX = "USER#"
EMAIL_PREFIX = "EMAIL#"
PROFILE_SK = "PROFILE"
EMAIL_SK = "EMAIL"


def user_key(user_id: str) -> dict:
    return {"PK": f"{USER_PREFIX}{user_id}", "SK": PROFILE_SK}


def email_key(email: str) -> dict:
    return {"PK": f"{EMAIL_PREFIX}{email.lower()}", "SK": EMAIL_SK}


class UserRepository:
    """Users are written with targeted updates, never whole-item replaces."""

    def __init__(self, data_access: DynamoDataAccess):
        self.data_access = data_access

    def create(self, user: User) -> User:
        user.email = user.email.lower()
        try:
            self.data_access.transact_write([
                {"Put": {
                    "Item": {**to_item(user), **user_key(user.user_id)},
                    "ConditionExpression": "attribute_not_exists(PK)",
                }},
                # Uniqueness marker for the email address
                {"Put": {
                    "Item": {**email_key(user.email), "user_id": user.user_id},
                    "ConditionExpression": "attribute_not_exists(PK)",
                }},
            ])
        except TransactionCancelled:
            raise ConflictError(f"User {user.email} already exists")
        logger.info(f"Created user {user.user_id}")
        return user

    def get(self, user_id: str) -> User | None:
        item = self.data_access.get(user_key(user_id))
        return User.model_validate(item) if item else None

    def get_by_email(self, email: str) -> User | None:
        marker = self.data_access.get(email_key(email))
        if not marker:
            return None
        return self.get(marker["user_id"])

    def _update(self, user_id: str, set_: dict | None = None, remove: list[str] | None = None,
                condition: str | None = None, values: dict | None = None) -> User | None:
        """Targeted update of a user that must already exist.

        ``set_`` maps attribute name to value; ``condition`` may reference
        extra placeholders passed in ``values``.
        """
        set_ = {**(set_ or {}), "updated_at": utcnow().isoformat()}
        names = {f"#{name}": name for name in set_}
        expression_values = dict(values or {})
        assignments = []
        for name, value in set_.items():
            expression_values[f":{name}"] = value
            assignments.append(f"#{name} = :{name}")

        expression = "SET " + ", ".join(assignments)
        if remove:
            expression += " REMOVE " + ", ".join(remove)

        full_condition = "attribute_exists(PK)"
        if condition:
            full_condition += f" AND {condition}"

        attributes = self.data_access.update(
            user_key(user_id),
            expression,
            names=names,
            values=expression_values,
            condition=full_condition,
        )
        return User.model_validate(attributes) if attributes else None

    def update_profile(self, user_id: str, name: str, role: str) -> User | None:
        return self._update(user_id, set_={"name": name, "role": role})

    def set_otp(self, user_id: str, code: str, expires_at: datetime) -> User | None:
        return self._update(user_id, set_={"otp_code": code, "otp_expires_at": expires_at.isoformat()})

    def clear_otp(self, user_id: str, code: str) -> bool:
        """Removes the OTP only if it is still ``code``."""
        return self._update(
            user_id,
            remove=["otp_code", "otp_expires_at"],
            condition="otp_code = :expected_code",
            values={":expected_code": code},
        ) is not None

    def consume_otp(self, user_id: str, code: str) -> User | None:
        """Atomically removes a matching OTP; None means another request used it first."""
        return self._update(
            user_id,
            set_={"email_verified": True},
            remove=["otp_code", "otp_expires_at"],
            condition="otp_code = :expected_code",
            values={":expected_code": code},
        )

    def set_refresh_token(self, user_id: str, token: str, expected: str | None = None) -> User | None:
        """Stores a new refresh token; with ``expected`` only if it replaces that exact value."""
        if expected is None:
            return self._update(user_id, set_={"refresh_token": token})
        return self._update(
            user_id,
            set_={"refresh_token": token},
            condition="refresh_token = :expected_token",
            values={":expected_token": expected},
        )

    def clear_refresh_token(self, user_id: str, token: str) -> bool:
        return self._update(
            user_id,
            remove=["refresh_token"],
            condition="refresh_token = :expected_token",
            values={":expected_token": token},
        ) is not None
