import secrets
import uuid
import bcrypt
from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError

from core.errors import AuthError

ACCESS = "access"
REFRESH = "refresh"


def generate_otp() -> str:
    """Six-digit numeric code, zero-padded."""
    return f"{secrets.randbelow(1_000_000):06d}"


def generate_magic_link_token() -> str:
    return secrets.token_urlsafe(32)


class TokenIssuer:
    """Signs and verifies the access/refresh credential pair.

    The payload carries identity only (``sub`` = user id). Roles are always
    re-read from storage by the authorisation layer.
    """

    def __init__(self, secret: str, algorithm: str = "HS256",
                 access_ttl: timedelta = timedelta(minutes=15),
                 refresh_ttl: timedelta = timedelta(days=7)):
        self.secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def _encode(self, user_id: str, token_type: str, ttl: timedelta) -> str:
        iat = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "type": token_type,
            "iat": int(iat.timestamp()),
            "exp": int((iat + ttl).timestamp()),
            # Two tokens minted in the same second must still differ
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def issue_pair(self, user_id: str) -> tuple[str, str]:
        return (
            self._encode(user_id, ACCESS, self.access_ttl),
            self._encode(user_id, REFRESH, self.refresh_ttl),
        )

    def decode(self, token: str, token_type: str, verify_exp: bool = True) -> dict:
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"verify_exp": verify_exp},
            )
        except JWTError as e:
            raise AuthError(f"Invalid or expired token: {e}")

        if claims.get("type") != token_type or not claims.get("sub"):
            raise AuthError("Invalid token type")
        return claims


def verify_password_hash(plain: str, password_hash: str | None) -> bool:
    """bcrypt check; no configured hash fails closed."""
    if not password_hash or not plain:
        return False
    try:
        return bcrypt.checkpw(plain.encode(), password_hash.encode())
    except ValueError:
        return False
