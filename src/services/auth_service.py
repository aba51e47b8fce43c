import logging
from datetime import datetime, timedelta
from typing import Callable

from botocore.exceptions import BotoCoreError, ClientError

from core.errors import AuthError, ConflictError, NotFoundError, UpstreamError, ValidationError
from core.security import ACCESS, REFRESH, TokenIssuer, generate_otp, verify_password_hash
from data_access.users import UserRepository
from models.base import utcnow
from models.user import SELF_ASSIGNABLE_ROLES, AuthSession, PublicUser, User
from services.notification_service import NotificationService

logger = logging.getLogger(__name__)

INVALID_CODE = "Invalid or expired verification code"


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        notifications: NotificationService,
        tokens: TokenIssuer,
        otp_ttl: timedelta = timedelta(minutes=10),
        admin_email: str | None = None,
        admin_password_hash: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.users = users
        self.notifications = notifications
        self.tokens = tokens
        self.otp_ttl = otp_ttl
        self.admin_email = admin_email
        self.admin_password_hash = admin_password_hash
        self.clock = clock

    def register(self, email: str, name: str, role: str = "visitor", phone: str | None = None) -> User:
        if role not in SELF_ASSIGNABLE_ROLES:
            raise ValidationError(f"Role '{role}' cannot be requested at registration")

        user = self.users.get_by_email(email)
        if user and user.email_verified:
            raise ConflictError("User already exists")

        if user is None:
            user = self.users.create(User(email=email, name=name, role=role, phone=phone))
        else:
            user = self.users.update_profile(user.user_id, name, role) or user

        self._send_otp(user)
        return user

    def request_otp(self, email: str) -> User:
        user = self.users.get_by_email(email)
        if user is None:
            try:
                user = self.users.create(User(email=email, name=email.split("@")[0]))
            except ConflictError:
                # Created by a concurrent request
                user = self.users.get_by_email(email)
        self._send_otp(user)
        return user

    def _send_otp(self, user: User) -> None:
        code = generate_otp()
        self.users.set_otp(user.user_id, code, self.clock() + self.otp_ttl)
        try:
            self.notifications.send_otp(user.email, code, int(self.otp_ttl.total_seconds() // 60))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to send OTP to {user.email}, rolling back code: {e}")
            self.users.clear_otp(user.user_id, code)
            raise UpstreamError("Failed to send verification code")
        logger.info(f"OTP issued for user {user.user_id}")

    def verify_otp(self, email: str, code: str) -> User:
        """Checks and consumes the code. A code can be used once."""
        user = self.users.get_by_email(email)
        if user is None or not user.otp_matches(code, self.clock()):
            raise AuthError(INVALID_CODE)

        verified = self.users.consume_otp(user.user_id, str(code))
        if verified is None:
            raise AuthError(INVALID_CODE)
        return verified

    def login(self, email: str, code: str, name: str | None = None, role: str | None = None) -> AuthSession:
        """OTP login. ``name``/``role`` complete a pending registration."""
        if role is not None and role not in SELF_ASSIGNABLE_ROLES:
            raise ValidationError(f"Role '{role}' cannot be self-assigned")

        user = self.verify_otp(email, code)
        if (name or role) and user.role != "admin":
            user = self.users.update_profile(user.user_id, name or user.name, role or user.role) or user

        logger.info(f"User {user.user_id} logged in")
        return self._issue(user)

    def admin_login(self, email: str, password: str) -> AuthSession:
        """Credential login for the configured administrator. Every attempt is audited."""
        audit = {"event": "admin_login", "email": email}
        if (
            not self.admin_email
            or email.lower() != self.admin_email.lower()
            or not verify_password_hash(password, self.admin_password_hash)
        ):
            logger.warning("Admin login rejected", extra={"audit": {**audit, "success": False}})
            raise AuthError("Invalid admin credentials")

        user = self.users.get_by_email(email)
        if user is None:
            user = self.users.create(User(email=email, name="Administrator", role="admin", email_verified=True))
        elif user.role != "admin":
            user = self.users.update_profile(user.user_id, user.name, "admin") or user

        logger.info("Admin login accepted", extra={"audit": {**audit, "success": True, "user_id": user.user_id}})
        return self._issue(user)

    def _issue(self, user: User) -> AuthSession:
        access_token, refresh_token = self.tokens.issue_pair(user.user_id)
        self.users.set_refresh_token(user.user_id, refresh_token)
        return AuthSession(user=PublicUser.from_user(user), access_token=access_token, refresh_token=refresh_token)

    def refresh(self, refresh_token: str) -> AuthSession:
        claims = self.tokens.decode(refresh_token, REFRESH)
        user = self.users.get(claims["sub"])
        if user is None or user.refresh_token != refresh_token:
            raise AuthError("Invalid refresh token")

        access_token, new_refresh = self.tokens.issue_pair(user.user_id)
        # Rotation only succeeds against the token we just checked
        if self.users.set_refresh_token(user.user_id, new_refresh, expected=refresh_token) is None:
            raise AuthError("Invalid refresh token")
        return AuthSession(user=PublicUser.from_user(user), access_token=access_token, refresh_token=new_refresh)

    def logout(self, refresh_token: str) -> None:
        try:
            claims = self.tokens.decode(refresh_token, REFRESH, verify_exp=False)
        except AuthError:
            logger.info("Logout with an unreadable refresh token, nothing to clear")
            return
        if self.users.clear_refresh_token(claims["sub"], refresh_token):
            logger.info(f"User {claims['sub']} logged out")

    def authenticate(self, access_token: str) -> User:
        """Resolves an access token to the user as currently stored."""
        claims = self.tokens.decode(access_token, ACCESS)
        user = self.users.get(claims["sub"])
        if user is None:
            raise AuthError("User not found")
        return user

    def me(self, user_id: str) -> PublicUser:
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return PublicUser.from_user(user)
