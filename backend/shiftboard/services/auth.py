"""Authentication and sessions.

Two kinds of users:
  * store users - bcrypt hashes in ``users``, opaque server-side sessions,
    failed-login lockout;
  * config users - a small YAML list whose passwords come from the
    environment. They get a signed JWT instead of a session row and are not
    subject to lockout.
"""

import hmac
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from pathlib import Path

import bcrypt
import structlog
import yaml
from jose import jwt, JWTError

from shiftboard.api.health import LOGIN_ATTEMPTS
from shiftboard.config import settings
from shiftboard.services.store import Store, StoreError

logger = structlog.get_logger()

ALGORITHM = "HS256"
STAFF_ROLES = ("admin", "internal")


class AuthError(Exception):
    pass


class InvalidCredentials(AuthError):
    pass


class AccountLocked(AuthError):
    pass


def hash_password(password: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds or settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def generate_session_token() -> str:
    """Opaque 64-char session token."""
    return secrets.token_hex(32)


@dataclass
class LockoutPolicy:
    max_failures: int = 5
    lockout: timedelta = timedelta(minutes=15)

    @classmethod
    def from_settings(cls) -> "LockoutPolicy":
        return cls(settings.login_max_failures, timedelta(minutes=settings.login_lockout_minutes))

    def is_locked(self, user, now: datetime) -> bool:
        return bool(user.locked_until and user.locked_until > now)

    def lock_expiry(self, attempts: int, now: datetime) -> datetime | None:
        """Lock deadline once consecutive failures reach the threshold."""
        if attempts >= self.max_failures:
            return now + self.lockout
        return None


@dataclass
class AuthenticatedUser:
    id: str
    email: str
    name: str
    role: str
    client_slug: str | None = None
    source: str = "store"  # store, config

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_user(cls, user) -> "AuthenticatedUser":
        return cls(
            id=str(user.id),
            email=user.email,
            name=user.name,
            role=user.role,
            client_slug=user.client_slug,
            source="store",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "client_slug": self.client_slug,
            "source": self.source,
        }


@dataclass
class FallbackUser:
    email: str
    name: str
    role: str
    password_env: str
    client_slug: str | None = None

    def check_password(self, password: str) -> bool:
        expected = os.environ.get(self.password_env, "")
        if not expected:
            return False
        return hmac.compare_digest(expected.encode("utf-8"), password.encode("utf-8"))

    def to_user(self) -> AuthenticatedUser:
        return AuthenticatedUser(
            id=self.email,
            email=self.email,
            name=self.name,
            role=self.role,
            client_slug=self.client_slug,
            source="config",
        )


def parse_fallback_users(data: dict | None) -> dict[str, FallbackUser]:
    users = {}
    for entry in (data or {}).get("users") or []:
        email = str(entry.get("email", "")).strip().lower()
        if not email or not entry.get("password_env"):
            logger.warning("fallback_user_skipped_incomplete", email=email or None)
            continue
        users[email] = FallbackUser(
            email=email,
            name=entry.get("name") or email,
            role=entry.get("role", "client"),
            password_env=entry["password_env"],
            client_slug=entry.get("client_slug"),
        )
    return users


@lru_cache(maxsize=4)
def load_fallback_users(path: str) -> dict[str, FallbackUser]:
    """Load config users from YAML. A missing file means no config users."""
    file = Path(path)
    if not file.exists():
        logger.info("fallback_users_file_missing", path=path)
        return {}
    with open(file) as f:
        return parse_fallback_users(yaml.safe_load(f))


def create_config_token(user: AuthenticatedUser) -> str:
    expire = datetime.utcnow() + timedelta(hours=settings.config_token_ttl_hours)
    payload = {
        "sub": user.email,
        "name": user.name,
        "role": user.role,
        "client_slug": user.client_slug,
        "type": "config",
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_config_token(token: str) -> AuthenticatedUser | None:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "config" or not payload.get("sub"):
        return None
    return AuthenticatedUser(
        id=payload["sub"],
        email=payload["sub"],
        name=payload.get("name") or payload["sub"],
        role=payload.get("role", "client"),
        client_slug=payload.get("client_slug"),
        source="config",
    )


def is_config_token(token: str) -> bool:
    return token.count(".") == 2


class AuthService:
    def __init__(
        self,
        store: Store,
        policy: LockoutPolicy | None = None,
        fallback_users: dict[str, FallbackUser] | None = None,
    ):
        self.store = store
        self.policy = policy or LockoutPolicy.from_settings()
        if fallback_users is None:
            fallback_users = load_fallback_users(settings.fallback_users_file)
        self.fallback_users = fallback_users

    async def _log_event(self, event: str, email: str, ip: str | None, user_agent: str | None, success: bool, **details):
        logger.info("security_event", security_event=event, email=email, ip=ip, success=success, **details)
        try:
            await self.store.log_security_event(event, email, ip, user_agent, success, details or None)
        except StoreError as e:
            logger.warning("security_log_write_failed", security_event=event, error=str(e))

    async def login(
        self,
        email: str,
        password: str,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[str, AuthenticatedUser]:
        """Returns ``(token, user)``. Raises AccountLocked or InvalidCredentials."""
        email = email.strip().lower()
        now = datetime.utcnow()

        user = None
        store_down = not self.store.is_configured
        if not store_down:
            try:
                user = await self.store.get_user_by_email(email)
            except StoreError as e:
                logger.warning("auth_store_unavailable", error=str(e))
                store_down = True

        if user:
            if self.policy.is_locked(user, now):
                LOGIN_ATTEMPTS.labels(result="locked").inc()
                await self._log_event("login_locked", email, ip, user_agent, False)
                raise AccountLocked("Account temporarily locked. Try again later.")

            if not verify_password(password, user.password_hash):
                attempts = await self.store.increment_failed_logins(user.id)
                locked_until = self.policy.lock_expiry(attempts, now)
                if locked_until:
                    await self.store.lock_user(user.id, locked_until)
                LOGIN_ATTEMPTS.labels(result="failed").inc()
                await self._log_event("login_failed", email, ip, user_agent, False, attempts=attempts, locked=bool(locked_until))
                raise InvalidCredentials("Invalid email or password")

            await self.store.clear_failed_logins(user.id)
            token = generate_session_token()
            await self.store.create_session(
                user.id, token, ip, user_agent, now + timedelta(days=settings.session_ttl_days)
            )
            LOGIN_ATTEMPTS.labels(result="success").inc()
            await self._log_event("login_success", email, ip, user_agent, True)
            return token, AuthenticatedUser.from_user(user)

        # Config users only stand in while the database is out of reach
        fallback = self.fallback_users.get(email) if store_down else None
        if fallback and fallback.check_password(password):
            authed = fallback.to_user()
            LOGIN_ATTEMPTS.labels(result="success").inc()
            await self._log_event("login_success", email, ip, user_agent, True, source="config")
            return create_config_token(authed), authed

        LOGIN_ATTEMPTS.labels(result="failed").inc()
        await self._log_event("login_failed", email, ip, user_agent, False)
        raise InvalidCredentials("Invalid email or password")

    async def validate_session(self, token: str) -> AuthenticatedUser | None:
        if not token:
            return None
        if is_config_token(token):
            return decode_config_token(token)
        try:
            user = await self.store.get_session_user(token, datetime.utcnow())
        except StoreError as e:
            logger.warning("session_validation_unavailable", error=str(e))
            return None
        return AuthenticatedUser.from_user(user) if user else None

    async def logout(self, token: str) -> None:
        if not token or is_config_token(token):
            return
        await self.store.delete_session(token)

    async def logout_everywhere(self, user: AuthenticatedUser) -> None:
        if user.source != "store":
            return
        await self.store.delete_user_sessions(user.id)
