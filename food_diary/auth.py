"""
Authentication collaborator.

The API only talks to ``AuthClient``; the shipped ``LocalAuthClient`` keeps
accounts in the document store, hashes passwords with passlib and issues
signed JWT session tokens.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from jose import JWTError, jwt
from passlib.context import CryptContext

from food_diary.db import AccountRecord, DbClient
from food_diary.errors import AuthError, DuplicateRecordError, RecordNotFoundError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$", re.IGNORECASE)
MIN_PASSWORD_LENGTH = 6


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value or ""))


@dataclass
class AuthSession:
    token: str
    user: AccountRecord
    expires_at: datetime


class AuthClient(Protocol):
    """Operations the API needs from the auth provider."""

    def sign_up(self, email: str, password: str) -> AccountRecord:
        ...

    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    def sign_out(self, token: str) -> None:
        ...

    def current_user(self, token: str) -> AccountRecord:
        ...

    def update_user(
        self,
        user_id: str,
        *,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
        password: Optional[str] = None,
    ) -> AccountRecord:
        ...


class LocalAuthClient:
    """Email/password accounts stored next to the user records."""

    def __init__(
        self,
        db: DbClient,
        *,
        secret: str,
        algorithm: str = "HS256",
        expire_minutes: int = 120,
    ):
        self.db = db
        self.secret = secret
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes
        self.pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
        # jti -> exp of signed-out tokens; dropped once the token would have expired
        self.revoked: dict[str, float] = {}

    def _check_password(self, password: str) -> None:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(
                AuthError.WEAK_PASSWORD,
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            )

    def sign_up(self, email: str, password: str) -> AccountRecord:
        email = (email or "").strip()
        if not is_valid_email(email):
            raise AuthError(AuthError.INVALID_EMAIL, "Invalid email address")
        self._check_password(password)
        if self.db.get_account_by_email(email):
            raise AuthError(AuthError.EMAIL_ALREADY_IN_USE, "Email already in use")
        try:
            account = self.db.create_account(email, self.pwd_context.hash(password))
        except DuplicateRecordError:
            raise AuthError(AuthError.EMAIL_ALREADY_IN_USE, "Email already in use")
        logger.info("Created account %s", account.user_id)
        return account

    def sign_in(self, email: str, password: str) -> AuthSession:
        account = self.db.get_account_by_email(email or "")
        if not account or not self.pwd_context.verify(password or "", account.password_hash):
            raise AuthError(AuthError.INVALID_CREDENTIAL, "Invalid email or password")
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=self.expire_minutes)
        payload = {"sub": account.user_id, "jti": uuid.uuid4().hex, "exp": expires_at}
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        return AuthSession(token=token, user=account, expires_at=expires_at)

    def _decode(self, token: str) -> dict:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            raise AuthError(AuthError.REQUIRES_LOGIN, "Session is invalid or expired")
        if claims.get("jti") in self.revoked:
            raise AuthError(AuthError.REQUIRES_LOGIN, "Session has been signed out")
        return claims

    def _prune_revoked(self) -> None:
        now = time.time()
        for jti, expires in list(self.revoked.items()):
            if expires <= now:
                del self.revoked[jti]

    def sign_out(self, token: str) -> None:
        claims = self._decode(token)
        self._prune_revoked()
        self.revoked[claims["jti"]] = float(claims["exp"])

    def current_user(self, token: str) -> AccountRecord:
        claims = self._decode(token)
        account = self.db.get_account(claims.get("sub", ""))
        if not account:
            raise AuthError(AuthError.USER_NOT_FOUND, "Account no longer exists")
        return account

    def update_user(
        self,
        user_id: str,
        *,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
        password: Optional[str] = None,
    ) -> AccountRecord:
        password_hash = None
        if password:
            self._check_password(password)
            password_hash = self.pwd_context.hash(password)
        try:
            return self.db.update_account(
                user_id,
                display_name=display_name,
                photo_url=photo_url,
                password_hash=password_hash,
            )
        except RecordNotFoundError:
            raise AuthError(AuthError.USER_NOT_FOUND, "Account no longer exists")
