"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from food_diary.auth import AuthClient, LocalAuthClient
from food_diary.config import get_settings
from food_diary.db import AccountRecord, DbClient, InMemoryDbClient, SqlDbClient
from food_diary.errors import AuthError
from food_diary.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_db_client: DbClient | None = None
_auth_client: AuthClient | None = None
_storage_clients: dict[str, StorageClient] = {}

bearer_scheme = HTTPBearer(auto_error=False)


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so records persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def _get_storage_client(bucket: str) -> StorageClient:
    if bucket in _storage_clients:
        return _storage_clients[bucket]

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_endpoint:
        client = InMemoryStorageClient(bucket=bucket)
    else:
        client = S3StorageClient(
            bucket=bucket,
            endpoint=settings.storage_endpoint,
            region=settings.storage_region or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.storage_public_base_url or settings.storage_endpoint,
        )
    _storage_clients[bucket] = client
    return client


def get_user_storage() -> StorageClient:
    return _get_storage_client(get_settings().user_image_bucket)


def get_food_storage() -> StorageClient:
    return _get_storage_client(get_settings().food_image_bucket)


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    _auth_client = LocalAuthClient(
        get_db_client(),
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expire_minutes=settings.jwt_expire_minutes,
    )
    return _auth_client


def get_session_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Login required")
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_session_token),
    auth: AuthClient = Depends(get_auth_client),
) -> AccountRecord:
    try:
        return auth.current_user(token)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=exc.message)
