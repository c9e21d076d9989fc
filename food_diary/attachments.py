"""
Upload-then-reference and replace-then-delete-old sequencing for image
attachments on food entries and user profiles.

Every save flow uploads the new object first. Only after the upload succeeded
does the caller write the returned URL into its record and then call
``discard_image`` on the previous reference.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from food_diary.errors import ImageUploadError, StorageError
from food_diary.images import make_object_name, storage_path_for
from food_diary.storage import DEFAULT_CACHE_CONTROL, StorageClient

logger = logging.getLogger(__name__)


@dataclass
class ImageUpload:
    """An image file attached to a form submission, already validated."""

    filename: str
    content_type: Optional[str]
    data: bytes


def upload_image(storage: StorageClient, upload: ImageUpload) -> str:
    """
    Store ``upload`` under a fresh object name and return its public URL.

    Raises:
        ImageUploadError: the storage call failed; nothing was written.
    """
    object_name = make_object_name(upload.filename)
    try:
        storage.upload(
            object_name,
            upload.data,
            content_type=upload.content_type,
            cache_control=DEFAULT_CACHE_CONTROL,
            upsert=True,
        )
    except StorageError as exc:
        raise ImageUploadError(f"Image upload failed: {exc}") from exc
    url = storage.public_url(object_name)
    logger.info("Uploaded %s to bucket %s", object_name, storage.bucket)
    return url


def discard_image(storage: StorageClient, ref: Optional[str]) -> bool:
    """
    Best-effort removal of a previously stored image.

    Failures are logged and swallowed; returns True when an object was removed.
    """
    if not ref:
        return False
    path = storage_path_for(ref, storage.bucket)
    if not path:
        logger.warning("Could not recover storage path from %s; leaving it", ref)
        return False
    try:
        storage.remove([path])
    except StorageError as exc:
        logger.warning("Failed to remove %s from %s: %s", path, storage.bucket, exc)
        return False
    return True
