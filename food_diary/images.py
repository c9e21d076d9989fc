"""
Image reference helpers: classification, resolution, object naming and
upload validation.

A stored image reference is either an absolute URL, used as-is, or a bare
object path that must be resolved through the storage client before display.
"""

from __future__ import annotations

import io
import random
import re
import string
import time
from typing import Optional
from urllib.parse import unquote, urlparse

from PIL import Image, UnidentifiedImageError

from food_diary.errors import ValidationError
from food_diary.storage import StorageClient

EXTERNAL_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
ALLOWED_CONTENT_TYPES = {"image/png": "PNG", "image/jpeg": "JPEG"}
DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024

_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase


def is_external_url(ref: Optional[str]) -> bool:
    return bool(ref) and bool(EXTERNAL_URL_PATTERN.match(ref))


def resolve_image_ref(ref: Optional[str], storage: StorageClient) -> Optional[str]:
    """Return a displayable URL for ``ref``, or None when there is no image."""
    if not ref:
        return None
    if is_external_url(ref):
        return ref
    return storage.public_url(ref)


def url_to_storage_path(url: Optional[str], bucket: str) -> Optional[str]:
    """
    Recover the object path from a public URL of ``bucket``.

    Returns None when the URL cannot be parsed or does not point into the bucket.
    """
    if not url:
        return None
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    marker = f"/object/public/{bucket}/"
    idx = parsed.path.find(marker)
    if idx == -1:
        return None
    path = unquote(parsed.path[idx + len(marker):])
    return path or None


def storage_path_for(ref: Optional[str], bucket: str) -> Optional[str]:
    if not ref:
        return None
    if is_external_url(ref):
        return url_to_storage_path(ref, bucket)
    return ref


def make_object_name(filename: str, now: Optional[float] = None) -> str:
    """Unique object name: ``<epoch ms>_<6 random chars>_<sanitized name>``."""
    millis = int((time.time() if now is None else now) * 1000)
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=6))
    safe_name = re.sub(r"\s+", "_", filename or "image")
    return f"{millis}_{suffix}_{safe_name}"


def validate_image(
    filename: str,
    content_type: Optional[str],
    data: bytes,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
) -> None:
    """Reject anything that is not a PNG/JPEG of at most ``max_bytes``."""
    if len(data) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise ValidationError({"image": f"File must be {limit_mb} MB or smaller"})
    expected_format = ALLOWED_CONTENT_TYPES.get((content_type or "").lower())
    if expected_format is None:
        raise ValidationError({"image": "Only PNG and JPG files are supported"})
    try:
        with Image.open(io.BytesIO(data)) as img:
            actual_format = img.format
            img.verify()
    except Image.DecompressionBombError:
        raise ValidationError({"image": "Image dimensions are too large"})
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError({"image": f"{filename or 'File'} is not a readable image"})
    if actual_format not in ALLOWED_CONTENT_TYPES.values():
        raise ValidationError({"image": "Only PNG and JPG files are supported"})
