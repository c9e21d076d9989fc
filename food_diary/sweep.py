"""
Reconciliation sweep for stored images that no record references anymore.

Record writes and file writes are sequenced but not atomic, so a failure
between an upload and the record write (or a failed best-effort removal)
leaves an orphaned object behind. The sweep removes such objects once they
are older than a grace period; younger objects may belong to a save that is
still in flight.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

from food_diary.db import DbClient
from food_diary.images import storage_path_for
from food_diary.storage import StorageClient

logger = logging.getLogger(__name__)

DEFAULT_MIN_AGE_SECONDS = 3600


def referenced_paths(refs: Iterable[str], bucket: str) -> set[str]:
    paths = set()
    for ref in refs:
        path = storage_path_for(ref, bucket)
        if path:
            paths.add(path)
    return paths


def sweep_orphaned_images(
    storage: StorageClient,
    refs: Iterable[str],
    *,
    min_age_seconds: float = DEFAULT_MIN_AGE_SECONDS,
    dry_run: bool = False,
    now: Optional[float] = None,
) -> list[str]:
    """
    Remove objects in ``storage`` that none of ``refs`` points to.

    Returns the orphaned paths (removed unless ``dry_run``).
    """
    keep = referenced_paths(refs, storage.bucket)
    cutoff = (time.time() if now is None else now) - min_age_seconds
    orphans = sorted(
        obj.path
        for obj in storage.list_objects()
        if obj.path not in keep and obj.last_modified <= cutoff
    )
    if not orphans:
        logger.info("No orphaned objects in %s", storage.bucket)
        return []
    if dry_run:
        logger.info("Would remove %d orphaned objects from %s", len(orphans), storage.bucket)
        return orphans
    storage.remove(orphans)
    logger.info("Removed %d orphaned objects from %s", len(orphans), storage.bucket)
    return orphans


def sweep_all(
    db: DbClient,
    food_storage: StorageClient,
    user_storage: StorageClient,
    *,
    min_age_seconds: float = DEFAULT_MIN_AGE_SECONDS,
    dry_run: bool = False,
) -> dict[str, list[str]]:
    return {
        food_storage.bucket: sweep_orphaned_images(
            food_storage,
            db.list_food_image_refs(),
            min_age_seconds=min_age_seconds,
            dry_run=dry_run,
        ),
        user_storage.bucket: sweep_orphaned_images(
            user_storage,
            db.list_profile_image_refs(),
            min_age_seconds=min_age_seconds,
            dry_run=dry_run,
        ),
    }
