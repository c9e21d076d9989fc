import time
import unittest
from datetime import date

from food_diary.db import InMemoryDbClient
from food_diary.storage import InMemoryStorageClient
from food_diary.sweep import sweep_all, sweep_orphaned_images
from food_diary.types import Meal


class SweepTests(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStorageClient(bucket="food_bk")
        for path in ("kept.png", "orphan.png", "bare.png"):
            self.storage.upload(path, b"x")
            self.storage.stored_objects[path]["last_modified"] = 1000.0
        self.refs = [self.storage.public_url("kept.png"), "bare.png"]

    def test_removes_only_unreferenced_objects(self):
        removed = sweep_orphaned_images(self.storage, self.refs, min_age_seconds=60, now=5000.0)
        self.assertEqual(removed, ["orphan.png"])
        self.assertEqual(sorted(self.storage.stored_objects), ["bare.png", "kept.png"])

    def test_recent_objects_are_left_alone(self):
        self.storage.upload("in_flight.png", b"x")
        removed = sweep_orphaned_images(self.storage, self.refs, min_age_seconds=3600)
        self.assertEqual(removed, ["orphan.png"])
        self.assertIn("in_flight.png", self.storage.stored_objects)

    def test_dry_run_removes_nothing(self):
        removed = sweep_orphaned_images(
            self.storage, self.refs, min_age_seconds=0, dry_run=True, now=5000.0
        )
        self.assertEqual(removed, ["orphan.png"])
        self.assertEqual(len(self.storage.stored_objects), 3)

    def test_sweep_all_checks_both_buckets(self):
        db = InMemoryDbClient()
        user_storage = InMemoryStorageClient(bucket="user_bk")
        user_storage.upload("avatar.png", b"x")
        user_storage.upload("old_avatar.png", b"x")
        account = db.create_account("ann@example.com", "hash")
        db.update_account(account.user_id, photo_url=user_storage.public_url("avatar.png"))
        db.create_food(
            account.user_id, name="a", meal=Meal.LUNCH, log_date=date(2024, 1, 1),
            image_ref=self.storage.public_url("kept.png"),
        )

        results = sweep_all(db, self.storage, user_storage, min_age_seconds=0)
        self.assertEqual(results["food_bk"], ["bare.png", "orphan.png"])
        self.assertEqual(results["user_bk"], ["old_avatar.png"])
        self.assertEqual(list(user_storage.stored_objects), ["avatar.png"])
        self.assertLessEqual(user_storage.list_objects()[0].last_modified, time.time())


if __name__ == "__main__":
    unittest.main()
