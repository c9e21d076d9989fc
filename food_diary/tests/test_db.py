import os
import tempfile
import time
import unittest
from datetime import date

from food_diary.db import InMemoryDbClient, SqlDbClient
from food_diary.errors import DuplicateRecordError, RecordNotFoundError
from food_diary.types import Gender, Meal


class DbClientContract:
    """Behaviour shared by every DbClient implementation."""

    def make_client(self):
        raise NotImplementedError

    def setUp(self):
        self.db = self.make_client()

    def test_accounts_are_unique_by_email(self):
        account = self.db.create_account("Ann@Example.com", "hash")
        self.assertEqual(account.email, "ann@example.com")
        with self.assertRaises(DuplicateRecordError):
            self.db.create_account("ann@example.com", "other")
        self.assertEqual(self.db.get_account_by_email("ANN@example.com").user_id, account.user_id)
        self.assertIsNone(self.db.get_account_by_email("bob@example.com"))

    def test_update_account_only_touches_given_fields(self):
        account = self.db.create_account("ann@example.com", "hash")
        self.db.update_account(account.user_id, display_name="Ann")
        updated = self.db.update_account(account.user_id, photo_url="https://x.test/a.png")
        self.assertEqual(updated.display_name, "Ann")
        self.assertEqual(updated.photo_url, "https://x.test/a.png")
        self.assertEqual(updated.password_hash, "hash")
        with self.assertRaises(RecordNotFoundError):
            self.db.update_account("missing", display_name="x")

    def test_merge_profile_keeps_unmentioned_fields(self):
        self.assertIsNone(self.db.get_profile("u1"))
        self.db.merge_profile(
            "u1", {"full_name": "Ann", "email": "ann@example.com", "gender": "female"}
        )
        profile = self.db.merge_profile("u1", {"image_ref": "a.png"})
        self.assertEqual(profile.full_name, "Ann")
        self.assertEqual(profile.gender, Gender.FEMALE)
        self.assertEqual(profile.image_ref, "a.png")
        self.assertEqual(self.db.get_profile("u1").as_dict()["gender"], "female")

    def test_food_crud(self):
        record = self.db.create_food(
            "u1", name="Toast", meal=Meal.BREAKFAST, log_date=date(2024, 3, 1)
        )
        self.assertEqual(self.db.get_food(record.id).name, "Toast")

        updated = self.db.update_food(record.id, name="Jam toast", image_ref="t.png")
        self.assertEqual(updated.name, "Jam toast")
        self.assertEqual(updated.meal, Meal.BREAKFAST)
        self.assertEqual(updated.image_ref, "t.png")

        again = self.db.update_food(record.id, meal=Meal.SNACK)
        self.assertEqual(again.image_ref, "t.png")
        self.assertEqual(again.as_dict()["meal"], "Snack")

        self.db.delete_food(record.id)
        self.assertIsNone(self.db.get_food(record.id))
        with self.assertRaises(RecordNotFoundError):
            self.db.delete_food(record.id)
        with self.assertRaises(RecordNotFoundError):
            self.db.update_food(record.id, name="x")

    def test_query_foods_orders_newest_first_and_limits(self):
        for day in (3, 1, 2):
            self.db.create_food(
                "u1", name=f"day {day}", meal=Meal.LUNCH, log_date=date(2024, 1, day)
            )
            time.sleep(0.01)
        self.db.create_food("u2", name="other", meal=Meal.LUNCH, log_date=date(2024, 1, 9))
        self.db.create_food("u1", name="day 2 later", meal=Meal.DINNER, log_date=date(2024, 1, 2))

        names = [r.name for r in self.db.query_foods("u1")]
        self.assertEqual(names, ["day 3", "day 2 later", "day 2", "day 1"])
        self.assertEqual(len(self.db.query_foods("u1", limit=2)), 2)

    def test_image_ref_listings(self):
        self.db.create_food("u1", name="a", meal=Meal.LUNCH, log_date=date(2024, 1, 1), image_ref="a.png")
        self.db.create_food("u1", name="b", meal=Meal.LUNCH, log_date=date(2024, 1, 1))
        account = self.db.create_account("ann@example.com", "hash")
        self.db.update_account(account.user_id, photo_url="https://x.test/p.png")
        self.db.merge_profile(account.user_id, {"image_ref": "p.png"})

        self.assertEqual(self.db.list_food_image_refs(), ["a.png"])
        self.assertEqual(
            sorted(self.db.list_profile_image_refs()), ["https://x.test/p.png", "p.png"]
        )


class InMemoryDbClientTests(DbClientContract, unittest.TestCase):
    def make_client(self):
        return InMemoryDbClient()

    def test_reset(self):
        self.db.create_account("ann@example.com", "hash")
        self.db.reset()
        self.assertEqual(self.db.accounts, {})

    def test_returned_records_are_copies(self):
        record = self.db.create_food("u1", name="Toast", meal=Meal.BREAKFAST, log_date=date(2024, 1, 1))
        record.name = "mutated"
        self.assertEqual(self.db.get_food(record.id).name, "Toast")


class SqlDbClientTests(DbClientContract, unittest.TestCase):
    def make_client(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        client = SqlDbClient(f"sqlite:///{os.path.join(self.tmpdir.name, 'diary.db')}")
        self.addCleanup(client.engine.dispose)
        return client

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            SqlDbClient("")


if __name__ == "__main__":
    unittest.main()
