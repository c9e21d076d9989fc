import io
import unittest
from datetime import date
from unittest import mock

from fastapi.testclient import TestClient
from PIL import Image

from food_diary.app import create_app
from food_diary.client import ApiError, FoodDiaryApi
from food_diary.db import InMemoryDbClient
from food_diary.dependencies import get_db_client, get_food_storage, get_user_storage
from food_diary.listing import FoodListing
from food_diary.storage import InMemoryStorageClient


def make_png() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (6, 6), (90, 90, 0)).save(buf, format="PNG")
    return buf.getvalue()


class FoodDiaryApiClientTests(unittest.TestCase):
    def setUp(self):
        self.db = get_db_client()
        if isinstance(self.db, InMemoryDbClient):
            self.db.reset()
        for storage in (get_food_storage(), get_user_storage()):
            if isinstance(storage, InMemoryStorageClient):
                storage.stored_objects.clear()
                storage.fail_uploads = False
                storage.fail_removals = False
        self.api = FoodDiaryApi(
            base_url="", http=TestClient(create_app(), raise_server_exceptions=False)
        )

    def sign_in(self):
        self.api.register("Ann Example", "ann@example.com", "secret1", "female")
        return self.api.login("ann@example.com", "secret1")

    def test_login_fills_session_and_logout_clears_it(self):
        session = self.sign_in()
        self.assertTrue(session.signed_in)
        self.assertEqual(session.full_name, "Ann Example")
        self.assertEqual(self.api.get_profile()["email"], "ann@example.com")

        self.api.logout()
        self.assertFalse(self.api.session.signed_in)
        with self.assertRaises(ApiError) as ctx:
            self.api.get_profile()
        self.assertEqual(ctx.exception.status_code, 401)

    def test_register_with_used_email(self):
        self.api.register("Ann", "ann@example.com", "secret1", "female")
        with self.assertRaises(ApiError) as ctx:
            self.api.register("Ann", "ann@example.com", "secret1", "female")
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.message, "Email already in use")
        self.assertFalse(self.api.session.signed_in)

    def test_validation_errors_are_exposed_per_field(self):
        with self.assertRaises(ApiError) as ctx:
            self.api.register("", "bad", "1", "")
        self.assertEqual(ctx.exception.message, "Invalid input")
        self.assertEqual(
            set(ctx.exception.field_errors), {"full_name", "email", "password", "gender"}
        )

    def test_food_round_trip(self):
        self.sign_in()
        entry = self.api.create_food(
            "Pad Thai", "Lunch", log_date=date(2024, 5, 1),
            image=("pad thai.png", make_png(), "image/png"),
        )
        self.assertEqual(entry.log_date, date(2024, 5, 1))
        self.assertTrue(entry.image_url.startswith("https://"))

        updated = self.api.update_food(entry.id, "Pad See Ew", "Dinner")
        self.assertEqual(updated.name, "Pad See Ew")
        self.assertEqual(updated.image_ref, entry.image_ref)
        self.assertEqual(self.api.get_food(entry.id).meal, "Dinner")

        self.api.delete_food(entry.id)
        with self.assertRaises(ApiError) as ctx:
            self.api.get_food(entry.id)
        self.assertEqual(ctx.exception.status_code, 404)

    def test_update_profile_refreshes_session_fields(self):
        self.sign_in()
        self.api.update_profile(
            "Ann B.", "female", image=("me.png", make_png(), "image/png")
        )
        self.assertEqual(self.api.session.full_name, "Ann B.")
        self.assertIn("/object/public/user_bk/", self.api.session.image_url)

    def test_listing_delete_on_last_page(self):
        self.sign_in()
        for day in range(1, 12):
            self.api.create_food(f"Meal {day}", log_date=date(2024, 1, day))

        listing = FoodListing(self.api)
        listing.load()
        self.assertEqual(listing.total, 11)
        listing.next_page()
        last = listing.visible[0]
        self.assertEqual(last.name, "Meal 1")

        listing.delete(last.id)
        self.assertEqual(listing.page, 1)
        self.assertEqual(listing.total, 10)
        self.assertEqual(self.api.list_foods()["total"], 10)

    def test_listing_delete_failure_rolls_back(self):
        self.sign_in()
        for day in range(1, 4):
            self.api.create_food(f"Meal {day}", log_date=date(2024, 1, day))
        listing = FoodListing(self.api)
        listing.load()
        target = listing.visible[1]

        with mock.patch.object(self.db, "delete_food", side_effect=RuntimeError("db down")):
            with self.assertLogs("food_diary.listing", level="ERROR"):
                with self.assertRaises(ApiError) as ctx:
                    listing.delete(target.id)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(listing.total, 3)
        self.assertEqual(listing.visible[1].id, target.id)
        self.assertEqual(self.api.list_foods()["total"], 3)


if __name__ == "__main__":
    unittest.main()
