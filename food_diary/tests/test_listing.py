import unittest
from dataclasses import dataclass

from food_diary.listing import FoodListing, count_pages, filter_by_name, page_slice


@dataclass
class Entry:
    id: str
    name: str


class FakeBackend:
    def __init__(self, entries, fail_deletes=False):
        self.entries = list(entries)
        self.fail_deletes = fail_deletes
        self.deleted = []

    def fetch_entries(self):
        return list(self.entries)

    def delete_entry(self, entry_id):
        if self.fail_deletes:
            raise RuntimeError("network down")
        self.deleted.append(entry_id)
        self.entries = [e for e in self.entries if e.id != entry_id]


def make_entries(count):
    return [Entry(id=f"e{i}", name=f"Meal {i}") for i in range(1, count + 1)]


class HelperTests(unittest.TestCase):
    def test_filter_is_case_insensitive_substring(self):
        rows = [Entry("1", "Green Curry"), Entry("2", "Toast"), Entry("3", "curry puff")]
        self.assertEqual([r.id for r in filter_by_name(rows, " CURRY ", lambda r: r.name)], ["1", "3"])
        self.assertEqual(len(filter_by_name(rows, "", lambda r: r.name)), 3)

    def test_page_counts(self):
        self.assertEqual(count_pages(0, 10), 1)
        self.assertEqual(count_pages(10, 10), 1)
        self.assertEqual(count_pages(11, 10), 2)

    def test_page_slice(self):
        self.assertEqual(page_slice(list(range(25)), 3, 10), [20, 21, 22, 23, 24])
        self.assertEqual(page_slice(list(range(5)), 2, 10), [])


class FoodListingTests(unittest.TestCase):
    def test_load_and_paginate(self):
        listing = FoodListing(FakeBackend(make_entries(23)))
        listing.load()
        self.assertFalse(listing.loading)
        self.assertEqual(listing.total, 23)
        self.assertEqual(listing.total_pages, 3)
        listing.next_page()
        listing.next_page()
        listing.next_page()
        self.assertEqual(listing.page, 3)
        self.assertEqual([e.id for e in listing.visible], ["e21", "e22", "e23"])
        listing.previous_page()
        self.assertEqual(listing.page, 2)

    def test_search_and_page_size_reset_to_first_page(self):
        listing = FoodListing(FakeBackend(make_entries(23)))
        listing.load()
        listing.next_page()
        listing.set_search("meal 1")
        self.assertEqual(listing.page, 1)
        self.assertEqual(listing.total, 11)
        listing.next_page()
        listing.set_page_size(20)
        self.assertEqual(listing.page, 1)
        self.assertEqual(listing.total_pages, 1)

    def test_invalid_page_size(self):
        with self.assertRaises(ValueError):
            FoodListing(FakeBackend([]), page_size=0)

    def test_delete_removes_exactly_one_entry(self):
        backend = FakeBackend(make_entries(5))
        listing = FoodListing(backend)
        listing.load()
        removed = listing.delete("e3")
        self.assertEqual(removed.id, "e3")
        self.assertEqual(listing.total, 4)
        self.assertIsNone(listing.find("e3"))
        self.assertEqual(backend.deleted, ["e3"])

    def test_failed_delete_restores_rows_and_page(self):
        backend = FakeBackend(make_entries(12), fail_deletes=True)
        listing = FoodListing(backend)
        listing.load()
        listing.next_page()
        before_rows = list(listing.rows)
        before_visible = [e.id for e in listing.visible]

        with self.assertLogs("food_diary.listing", level="ERROR"):
            with self.assertRaises(RuntimeError):
                listing.delete("e11")

        self.assertEqual(listing.rows, before_rows)
        self.assertEqual(listing.page, 2)
        self.assertEqual(listing.total, 12)
        self.assertEqual([e.id for e in listing.visible], before_visible)

    def test_deleting_last_entry_on_last_page_steps_back(self):
        listing = FoodListing(FakeBackend(make_entries(11)))
        listing.load()
        listing.next_page()
        self.assertEqual([e.id for e in listing.visible], ["e11"])

        listing.delete("e11")
        self.assertEqual(listing.page, 1)
        self.assertEqual(listing.total, 10)
        self.assertEqual(listing.total_pages, 1)
        self.assertEqual(len(listing.visible), 10)

    def test_failed_delete_of_last_entry_returns_to_its_page(self):
        listing = FoodListing(FakeBackend(make_entries(11), fail_deletes=True))
        listing.load()
        listing.next_page()
        with self.assertLogs("food_diary.listing", level="ERROR"):
            with self.assertRaises(RuntimeError):
                listing.delete("e11")
        self.assertEqual(listing.page, 2)
        self.assertEqual([e.id for e in listing.visible], ["e11"])

    def test_delete_unknown_entry(self):
        listing = FoodListing(FakeBackend(make_entries(2)))
        listing.load()
        with self.assertRaises(KeyError):
            listing.delete("missing")
        self.assertEqual(listing.total, 2)


if __name__ == "__main__":
    unittest.main()
