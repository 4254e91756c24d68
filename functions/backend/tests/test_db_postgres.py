import unittest

from backend.db import PostgresDbClient, new_preference_id
from backend.errors import StorageError
from backend.preferences import AlertPreferenceInput, PreferenceStore
from shared.types import AlertPreference


class PostgresDbClientTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the Postgres client logic.
    """

    def setUp(self):
        self.db = PostgresDbClient("sqlite+pysqlite:///:memory:")

    def _preference(self, **overrides) -> AlertPreference:
        values = dict(
            id=new_preference_id(),
            min_magnitude=4.0,
            notifications_enabled=True,
        )
        values.update(overrides)
        return AlertPreference(**values)

    def test_create_and_find(self):
        created = self.db.create_preference(
            self._preference(phone_number="+880111", email="a@x.com")
        )
        self.assertEqual(self.db.find_by_phone("+880111").id, created.id)
        self.assertEqual(self.db.find_by_email("a@x.com").id, created.id)
        self.assertIsNone(self.db.find_by_phone("+880999"))

    def test_update_overwrites_row(self):
        created = self.db.create_preference(self._preference(phone_number="+880111"))
        created.location_name = "Sylhet"
        created.min_magnitude = 6.5
        self.db.update_preference(created)

        loaded = self.db.get_preference(created.id)
        self.assertEqual(loaded.location_name, "Sylhet")
        self.assertEqual(loaded.min_magnitude, 6.5)

    def test_unique_email_is_enforced(self):
        self.db.create_preference(self._preference(email="a@x.com"))
        with self.assertRaises(StorageError):
            self.db.create_preference(self._preference(email="a@x.com"))

    def test_nulls_do_not_collide(self):
        self.db.create_preference(self._preference())
        self.db.create_preference(self._preference())
        self.assertEqual(len(self.db.list_preferences()), 2)

    def test_update_missing_row(self):
        with self.assertRaises(StorageError):
            self.db.update_preference(self._preference())

    def test_store_merge_roundtrip(self):
        store = PreferenceStore(self.db)
        first = store.upsert(
            AlertPreferenceInput(
                phone_number="+880111",
                email="a@x.com",
                min_magnitude=3,
                notifications_enabled=False,
            )
        )
        second = store.upsert(
            AlertPreferenceInput(
                phone_number="+880111", min_magnitude=5, notifications_enabled=False
            )
        )

        self.assertTrue(second.merged)
        loaded = self.db.get_preference(first.id)
        self.assertEqual(loaded.email, "a@x.com")
        self.assertEqual(loaded.min_magnitude, 5)
        self.assertEqual(len(self.db.list_preferences()), 1)


if __name__ == "__main__":
    unittest.main()
