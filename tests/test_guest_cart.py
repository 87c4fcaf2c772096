import os
import tempfile
import unittest
from datetime import datetime, timedelta

from db import database as db_database
from db import guest_cart


class GuestCartTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        # Point the DB to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "nested", "guest.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False

    def tearDown(self):
        self.temp_dir.cleanup()

    async def test_schema_created_on_first_connect(self):
        async with db_database.connect() as conn:
            cur = await conn.execute("SELECT name FROM sqlite_master WHERE type='table';")
            tables = [row[0] for row in await cur.fetchall()]
            await cur.close()
        self.assertIn("guest_cart", tables)
        self.assertTrue(os.path.exists(self.db_path))

    async def test_add_increments_existing_row(self):
        self.assertEqual(await guest_cart.add_item(7, 2), 2)
        self.assertEqual(await guest_cart.add_item(7), 3)
        items = await guest_cart.list_items()
        self.assertEqual([(i.product_id, i.quantity) for i in items], [(7, 3)])
        self.assertEqual(await guest_cart.count(), 1)

    async def test_non_positive_quantity_rejected(self):
        with self.assertRaises(ValueError):
            await guest_cart.add_item(7, 0)
        with self.assertRaises(ValueError):
            await guest_cart.add_item(7, -1)
        self.assertEqual(await guest_cart.count(), 0)

    async def test_items_listed_oldest_first(self):
        now = datetime(2024, 5, 1, 12, 0, 0)
        await guest_cart.add_item(3, 1, when=now)
        await guest_cart.add_item(1, 1, when=now + timedelta(minutes=5))
        await guest_cart.add_item(2, 1, when=now - timedelta(minutes=5))

        items = await guest_cart.list_items()
        self.assertEqual([i.product_id for i in items], [2, 3, 1])
        self.assertEqual(items[1].added_at, now)

    async def test_remove_and_clear(self):
        for pid in (1, 2, 3):
            await guest_cart.add_item(pid)
        await guest_cart.remove_item(2)
        await guest_cart.remove_item(99)  # unknown ids are ignored
        self.assertEqual([i.product_id for i in await guest_cart.list_items()], [1, 3])

        await guest_cart.clear()
        self.assertEqual(await guest_cart.list_items(), [])
        self.assertEqual(await guest_cart.count(), 0)
