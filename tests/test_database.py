import os
import sys
import tempfile
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.database import MemoryStore, SqliteStore  # noqa: E402
from db.errors import QuotaExceededError  # noqa: E402


class StoreContract:
    """Behaviour shared by every KeyValueStore; mixed into concrete cases."""

    async def make_store(self, max_value_bytes: int = 1024):
        raise NotImplementedError

    async def test_get_set_remove(self):
        store = await self.make_store()
        self.assertIsNone(await store.get_item("products"))
        await store.set_item("products", "[]")
        self.assertEqual(await store.get_item("products"), "[]")
        await store.set_item("products", '[{"id": "prod-1"}]')
        self.assertEqual(await store.get_item("products"), '[{"id": "prod-1"}]')
        await store.remove_item("products")
        self.assertIsNone(await store.get_item("products"))
        # removing twice is harmless
        await store.remove_item("products")

    async def test_keys_in_insertion_order_and_clear(self):
        store = await self.make_store()
        for key in ["products", "categories", "adminToken"]:
            await store.set_item(key, "x")
        await store.set_item("products", "y")
        self.assertEqual(await store.keys(), ["products", "categories", "adminToken"])
        await store.clear()
        self.assertEqual(await store.keys(), [])

    async def test_capacity_is_per_key(self):
        store = await self.make_store(max_value_bytes=10)
        await store.set_item("a", "0123456789")
        await store.set_item("b", "0123456789")
        with self.assertRaises(QuotaExceededError) as ctx:
            await store.set_item("a", "0123456789X")
        self.assertEqual(ctx.exception.key, "a")
        self.assertEqual(ctx.exception.size, 11)
        self.assertEqual(await store.get_item("a"), "0123456789")

    async def test_capacity_counts_utf8_bytes(self):
        store = await self.make_store(max_value_bytes=4)
        await store.set_item("k", "৳")  # 3 bytes
        with self.assertRaises(QuotaExceededError):
            await store.set_item("k", "৳৳")


class MemoryStoreTestCase(StoreContract, unittest.IsolatedAsyncioTestCase):
    async def make_store(self, max_value_bytes: int = 1024):
        return MemoryStore(max_value_bytes)

    async def test_initial_data(self):
        store = MemoryStore(initial={"siteConfig": "{}"})
        async with store:
            self.assertEqual(await store.get_item("siteConfig"), "{}")


class SqliteStoreTestCase(StoreContract, unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.temp_dir.name, "nested", "kv.sqlite")
        self.stores = []

    async def asyncTearDown(self):
        for store in self.stores:
            await store.close()

    def tearDown(self):
        self.temp_dir.cleanup()

    async def make_store(self, max_value_bytes: int = 1024):
        store = SqliteStore(self.path, max_value_bytes)
        await store.open()
        self.stores.append(store)
        return store

    async def test_data_survives_reopen(self):
        async with SqliteStore(self.path) as store:
            await store.set_item("adminUsername", "boss")
        self.assertTrue(os.path.exists(self.path))
        async with SqliteStore(self.path) as store:
            self.assertEqual(await store.get_item("adminUsername"), "boss")

    async def test_use_before_open_fails(self):
        store = SqliteStore(self.path)
        with self.assertRaises(RuntimeError):
            await store.get_item("products")

    async def test_in_memory_database(self):
        async with SqliteStore(":memory:") as store:
            await store.set_item("k", "v")
            self.assertEqual(await store.keys(), ["k"])


if __name__ == "__main__":
    unittest.main()
