import unittest

from gradecalc.services.storage import KeyValueStorage, StorageError


class KeyValueStorageTests(unittest.TestCase):
    def setUp(self):
        self.storage = KeyValueStorage(":memory:")

    def tearDown(self):
        self.storage.close()

    def test_set_and_get(self):
        self.storage.set("settings", {"roundToWhole": True, "label": "A−"})
        self.assertEqual(self.storage.get("settings"), {"roundToWhole": True, "label": "A−"})

    def test_overwrite(self):
        self.storage.set("k", [1])
        self.storage.set("k", [1, 2])
        self.assertEqual(self.storage.get("k"), [1, 2])
        self.assertEqual(self.storage.keys(), ["k"])

    def test_missing_key_returns_default(self):
        self.assertIsNone(self.storage.get("nope"))
        self.assertEqual(self.storage.get("nope", []), [])

    def test_delete(self):
        self.storage.set("k", 1)
        self.storage.delete("k")
        self.assertEqual(self.storage.keys(), [])

    def test_corrupt_value_is_treated_as_missing(self):
        self.storage.conn.execute("INSERT INTO kv(key, value, updated_at) VALUES('bad', '{oops', 'now')")
        with self.assertLogs("gradecalc.services.storage", level="WARNING"):
            self.assertEqual(self.storage.get("bad", "fallback"), "fallback")

    def test_unserializable_value(self):
        with self.assertRaises(StorageError):
            self.storage.set("k", object())


if __name__ == "__main__":
    unittest.main()
