import time
import unittest
from concurrent.futures import ThreadPoolExecutor

from site_backend.assets import AssetStore
from site_backend.blob_store import InMemoryBlobStore
from site_backend.config import Settings
from site_backend.context import AppContext
from site_backend.db import InMemoryMetadataStore
from site_backend.errors import NotFoundError, StorageError, ValidationError


class FailingRemoveBlobStore(InMemoryBlobStore):
    def remove(self, file_ref: str) -> bool:
        raise StorageError("disk unhappy")


class FailingUpsertMetadataStore(InMemoryMetadataStore):
    def __init__(self, exc: Exception):
        super().__init__()
        self.exc = exc

    def upsert(self, key, file_ref, url):
        raise self.exc


def make_store(settings=None, metadata=None, blobs=None) -> AssetStore:
    context = AppContext(
        settings=settings or Settings(),
        metadata=metadata if metadata is not None else InMemoryMetadataStore(),
        blobs=blobs if blobs is not None else InMemoryBlobStore(),
    )
    return AssetStore(context)


class AssetStoreTests(unittest.TestCase):
    def setUp(self):
        self.assets = make_store()
        self.blobs = self.assets.blobs
        self.metadata = self.assets.metadata

    def test_upload_then_lookup_returns_same_url(self):
        record = self.assets.upload("logo", b"A", "logo.png")

        self.assertTrue(record.url.startswith("https://example.test/uploads/"))
        self.assertTrue(record.file_ref.endswith("_logo_logo.png"))
        self.assertTrue(self.blobs.exists(record.file_ref))
        self.assertEqual(self.assets.lookup("logo").url, record.url)

    def test_key_is_stripped(self):
        record = self.assets.upload("  logo ", b"A", "logo.png")
        self.assertEqual(record.key, "logo")

    def test_reupload_replaces_file(self):
        first = self.assets.upload("logo", b"A", "logo.png")
        second = self.assets.upload("logo", b"B", "logo2.png")

        self.assertNotEqual(first.url, second.url)
        self.assertFalse(self.blobs.exists(first.file_ref))
        self.assertTrue(self.blobs.exists(second.file_ref))
        self.assertEqual(self.assets.lookup("logo").url, second.url)
        self.assertEqual(self.blobs.list_refs(), [second.file_ref])

    def test_delete_then_lookup_is_not_found(self):
        record = self.assets.upload("logo", b"A", "logo.png")

        prior = self.assets.delete("logo")
        self.assertEqual(prior.file_ref, record.file_ref)
        self.assertFalse(self.blobs.exists(record.file_ref))
        with self.assertRaises(NotFoundError):
            self.assets.lookup("logo")

    def test_delete_unknown_key_returns_none(self):
        self.assertIsNone(self.assets.delete("nope"))

    def test_list_all_after_delete(self):
        self.assets.upload("a", b"A", "a.png")
        b = self.assets.upload("b", b"B", "b.png")
        self.assets.delete("a")

        self.assertEqual(self.assets.list_all(), {"b": b.url})

    def test_missing_key_writes_nothing(self):
        for key in (None, "", "   "):
            with self.assertRaises(ValidationError):
                self.assets.upload(key, b"A", "logo.png")
        self.assertEqual(self.blobs.stored_objects, {})
        self.assertEqual(self.metadata.records, {})

    def test_missing_or_empty_file_writes_nothing(self):
        for data in (None, b""):
            with self.assertRaises(ValidationError):
                self.assets.upload("logo", data, "logo.png")
        self.assertEqual(self.blobs.stored_objects, {})
        self.assertEqual(self.metadata.records, {})

    def test_oversized_file_is_rejected(self):
        assets = make_store(settings=Settings(max_upload_size_mb=1))
        with self.assertRaises(ValidationError):
            assets.upload("logo", b"x" * (1024 * 1024 + 1), "logo.png")
        self.assertEqual(assets.blobs.stored_objects, {})

    def test_cleanup_failure_does_not_fail_operations(self):
        assets = make_store(blobs=FailingRemoveBlobStore())
        first = assets.upload("logo", b"A", "logo.png")
        second = assets.upload("logo", b"B", "logo2.png")

        self.assertEqual(assets.lookup("logo").url, second.url)
        # The old file stays behind as an orphan.
        self.assertTrue(assets.blobs.exists(first.file_ref))

        self.assertIsNotNone(assets.delete("logo"))
        with self.assertRaises(NotFoundError):
            assets.lookup("logo")

    def test_failed_upsert_discards_new_file(self):
        for exc in (StorageError("db down"), RuntimeError("boom")):
            assets = make_store(metadata=FailingUpsertMetadataStore(exc))
            with self.assertRaises(StorageError):
                assets.upload("logo", b"A", "logo.png")
            self.assertEqual(assets.blobs.stored_objects, {})

    def test_failed_upsert_keeps_previous_file(self):
        assets = self.assets
        first = assets.upload("logo", b"A", "logo.png")

        def broken_upsert(key, file_ref, url):
            raise StorageError("db down")

        assets.metadata.upsert = broken_upsert
        with self.assertRaises(StorageError):
            assets.upload("logo", b"B", "logo2.png")

        self.assertEqual(assets.lookup("logo").file_ref, first.file_ref)
        self.assertEqual(assets.blobs.list_refs(), [first.file_ref])

    def test_concurrent_uploads_leave_one_consistent_record(self):
        def upload(i):
            return self.assets.upload("logo", bytes([i + 1]), f"logo{i}.png")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(upload, range(16)))

        records = self.metadata.list()
        self.assertEqual(len(records), 1)
        self.assertTrue(self.blobs.exists(records[0].file_ref))


class SweepOrphansTests(unittest.TestCase):
    def setUp(self):
        self.assets = make_store()
        self.blobs = self.assets.blobs
        self.kept = self.assets.upload("logo", b"A", "logo.png")
        self.old_orphan = "1000_hero_hero.png"
        self.stray = "stray.txt"
        self.young_orphan = f"{int(time.time() * 1000) + 60_000}_new_new.png"
        for ref in (self.old_orphan, self.stray, self.young_orphan):
            self.blobs.stored_objects[ref] = b"x"

    def test_dry_run_reports_without_removing(self):
        found = self.assets.sweep_orphans(min_age_seconds=3600, dry_run=True)

        self.assertEqual(sorted(found), sorted([self.old_orphan, self.stray]))
        self.assertTrue(self.blobs.exists(self.old_orphan))

    def test_sweep_removes_only_aged_unreferenced_files(self):
        removed = self.assets.sweep_orphans(min_age_seconds=3600)

        self.assertEqual(sorted(removed), sorted([self.old_orphan, self.stray]))
        self.assertTrue(self.blobs.exists(self.kept.file_ref))
        self.assertTrue(self.blobs.exists(self.young_orphan))
        self.assertFalse(self.blobs.exists(self.old_orphan))
        self.assertEqual(self.assets.lookup("logo").url, self.kept.url)


if __name__ == "__main__":
    unittest.main()
