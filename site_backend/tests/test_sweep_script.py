import importlib.util
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

from site_backend.blob_store import InMemoryBlobStore
from site_backend.config import Settings
from site_backend.context import AppContext
from site_backend.db import InMemoryMetadataStore, SqlMetadataStore

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "sweep_orphaned_uploads.py"


def load_script():
    spec = importlib.util.spec_from_file_location("sweep_orphaned_uploads", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class SweepScriptTests(unittest.TestCase):
    def setUp(self):
        self.script = load_script()
        self.blobs = InMemoryBlobStore()
        self.orphan = "1000_hero_hero.png"
        self.blobs.stored_objects[self.orphan] = b"x"

    def _run(self, context, *args):
        with patch.object(self.script, "build_context", return_value=context), patch.object(
            sys, "argv", ["sweep_orphaned_uploads.py", *args]
        ):
            return self.script.main()

    def test_refuses_in_memory_store(self):
        context = AppContext(Settings(), InMemoryMetadataStore(), self.blobs)
        with self.assertLogs("sweep_orphaned_uploads", level="ERROR"):
            self.assertEqual(self._run(context), 1)
        self.assertTrue(self.blobs.exists(self.orphan))

    def test_dry_run_reports_only(self):
        context = AppContext(Settings(), SqlMetadataStore("sqlite+pysqlite:///:memory:"), self.blobs)
        with self.assertLogs("sweep_orphaned_uploads", level="INFO") as logs:
            self.assertEqual(self._run(context, "--dry-run"), 0)
        self.assertIn(f"Would remove {self.orphan}", "\n".join(logs.output))
        self.assertTrue(self.blobs.exists(self.orphan))

    def test_removes_orphans(self):
        metadata = SqlMetadataStore("sqlite+pysqlite:///:memory:")
        kept = self.blobs.put(b"A", "logo.png", "logo")
        metadata.upsert("logo", kept, self.blobs.public_url(kept))
        context = AppContext(Settings(), metadata, self.blobs)

        self.assertEqual(self._run(context, "--min-age-seconds", "60"), 0)
        self.assertFalse(self.blobs.exists(self.orphan))
        self.assertTrue(self.blobs.exists(kept))


if __name__ == "__main__":
    unittest.main()
