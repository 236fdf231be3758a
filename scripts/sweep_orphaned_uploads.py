"""
Remove uploaded files that no asset record references.

Uploads interrupted between writing the file and saving the record, and
replacements whose cleanup failed, leave such files behind.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from site_backend.assets import AssetStore
from site_backend.db import InMemoryMetadataStore
from site_backend.dependencies import build_context


logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--min-age-seconds",
        type=float,
        default=3600,
        help="Only remove files older than this (protects in-flight uploads)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report orphaned files without removing them",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")
    context = build_context()

    if isinstance(context.metadata, InMemoryMetadataStore):
        logger.error("DATABASE_URL is not set; refusing to sweep against an empty store")
        return 1

    store = AssetStore(context)
    files = store.sweep_orphans(min_age_seconds=args.min_age_seconds, dry_run=args.dry_run)
    for file_ref in files:
        logger.info("%s %s", "Would remove" if args.dry_run else "Removed", file_ref)
    logger.info("%s %d orphaned files", "Found" if args.dry_run else "Removed", len(files))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
