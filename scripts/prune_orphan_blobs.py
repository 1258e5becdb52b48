"""Remove canvas and note blobs that no document record refers to.

Usage:
    uv run python scripts/prune_orphan_blobs.py [--dry-run] [--min-age SECONDS]

Blobs are written independently of document records, so a blob can outlive
the canvas or note entry that pointed at it (entry dropped by an upsert,
document deleted while cleanup failed). This walks every blob under
BLOB_ROOT and removes the ones whose name matches no
``{document_id}-{attachment_id}`` pair on any record. Blobs newer than
--min-age are left alone, since a client may write a blob before saving the
record that references it.

Requires DATABASE_URL (and optionally BLOB_ROOT) to be configured.
"""

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Allow running from the project root without installing the package.
_PROJECT_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_DIR))

load_dotenv(_PROJECT_DIR / ".env")

from docboard.db import make_engine, make_session_factory  # noqa: E402
from docboard.services.attachments import AttachmentStore  # noqa: E402
from docboard.services.maintenance import DEFAULT_MIN_AGE_SECONDS, prune_orphan_blobs  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Remove orphaned canvas and note blobs.")
    parser.add_argument(
        "--db-url",
        default=os.environ.get("DATABASE_URL"),
        help="Database connection URL (default: $DATABASE_URL)",
    )
    parser.add_argument(
        "--blob-root",
        default=os.environ.get("BLOB_ROOT", "blobs"),
        help="Attachment store root directory (default: $BLOB_ROOT or ./blobs)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List orphans without deleting them.",
    )
    parser.add_argument(
        "--min-age",
        type=float,
        default=DEFAULT_MIN_AGE_SECONDS,
        help="Skip blobs modified within this many seconds (default: %(default)s).",
    )
    args = parser.parse_args()
    if not args.db_url:
        parser.error("--db-url or DATABASE_URL is required")

    if args.dry_run:
        print("DRY RUN: no blobs will be removed.\n")

    engine = make_engine(args.db_url)
    db = make_session_factory(engine)()
    try:
        orphans = prune_orphan_blobs(
            db,
            AttachmentStore(Path(args.blob_root)),
            dry_run=args.dry_run,
            min_age_seconds=args.min_age,
        )
    finally:
        db.close()
        engine.dispose()

    for kind, name in orphans:
        print(f"  {'WOULD REMOVE' if args.dry_run else 'REMOVED':<13} {kind.value}/{name}")
    print(f"\nDone: {len(orphans)} orphaned blob(s).")


if __name__ == "__main__":
    main()
