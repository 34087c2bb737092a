#!/usr/bin/env python
"""
Move stored files from legacy layouts to their current storage key.

Files stored before tenant partitioning live at the bucket root, and files
stored before record-type partitioning live under
{tenant_type}/{tenant_id}/ActiveStorage/. Reads find them either way; this
script copies each one to the key a new upload would use and removes the
legacy object.

Usage:
    PYTHONPATH=.
    python scripts/migrate_tenant_keys.py --dry-run
    python scripts/migrate_tenant_keys.py --bucket my-bucket
    python scripts/migrate_tenant_keys.py --tenant-type Account --tenant-id 42
"""

import argparse
import sys

from botocore.exceptions import ClientError, NoCredentialsError
from sqlmodel import Session, select

from api.filerecord.models import FileRecord
from api.storage.services import TenantStorageService
from core.config import get_settings
from core.db import get_session
from core.deps import get_s3_client
from core.logger import logger


class TenantKeyMigrator:
    """Moves legacy objects of file records to their current key."""

    def __init__(self, session: Session, s3_client, bucket: str, dry_run: bool = False):
        self.session = session
        self.s3_client = s3_client
        self.bucket = bucket
        self.dry_run = dry_run
        self.storage = TenantStorageService(session, s3_client, bucket)
        self.stats = {"scanned": 0, "migrated": 0, "skipped": 0, "missing": 0, "errors": 0}

    def file_records(self, tenant_type: str | None = None, tenant_id: str | None = None):
        """File records to migrate, optionally limited to one tenant."""
        statement = select(FileRecord)
        if tenant_type:
            statement = statement.where(FileRecord.tenant_type == tenant_type)
        if tenant_id:
            statement = statement.where(FileRecord.tenant_id == tenant_id)
        return self.session.exec(statement.order_by(FileRecord.created_on)).all()

    def migrate_file_record(self, file_record: FileRecord) -> bool:
        """
        Move one file to its current key.

        Returns:
            True if the object was moved (or would be, in a dry run)
        """
        key = file_record.key
        write_key = self.storage.object_key_for(key)

        if self.storage.object_exists(write_key):
            logger.debug(f"Already at current key: {write_key}")
            self.stats["skipped"] += 1
            return False

        legacy_key = None
        for candidate in self.storage.candidates(key):
            if candidate.key != write_key and self.storage.object_exists(candidate.key):
                legacy_key = candidate.key
                break

        if legacy_key is None:
            logger.warning(f"No stored object found for file record {key}")
            self.stats["missing"] += 1
            return False

        if self.dry_run:
            logger.info(f"[DRY RUN] Would move: {legacy_key} -> {write_key}")
            self.stats["migrated"] += 1
            return True

        try:
            self.s3_client.copy_object(
                Bucket=self.bucket,
                Key=write_key,
                CopySource={"Bucket": self.bucket, "Key": legacy_key},
            )
            self.s3_client.delete_object(Bucket=self.bucket, Key=legacy_key)
        except ClientError as e:
            logger.error(f"Failed to move {legacy_key} -> {write_key}: {e}")
            self.stats["errors"] += 1
            return False

        logger.info(f"Moved: {legacy_key} -> {write_key}")
        self.stats["migrated"] += 1
        return True

    def run(self, tenant_type: str | None = None, tenant_id: str | None = None) -> None:
        for file_record in self.file_records(tenant_type, tenant_id):
            self.stats["scanned"] += 1
            self.migrate_file_record(file_record)

            # Progress logging
            if self.stats["scanned"] % 100 == 0:
                logger.info(
                    f"Progress: {self.stats['scanned']} scanned, "
                    f"{self.stats['migrated']} migrated, "
                    f"{self.stats['skipped']} skipped, "
                    f"{self.stats['missing']} missing, "
                    f"{self.stats['errors']} errors"
                )

    def print_summary(self):
        """Print migration summary."""
        logger.info("=" * 50)
        logger.info("MIGRATION SUMMARY")
        logger.info("=" * 50)
        logger.info(f"Files scanned:  {self.stats['scanned']}")
        logger.info(f"Files migrated: {self.stats['migrated']}")
        logger.info(f"Files skipped:  {self.stats['skipped']}")
        logger.info(f"Files missing:  {self.stats['missing']}")
        logger.info(f"Errors:         {self.stats['errors']}")

        if self.dry_run:
            logger.info("\n*** DRY RUN MODE - No objects were actually moved ***")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Move stored files from legacy layouts to their current storage key",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show what would be moved
  python scripts/migrate_tenant_keys.py --dry-run

  # Migrate the files of a single tenant
  python scripts/migrate_tenant_keys.py --tenant-type Account --tenant-id 42
        """,
    )

    parser.add_argument("--bucket", help="S3 bucket name (defaults to STORAGE_BUCKET)")
    parser.add_argument("--tenant-type", help="Only migrate files of this tenant type")
    parser.add_argument("--tenant-id", help="Only migrate files of this tenant id")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be moved without making changes",
    )

    args = parser.parse_args(argv)
    bucket = args.bucket or get_settings().STORAGE_BUCKET

    session = next(get_session())
    migrator = TenantKeyMigrator(session, get_s3_client(), bucket, dry_run=args.dry_run)

    try:
        migrator.run(args.tenant_type, args.tenant_id)
    except NoCredentialsError:
        logger.error("AWS credentials not found. Please configure AWS credentials.")
        sys.exit(1)
    finally:
        session.close()

    migrator.print_summary()
    return 1 if migrator.stats["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
