"""
Services for the Storage API

Tenant-aware access to the shared bucket. Every operation on a file key
first works out where the object lives: the file's record gives the tenant
and owning record type, and the candidate keys are probed newest layout
first. Objects are never moved by a read.
"""

import logging
from datetime import timedelta
from urllib.parse import quote
from botocore.exceptions import ClientError
from sqlmodel import Session

from api.filerecord.models import FileRecord
from api.filerecord.services import get_file_record
from api.storage.keys import CandidateKey, candidate_keys, key_for
from api.storage.models import CandidatePublic, StorageResolution
from api.storage.tenant import extract_record_type, resolve_tenant
from core.tenant import TenantIdentity, current_tenant


logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
DISPOSITIONS = {"inline", "attachment"}
_FILENAME_UNSAFE = "\u202e%$|:;/<>?*\"\t\r\n\\"


class StorageFileNotFoundError(FileNotFoundError):
    """No object exists for a file key under any storage layout."""

    def __init__(self, key: str):
        super().__init__(f"File not found in storage: {key}")
        self.key = key


def content_disposition(filename: str | None, disposition: str | None = "inline") -> str:
    """
    Build a Content-Disposition header value with an ASCII filename and an
    RFC 5987 encoded filename* for non-ASCII names.
    """
    disposition = disposition if disposition in DISPOSITIONS else "inline"
    if not filename:
        return disposition
    sanitized = filename.strip()
    for char in _FILENAME_UNSAFE:
        sanitized = sanitized.replace(char, "-")
    ascii_name = sanitized.encode("ascii", "replace").decode("ascii").replace('"', '\\"')
    return f"{disposition}; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(sanitized, safe='')}"


def is_not_found(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") in NOT_FOUND_CODES


class TenantStorageService:
    """
    Read and write files in a bucket shared by many tenants.

    Args:
        session: Database session used to look up file records
        s3_client: boto3 S3 client
        bucket: Name of the shared bucket
        ambient_tenant: Tenant of the current request. When None, the
            ambient tenant of the current context is used.
    """

    def __init__(
        self,
        session: Session,
        s3_client,
        bucket: str,
        ambient_tenant: TenantIdentity | None = None,
    ):
        self.session = session
        self.s3_client = s3_client
        self.bucket = bucket
        self.ambient_tenant = ambient_tenant

    def _ambient(self) -> TenantIdentity | None:
        return self.ambient_tenant if self.ambient_tenant is not None else current_tenant()

    def _lookup(self, key: str) -> tuple[FileRecord | None, TenantIdentity | None, str | None]:
        file_record = get_file_record(self.session, key)
        tenant = resolve_tenant(self.session, file_record, self._ambient())
        record_type = extract_record_type(self.session, file_record)
        return file_record, tenant, record_type

    # ------------------------------------------------------------------
    # Key resolution
    # ------------------------------------------------------------------

    def object_key_for(self, key: str) -> str:
        """Key a new upload of this file is written to."""
        file_record, tenant, record_type = self._lookup(key)
        return key_for(key, tenant, record_type, log_missing_tenant=file_record is not None)

    def candidates(self, key: str) -> list[CandidateKey]:
        _, tenant, record_type = self._lookup(key)
        return candidate_keys(key, tenant, record_type)

    def object_exists(self, storage_key: str) -> bool:
        """
        Probe the bucket for a single storage key.
        Errors other than "not found" propagate.
        """
        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=storage_key)
        except ClientError as exc:
            if is_not_found(exc):
                logger.debug("Probe miss: s3://%s/%s", self.bucket, storage_key)
                return False
            raise
        logger.debug("Probe hit: s3://%s/%s", self.bucket, storage_key)
        return True

    def _probe(self, key: str, tenant: TenantIdentity | None, record_type: str | None) -> str | None:
        for candidate in candidate_keys(key, tenant, record_type):
            if self.object_exists(candidate.key):
                return candidate.key
        return None

    def resolve_existing_key(self, key: str) -> str | None:
        """
        Return the first candidate key that exists in the bucket, or None.
        Probes are never cached.
        """
        _, tenant, record_type = self._lookup(key)
        return self._probe(key, tenant, record_type)

    def _existing_or_write_key(self, key: str) -> str:
        file_record, tenant, record_type = self._lookup(key)
        return self._probe(key, tenant, record_type) or key_for(
            key, tenant, record_type, log_missing_tenant=file_record is not None
        )

    def resolution(self, key: str) -> StorageResolution:
        """Describe every candidate of a key and which one is used."""
        _, tenant, record_type = self._lookup(key)
        probed = [
            CandidatePublic(rank=c.rank, key=c.key, exists=self.object_exists(c.key))
            for c in candidate_keys(key, tenant, record_type)
        ]
        return StorageResolution(
            key=key,
            tenant_type=tenant.type if tenant else None,
            tenant_id=tenant.id if tenant else None,
            record_type=record_type,
            write_key=key_for(key, tenant, record_type, log_missing_tenant=False),
            candidates=probed,
            resolved_key=next((c.key for c in probed if c.exists), None),
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _get_object(self, key: str, **kwargs) -> bytes:
        storage_key = self.resolve_existing_key(key)
        if storage_key is None:
            raise StorageFileNotFoundError(key)
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=storage_key, **kwargs)
        except ClientError as exc:
            if is_not_found(exc):
                raise StorageFileNotFoundError(key) from exc
            raise
        return response["Body"].read()

    def download(self, key: str) -> bytes:
        """
        Return the content of a file.

        Raises:
            StorageFileNotFoundError: No object exists under any layout
        """
        return self._get_object(key)

    def download_chunk(self, key: str, start: int, end: int) -> bytes:
        """Return bytes start..end (inclusive) of a file."""
        return self._get_object(key, Range=f"bytes={start}-{end}")

    def exists(self, key: str) -> bool:
        return self.resolve_existing_key(key) is not None

    def url_for(
        self,
        key: str,
        expires_in: int | timedelta,
        filename: str | None = None,
        content_type: str | None = None,
        disposition: str | None = "inline",
    ) -> str:
        """
        Presigned GET URL for a file.

        Points at the existing object, or at the write-path key when the file
        has not been stored yet.
        """
        storage_key = self._existing_or_write_key(key)

        if isinstance(expires_in, timedelta):
            expires_in = int(expires_in.total_seconds())

        params = {
            "Bucket": self.bucket,
            "Key": storage_key,
            "ResponseContentDisposition": content_disposition(filename, disposition),
            "ResponseContentType": content_type,
        }
        params = {k: v for k, v in params.items() if v is not None}

        return self.s3_client.generate_presigned_url(
            "get_object", Params=params, ExpiresIn=int(expires_in)
        )

    def upload(
        self,
        key: str,
        data: bytes,
        content_type: str | None = None,
        checksum: str | None = None,
    ) -> str:
        """
        Write a file to its write-path key and return that key.

        checksum, when given, is the base64 MD5 of data and is verified by
        the store.
        """
        storage_key = self.object_key_for(key)
        params = {
            "Bucket": self.bucket,
            "Key": storage_key,
            "Body": data,
            "ContentType": content_type,
            "ContentMD5": checksum,
        }
        self.s3_client.put_object(**{k: v for k, v in params.items() if v is not None})
        logger.info("Uploaded %s to s3://%s/%s", key, self.bucket, storage_key)
        return storage_key

    def delete(self, key: str) -> str:
        """Delete the stored object of a file and return the key removed."""
        storage_key = self._existing_or_write_key(key)
        self.s3_client.delete_object(Bucket=self.bucket, Key=storage_key)
        logger.info("Deleted s3://%s/%s", self.bucket, storage_key)
        return storage_key
