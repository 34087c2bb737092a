"""
Models for the Storage API
"""

from typing import List
from sqlmodel import SQLModel

from api.filerecord.models import FileRecordPublic


class StorageExistsResponse(SQLModel):
    key: str
    exists: bool


class PresignedUrlResponse(SQLModel):
    key: str
    url: str
    expires_in: int


class CandidatePublic(SQLModel):
    """One storage key tried during lookup."""
    rank: int
    key: str
    exists: bool


class StorageResolution(SQLModel):
    """How a file key maps onto the bucket."""
    key: str
    tenant_type: str | None
    tenant_id: str | None
    record_type: str | None
    write_key: str
    candidates: List[CandidatePublic]
    resolved_key: str | None


class StorageUploadResponse(SQLModel):
    storage_key: str
    file_record: FileRecordPublic
