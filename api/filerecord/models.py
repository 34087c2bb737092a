"""
FileRecord Models - metadata for files kept in the shared storage bucket.

A FileRecord describes one stored object, addressed by its opaque ``key``.
FileRecordAttachment links a file to the business record that owns it
(an account, an order, ...) through a polymorphic record_type/record_id pair.
"""

import uuid
from datetime import datetime, timezone
from typing import List
from sqlmodel import SQLModel, Field, Relationship, UniqueConstraint
from pydantic import ConfigDict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Database Tables
# ============================================================================


class FileRecordAttachment(SQLModel, table=True):
    """
    Associates a file record with the record that owns it.

    record_type is the fully-qualified type name of the owner,
    e.g. "Inventory::InventoryItem", and decides the storage sub-path.
    """
    __tablename__ = "filerecordattachment"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    file_record_id: uuid.UUID = Field(foreign_key="filerecord.id", nullable=False, index=True)
    name: str = Field(max_length=255, nullable=False)  # e.g. "documents", "avatar"
    record_type: str = Field(max_length=255, nullable=False)
    record_id: str = Field(max_length=100, nullable=False)
    created_on: datetime = Field(default_factory=_utcnow)
    tenant_type: str | None = Field(default=None, max_length=255)
    tenant_id: str | None = Field(default=None, max_length=100)

    # Relationship back to parent
    file_record: "FileRecord" = Relationship(back_populates="attachments")

    __table_args__ = (
        UniqueConstraint(
            "file_record_id", "name", "record_type", "record_id",
            name="uq_filerecordattachment_file_record"
        ),
    )


class FileRecord(SQLModel, table=True):
    """
    Metadata record for a file in the shared storage bucket.

    tenant_type and tenant_id are set together, normally when the record is
    created. Older records may have neither until they are backfilled.
    """
    __tablename__ = "filerecord"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    key: str = Field(max_length=255, nullable=False, unique=True, index=True)
    filename: str = Field(max_length=255, nullable=False)
    content_type: str | None = Field(default=None, max_length=255)
    byte_size: int | None = Field(default=None)  # File size in bytes
    checksum: str | None = Field(default=None, max_length=64)  # base64 MD5
    created_on: datetime = Field(default_factory=_utcnow)
    tenant_type: str | None = Field(default=None, max_length=255, index=True)
    tenant_id: str | None = Field(default=None, max_length=100, index=True)

    attachments: List["FileRecordAttachment"] = Relationship(
        back_populates="file_record",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Request/Response Models (Pydantic)
# ============================================================================


class AttachmentInput(SQLModel):
    """Owning record of a new file."""
    name: str = "attachments"
    record_type: str
    record_id: str


class FileRecordCreate(SQLModel):
    """Request model for registering a file record."""
    key: str
    filename: str
    content_type: str | None = None
    byte_size: int | None = None
    checksum: str | None = None
    tenant_type: str | None = None
    tenant_id: str | None = None
    attachment: AttachmentInput | None = None

    model_config = ConfigDict(extra="forbid")


class AttachmentPublic(SQLModel):
    """Public representation of an attachment."""
    name: str
    record_type: str
    record_id: str


class FileRecordPublic(SQLModel):
    """Public representation of a file record."""
    id: uuid.UUID
    key: str
    filename: str
    content_type: str | None
    byte_size: int | None
    checksum: str | None
    created_on: datetime
    tenant_type: str | None
    tenant_id: str | None
    attachments: List[AttachmentPublic]
