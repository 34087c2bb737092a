"""
Services for file records.

Reads and writes the metadata the storage layer resolves keys from.
"""

import logging
import secrets
import string
from sqlmodel import Session, select

from api.filerecord.models import (
    AttachmentInput,
    AttachmentPublic,
    FileRecord,
    FileRecordAttachment,
    FileRecordCreate,
    FileRecordPublic,
)
from core.tenant import TenantIdentity, current_tenant


logger = logging.getLogger(__name__)

KEY_ALPHABET = string.ascii_lowercase + string.digits
KEY_LENGTH = 28


def generate_key() -> str:
    """Generate a random, URL-safe storage key."""
    return "".join(secrets.choice(KEY_ALPHABET) for _ in range(KEY_LENGTH))


def get_file_record(session: Session, key: str) -> FileRecord | None:
    """Return the file record stored under key, or None."""
    return session.exec(
        select(FileRecord).where(FileRecord.key == key)
    ).first()


def first_attachment(
    session: Session, file_record: FileRecord | None
) -> FileRecordAttachment | None:
    """
    Return the first attachment of a file record in store order.

    When a file has several owners, which one comes first is not defined.
    """
    if file_record is None:
        return None
    return session.exec(
        select(FileRecordAttachment)
        .where(FileRecordAttachment.file_record_id == file_record.id)
        .order_by(FileRecordAttachment.created_on)
    ).first()


def update_tenant_fields(
    session: Session, file_record: FileRecord, tenant: TenantIdentity
) -> None:
    """
    Write both tenant fields of a file record and commit.

    Database errors propagate; callers that treat the write as best effort
    catch them.
    """
    file_record.tenant_type = tenant.type
    file_record.tenant_id = tenant.id
    session.add(file_record)
    session.commit()
    session.refresh(file_record)


def create_file_record(
    session: Session,
    file_create: FileRecordCreate,
    tenant: TenantIdentity | None = None,
) -> FileRecord:
    """
    Create a file record, and its attachment when one is given.

    Tenant fields given on file_create win. Otherwise the record is stamped
    with tenant, or with the ambient tenant when tenant is None.
    """
    record_tenant = TenantIdentity.from_parts(file_create.tenant_type, file_create.tenant_id)
    if record_tenant is None:
        record_tenant = tenant or current_tenant()

    file_record = FileRecord(
        key=file_create.key,
        filename=file_create.filename,
        content_type=file_create.content_type,
        byte_size=file_create.byte_size,
        checksum=file_create.checksum,
        tenant_type=record_tenant.type if record_tenant else None,
        tenant_id=record_tenant.id if record_tenant else None,
    )
    session.add(file_record)
    session.flush()

    if file_create.attachment:
        _create_attachment(session, file_record, file_create.attachment, record_tenant)

    session.commit()
    session.refresh(file_record)

    logger.info(
        "Created file record %s (%s) for tenant %s",
        file_record.key,
        file_record.filename,
        record_tenant.as_path() if record_tenant else None,
    )
    return file_record


def _create_attachment(
    session: Session,
    file_record: FileRecord,
    attachment_input: AttachmentInput,
    tenant: TenantIdentity | None,
) -> FileRecordAttachment:
    """Link a file record to its owning record."""
    attachment = FileRecordAttachment(
        file_record_id=file_record.id,
        name=attachment_input.name,
        record_type=attachment_input.record_type,
        record_id=attachment_input.record_id,
        tenant_type=tenant.type if tenant else None,
        tenant_id=tenant.id if tenant else None,
    )
    session.add(attachment)
    return attachment


def attach_file_record(
    session: Session,
    file_record: FileRecord,
    attachment_input: AttachmentInput,
    tenant: TenantIdentity | None = None,
) -> FileRecordAttachment:
    """Attach an existing file record to another owning record."""
    attachment = _create_attachment(
        session, file_record, attachment_input, tenant or current_tenant()
    )
    session.commit()
    session.refresh(attachment)
    return attachment


def delete_file_record(session: Session, file_record: FileRecord) -> None:
    session.delete(file_record)
    session.commit()


def file_record_to_public(session: Session, file_record: FileRecord) -> FileRecordPublic:
    """Convert a file record to its public representation."""
    attachments = session.exec(
        select(FileRecordAttachment)
        .where(FileRecordAttachment.file_record_id == file_record.id)
        .order_by(FileRecordAttachment.created_on)
    ).all()
    return FileRecordPublic(
        id=file_record.id,
        key=file_record.key,
        filename=file_record.filename,
        content_type=file_record.content_type,
        byte_size=file_record.byte_size,
        checksum=file_record.checksum,
        created_on=file_record.created_on,
        tenant_type=file_record.tenant_type,
        tenant_id=file_record.tenant_id,
        attachments=[
            AttachmentPublic(
                name=a.name, record_type=a.record_type, record_id=a.record_id
            )
            for a in attachments
        ],
    )
