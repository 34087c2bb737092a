"""
Resolve which tenant owns a stored file.
"""

import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from api.filerecord.models import FileRecord
from api.filerecord.services import first_attachment, update_tenant_fields
from core.tenant import TenantIdentity


logger = logging.getLogger(__name__)


def tenant_of(file_record: FileRecord | None) -> TenantIdentity | None:
    """Tenant stored on the record itself, or None unless both fields are set."""
    if file_record is None:
        return None
    return TenantIdentity.from_parts(file_record.tenant_type, file_record.tenant_id)


def backfill_tenant(
    session: Session, file_record: FileRecord, tenant: TenantIdentity
) -> bool:
    """
    Best-effort write of tenant onto a record that lacks it.

    Returns True if the record was written. A failed write is logged and
    rolled back, never raised.
    """
    try:
        update_tenant_fields(session, file_record, tenant)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning(
            "Could not backfill tenant %s on file record %s: %s",
            tenant.as_path(),
            file_record.key,
            exc,
        )
        return False
    logger.info("Backfilled tenant %s on file record %s", tenant.as_path(), file_record.key)
    return True


def resolve_tenant(
    session: Session,
    file_record: FileRecord | None,
    ambient_tenant: TenantIdentity | None,
) -> TenantIdentity | None:
    """
    Determine the tenant owning a file.

    1. Both tenant fields on the record: return them, no write.
    2. Else the ambient tenant, after backfilling it onto the record.
    3. Else None.
    """
    tenant = tenant_of(file_record)
    if tenant is not None:
        return tenant

    if ambient_tenant is None:
        return None

    if file_record is not None:
        backfill_tenant(session, file_record, ambient_tenant)
    return ambient_tenant


def extract_record_type(session: Session, file_record: FileRecord | None) -> str | None:
    """Type name of the record owning the file, from its first attachment."""
    attachment = first_attachment(session, file_record)
    if attachment is None:
        return None
    return attachment.record_type
