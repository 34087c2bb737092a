"""
Storage dependencies for dependency injection
"""

from typing import Annotated
from fastapi import Depends

from api.storage.services import TenantStorageService
from core.config import get_settings
from core.deps import S3ClientDep, SessionDep, TenantDep


def get_storage_service(
    session: SessionDep,
    s3_client: S3ClientDep,
    tenant: TenantDep,
) -> TenantStorageService:
    """
    Storage service bound to the request's session and ambient tenant.
    """
    return TenantStorageService(
        session=session,
        s3_client=s3_client,
        bucket=get_settings().STORAGE_BUCKET,
        ambient_tenant=tenant,
    )


StorageServiceDep = Annotated[TenantStorageService, Depends(get_storage_service)]
