"""
Define functions/aliases for dependency injection
"""
from collections.abc import Generator
from typing import Annotated, TypeAlias
from sqlmodel import Session
from fastapi import Depends, Header
import boto3

from core.config import get_settings
from core.db import get_engine
from core.tenant import TenantIdentity


# Define db dependency
def get_db() -> Generator[Session, None, None]:
    with Session(get_engine()) as session:
        yield session


def get_s3_client():
    """
    Create a boto3 S3 client for the shared storage bucket.
    Credentials fall back to the default boto3 chain when not configured.
    """
    settings = get_settings()
    return boto3.client(
        "s3",
        region_name=settings.AWS_REGION,
        endpoint_url=settings.STORAGE_ENDPOINT_URL,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
    )


def get_tenant(
    x_tenant_type: Annotated[str | None, Header()] = None,
    x_tenant_id: Annotated[str | None, Header()] = None,
) -> TenantIdentity | None:
    """
    Ambient tenant of the request, taken from the X-Tenant-Type and
    X-Tenant-Id headers. Either header missing means no tenant.
    """
    return TenantIdentity.from_parts(x_tenant_type, x_tenant_id)


SessionDep: TypeAlias = Annotated[Session, Depends(get_db)]
S3ClientDep: TypeAlias = Annotated[object, Depends(get_s3_client)]
TenantDep: TypeAlias = Annotated[TenantIdentity | None, Depends(get_tenant)]
