"""
Routes/endpoints for the Storage API

The ambient tenant of every request comes from the X-Tenant-Type and
X-Tenant-Id headers.
"""

import base64
import hashlib
import io
import re
from fastapi import APIRouter, File, Form, Header, HTTPException, Query, Response, UploadFile, status
from fastapi.responses import StreamingResponse
from botocore.exceptions import ClientError, NoCredentialsError

from api.filerecord.models import AttachmentInput, FileRecordCreate
from api.filerecord import services as filerecord_services
from api.storage.deps import StorageServiceDep
from api.storage.models import (
    PresignedUrlResponse,
    StorageExistsResponse,
    StorageResolution,
    StorageUploadResponse,
)
from api.storage.services import StorageFileNotFoundError, content_disposition
from core.config import get_settings
from core.deps import SessionDep, TenantDep

router = APIRouter(prefix="/storage", tags=["Storage Endpoints"])

_RANGE = re.compile(r"^bytes=(\d+)-(\d+)$")


def _raise_for_s3_error(exc: Exception, bucket: str):
    """Translate S3 failures into HTTP errors."""
    if isinstance(exc, NoCredentialsError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="AWS credentials not found. Please configure AWS credentials.",
        ) from exc
    error_code = exc.response["Error"]["Code"]
    if error_code == "NoSuchBucket":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"S3 bucket not found: {bucket}",
        ) from exc
    elif error_code == "AccessDenied":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Access denied to S3 bucket: {bucket}",
        ) from exc
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"S3 error: {exc.response['Error'].get('Message', error_code)}",
    ) from exc


@router.post(
    "",
    response_model=StorageUploadResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Storage Endpoints"],
)
def upload_file(
    session: SessionDep,
    storage: StorageServiceDep,
    tenant: TenantDep,
    file: UploadFile = File(..., description="File to store"),
    record_type: str | None = Form(None, description="Type of the owning record, e.g. Inventory::InventoryItem"),
    record_id: str | None = Form(None, description="Id of the owning record"),
    name: str = Form("attachments", description="Attachment name on the owning record"),
) -> StorageUploadResponse:
    """
    Store a new file for the current tenant.

    The file record is created first so the storage key can include the
    owning record's type.
    """
    content = file.file.read()
    checksum = base64.b64encode(hashlib.md5(content).digest()).decode("ascii")

    attachment = None
    if record_type and record_id:
        attachment = AttachmentInput(name=name, record_type=record_type, record_id=record_id)

    file_record = filerecord_services.create_file_record(
        session,
        FileRecordCreate(
            key=filerecord_services.generate_key(),
            filename=file.filename or "upload",
            content_type=file.content_type,
            byte_size=len(content),
            checksum=checksum,
            attachment=attachment,
        ),
        tenant=tenant,
    )

    try:
        storage_key = storage.upload(
            file_record.key, content, content_type=file.content_type, checksum=checksum
        )
    except (ClientError, NoCredentialsError) as exc:
        filerecord_services.delete_file_record(session, file_record)
        _raise_for_s3_error(exc, storage.bucket)

    return StorageUploadResponse(
        storage_key=storage_key,
        file_record=filerecord_services.file_record_to_public(session, file_record),
    )


@router.get("/{key}", tags=["Storage Endpoints"])
def download_file(
    key: str,
    session: SessionDep,
    storage: StorageServiceDep,
    range_header: str | None = Header(None, alias="Range"),
) -> StreamingResponse:
    """
    Download a file, wherever it is stored in the bucket.

    A single "bytes=start-end" Range header returns that part of the file.
    """
    file_record = filerecord_services.get_file_record(session, key)
    media_type = (file_record.content_type if file_record else None) or "application/octet-stream"
    headers = {
        "Content-Disposition": content_disposition(
            file_record.filename if file_record else key, "attachment"
        )
    }

    match = _RANGE.match(range_header) if range_header else None
    if match and int(match.group(1)) > int(match.group(2)):
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail=f"Invalid range: {range_header}",
        )
    try:
        if match:
            content = storage.download_chunk(key, int(match.group(1)), int(match.group(2)))
        else:
            content = storage.download(key)
    except StorageFileNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File not found: {key}",
        ) from exc
    except (ClientError, NoCredentialsError) as exc:
        _raise_for_s3_error(exc, storage.bucket)

    return StreamingResponse(
        io.BytesIO(content),
        status_code=status.HTTP_206_PARTIAL_CONTENT if match else status.HTTP_200_OK,
        media_type=media_type,
        headers=headers,
    )


@router.get("/{key}/exists", response_model=StorageExistsResponse, tags=["Storage Endpoints"])
def file_exists(key: str, storage: StorageServiceDep) -> StorageExistsResponse:
    """
    Check whether a file is stored under any of its storage layouts.
    """
    try:
        return StorageExistsResponse(key=key, exists=storage.exists(key))
    except (ClientError, NoCredentialsError) as exc:
        _raise_for_s3_error(exc, storage.bucket)


@router.get("/{key}/url", response_model=PresignedUrlResponse, tags=["Storage Endpoints"])
def file_url(
    key: str,
    storage: StorageServiceDep,
    expires_in: int | None = Query(None, gt=0, description="Lifetime of the URL in seconds"),
    filename: str | None = Query(None, description="Filename offered to the browser"),
    content_type: str | None = Query(None, description="Content type of the response"),
    disposition: str = Query("inline", pattern="^(inline|attachment)$"),
) -> PresignedUrlResponse:
    """
    Presigned download URL for a file.

    Files that are not stored yet get a URL for the key a new upload
    would be written to.
    """
    expires_in = expires_in or get_settings().STORAGE_URL_EXPIRES_IN
    try:
        url = storage.url_for(
            key,
            expires_in=expires_in,
            filename=filename,
            content_type=content_type,
            disposition=disposition,
        )
    except (ClientError, NoCredentialsError) as exc:
        _raise_for_s3_error(exc, storage.bucket)
    return PresignedUrlResponse(key=key, url=url, expires_in=expires_in)


@router.get("/{key}/resolution", response_model=StorageResolution, tags=["Storage Endpoints"])
def file_resolution(key: str, storage: StorageServiceDep) -> StorageResolution:
    """
    Show the storage keys tried for a file, in order, and which one exists.
    """
    try:
        return storage.resolution(key)
    except (ClientError, NoCredentialsError) as exc:
        _raise_for_s3_error(exc, storage.bucket)


@router.delete("/{key}", status_code=status.HTTP_204_NO_CONTENT, tags=["Storage Endpoints"])
def delete_file(key: str, session: SessionDep, storage: StorageServiceDep) -> Response:
    """
    Delete a stored file and its record.
    """
    try:
        storage.delete(key)
    except (ClientError, NoCredentialsError) as exc:
        _raise_for_s3_error(exc, storage.bucket)

    file_record = filerecord_services.get_file_record(session, key)
    if file_record is not None:
        filerecord_services.delete_file_record(session, file_record)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
