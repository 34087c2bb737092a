import io
import pytest
from botocore.exceptions import ClientError, NoCredentialsError
from fastapi.testclient import TestClient
from sqlmodel import Session, create_engine, SQLModel
from sqlmodel.pool import StaticPool

from api.filerecord.models import (  # noqa: F401 - registers the tables
    AttachmentInput,
    FileRecord,
    FileRecordAttachment,
    FileRecordCreate,
)
from api.filerecord.services import create_file_record
from api.storage.deps import get_storage_service
from api.storage.services import TenantStorageService
from core.deps import get_db, get_s3_client, TenantDep
from core.tenant import TenantIdentity, reset_current_tenant, set_current_tenant
from main import app

TEST_BUCKET = "test-bucket"


class MockS3Client:
    """Mock S3 client keeping objects in memory"""

    def __init__(self):
        self.objects = {}  # {(bucket, key): {"Body": bytes, "ContentType": str | None}}
        self.probes = []  # keys passed to head_object, in call order
        self.presigned = []  # Params of every generate_presigned_url call
        self.error_mode = None  # For simulating errors

    def add_object(self, key: str, body: bytes = b"data", bucket: str = TEST_BUCKET, content_type=None):
        """Store an object directly, bypassing put_object"""
        self.objects[(bucket, key)] = {"Body": body, "ContentType": content_type}

    def has_object(self, key: str, bucket: str = TEST_BUCKET) -> bool:
        return (bucket, key) in self.objects

    def simulate_error(self, error_type: str):
        """
        Configure client to raise specific errors

        Args:
            error_type: One of "NoSuchBucket", "AccessDenied", "NoCredentialsError"
        """
        self.error_mode = error_type

    def _check_error_mode(self, operation: str):
        if self.error_mode is None:
            return
        if self.error_mode == "NoCredentialsError":
            raise NoCredentialsError()
        messages = {
            "NoSuchBucket": "The specified bucket does not exist",
            "AccessDenied": "Access Denied",
        }
        raise ClientError(
            {"Error": {"Code": self.error_mode, "Message": messages.get(self.error_mode, "")}},
            operation,
        )

    def head_object(self, Bucket: str, Key: str):
        self.probes.append(Key)
        self._check_error_mode("HeadObject")
        if (Bucket, Key) not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        obj = self.objects[(Bucket, Key)]
        return {"ContentLength": len(obj["Body"]), "ContentType": obj["ContentType"]}

    def get_object(self, Bucket: str, Key: str, Range: str | None = None):
        self._check_error_mode("GetObject")
        if (Bucket, Key) not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            )
        body = self.objects[(Bucket, Key)]["Body"]
        if Range:
            start, end = Range.removeprefix("bytes=").split("-")
            body = body[int(start):int(end) + 1]
        return {"Body": io.BytesIO(body), "ContentLength": len(body)}

    def put_object(self, Bucket: str, Key: str, Body: bytes, ContentType=None, ContentMD5=None):
        self._check_error_mode("PutObject")
        self.objects[(Bucket, Key)] = {"Body": Body, "ContentType": ContentType}
        return {"ETag": '"etag"'}

    def delete_object(self, Bucket: str, Key: str):
        self._check_error_mode("DeleteObject")
        self.objects.pop((Bucket, Key), None)
        return {}

    def copy_object(self, Bucket: str, Key: str, CopySource: dict):
        self._check_error_mode("CopyObject")
        source = (CopySource["Bucket"], CopySource["Key"])
        if source not in self.objects:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": "Not Found"}}, "CopyObject")
        self.objects[(Bucket, Key)] = dict(self.objects[source])
        return {}

    def generate_presigned_url(self, ClientMethod: str, Params: dict, ExpiresIn: int):
        self.presigned.append(Params)
        return f"https://{Params['Bucket']}.s3.amazonaws.com/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


@pytest.fixture(autouse=True)
def reset_ambient_tenant():
    """Every test starts without an ambient tenant"""
    token = set_current_tenant(None)
    yield
    reset_current_tenant(token)


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="mock_s3_client")
def mock_s3_client_fixture():
    """Provide a mock S3 client for testing"""
    return MockS3Client()


@pytest.fixture(name="storage")
def storage_fixture(session: Session, mock_s3_client: MockS3Client):
    """Storage service without an explicit ambient tenant"""
    return TenantStorageService(session, mock_s3_client, TEST_BUCKET)


@pytest.fixture(name="make_file_record")
def make_file_record_fixture(session: Session):
    """Factory creating file records with an optional tenant and owner"""

    def _make(
        key: str,
        tenant: TenantIdentity | None = None,
        record_type: str | None = None,
        record_id: str = "1",
        filename: str = "file.pdf",
    ) -> FileRecord:
        attachment = None
        if record_type:
            attachment = AttachmentInput(name="documents", record_type=record_type, record_id=record_id)
        return create_file_record(
            session,
            FileRecordCreate(
                key=key,
                filename=filename,
                content_type="application/pdf",
                tenant_type=tenant.type if tenant else None,
                tenant_id=tenant.id if tenant else None,
                attachment=attachment,
            ),
        )

    return _make


@pytest.fixture(name="client")
def client_fixture(session: Session, mock_s3_client: MockS3Client):
    def get_db_override():
        return session

    def get_s3_client_override():
        return mock_s3_client

    def get_storage_service_override(tenant: TenantDep):
        return TenantStorageService(session, mock_s3_client, TEST_BUCKET, ambient_tenant=tenant)

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_s3_client] = get_s3_client_override
    app.dependency_overrides[get_storage_service] = get_storage_service_override

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
