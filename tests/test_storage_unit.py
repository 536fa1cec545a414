# tests/test_storage_unit.py
import pytest
from io import BytesIO
from fastapi import UploadFile
from starlette.datastructures import Headers
from botocore.exceptions import ClientError

import resumedesk.services.storage as storage_mod
from resumedesk.core.config import settings


class DummyS3Client:
    def __init__(self, fail_puts=False):
        self.objects = {}
        self.buckets = set()
        self.fail_puts = fail_puts

    def head_bucket(self, Bucket):
        if Bucket not in self.buckets:
            raise ClientError({"Error": {"Code": "404", "Message": "NoSuchBucket"}}, "HeadBucket")

    def create_bucket(self, Bucket):
        self.buckets.add(Bucket)
        return {"ResponseMetadata": {"HTTPStatusCode": 200}}

    def put_object(self, Bucket, Key, Body, ContentType=None):
        if self.fail_puts:
            raise ClientError({"Error": {"Code": "503", "Message": "SlowDown"}}, "PutObject")
        self.objects[(Bucket, Key)] = Body
        return {"ETag": '"dummy-etag"'}

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn, HttpMethod=None):
        bucket = Params["Bucket"]
        key = Params["Key"]
        return f"https://fake.s3/{bucket}/{key}?method={ClientMethod}&expires_in={ExpiresIn}"


@pytest.fixture
def s3_configured(monkeypatch):
    monkeypatch.setattr(settings, "S3_PROVIDER", "cloudflare")
    monkeypatch.setattr(settings, "S3_BUCKET", "unit-test-bucket")
    monkeypatch.setattr(settings, "S3_ENDPOINT", "https://r2.example.com")
    monkeypatch.setattr(settings, "S3_ACCESS_KEY", "ak")
    monkeypatch.setattr(settings, "S3_SECRET_KEY", "sk")


@pytest.fixture
def local_only(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "S3_ENDPOINT", None)
    monkeypatch.setattr(settings, "S3_BUCKET", None)
    monkeypatch.setattr(settings, "LOCAL_UPLOAD_DIR", str(tmp_path / "uploads"))
    return tmp_path / "uploads"


def _upload(content=b"%PDF-1.4 unit test", filename="my cv.pdf", content_type="application/pdf"):
    headers = Headers({"content-type": content_type})
    return UploadFile(file=BytesIO(content), filename=filename, size=len(content), headers=headers)


@pytest.mark.asyncio
async def test_store_file_calls_s3_put(monkeypatch, s3_configured):
    """
    Unit test: monkeypatch boto3.client to return a dummy client that records put_object calls.
    """
    dummy = DummyS3Client()
    dummy.create_bucket("unit-test-bucket")
    monkeypatch.setattr("resumedesk.services.storage.boto3.client", lambda *args, **kwargs: dummy)

    key = await storage_mod.store_file(_upload(), "user-a")
    assert key.startswith("user-a/")
    assert key.endswith("-my-cv.pdf")
    assert dummy.objects[("unit-test-bucket", key)] == b"%PDF-1.4 unit test"

    url = storage_mod.generate_presigned_url(key, expires_in=60)
    assert "fake.s3/unit-test-bucket" in url
    assert storage_mod.storage_status()["available"] is True


@pytest.mark.asyncio
async def test_store_file_falls_back_to_local_disk(monkeypatch, s3_configured, tmp_path):
    monkeypatch.setattr(settings, "LOCAL_UPLOAD_DIR", str(tmp_path))
    monkeypatch.setattr("resumedesk.services.storage.boto3.client", lambda *a, **kw: DummyS3Client(fail_puts=True))

    key = await storage_mod.store_file(_upload(content=b"fallback"), "user-a")
    assert (tmp_path / key).read_bytes() == b"fallback"


@pytest.mark.asyncio
async def test_store_file_without_storage_config(local_only):
    key = await storage_mod.store_file(_upload(content=b"local"), "user-b")
    assert storage_mod.local_path_for(key).read_bytes() == b"local"
    assert storage_mod.generate_presigned_url(key) is None
    assert storage_mod.storage_status()["available"] is False


def test_unreachable_bucket_reports_unavailable(monkeypatch, s3_configured):
    monkeypatch.setattr("resumedesk.services.storage.boto3.client", lambda *a, **kw: DummyS3Client())
    status = storage_mod.storage_status()
    assert status["available"] is False
    assert status["bucketName"] == "unit-test-bucket"


def test_keys_are_scoped_to_users():
    key = storage_mod.build_key("user-a", "../../etc/passwd")
    assert key.startswith("user-a/")
    assert "/.." not in key
    assert storage_mod.key_belongs_to(key, "user-a")
    assert not storage_mod.key_belongs_to(key, "user-b")
    assert not storage_mod.key_belongs_to("user-a/../user-b/x.pdf", "user-a")


def test_allowed_uploads():
    assert storage_mod.is_allowed_upload(_upload(filename="cv.docx", content_type="application/octet-stream"))
    assert not storage_mod.is_allowed_upload(_upload(filename="cv.exe", content_type="application/x-msdownload"))


def test_presigned_put_url(monkeypatch, s3_configured):
    monkeypatch.setattr("resumedesk.services.storage.boto3.client", lambda *a, **kw: DummyS3Client())
    url = storage_mod.generate_presigned_put_url("user-a/abc-cv.pdf", "application/pdf", expires_in=900)
    assert "method=put_object" in url
    assert "expires_in=900" in url
