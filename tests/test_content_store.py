"""
Tests for content store backends.
"""

import io

import pytest
from botocore.exceptions import ClientError

from modules.generation.core.exceptions import ConfigurationException, StorageFailureException
from modules.generation.core.interfaces import document_storage_key
from modules.generation.storage import InMemoryContentStore, S3ContentStore, create_content_store
from shared.utils.config import Settings


class FakeS3Client:
    """Dict-backed stand-in for the handful of boto3 S3 calls the store makes."""

    def __init__(self, fail_puts=False):
        self.objects = {}
        self.fail_puts = fail_puts

    @staticmethod
    def _missing(operation):
        return ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, operation)

    def put_object(self, Bucket, Key, Body, ContentType, ContentLength):
        if self.fail_puts:
            raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        self.objects[(Bucket, Key)] = (Body, ContentType)

    def get_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise self._missing("GetObject")
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)][0])}

    def head_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise self._missing("HeadObject")
        return {}

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)


def test_storage_key_layout():
    assert document_storage_key("acme", "123") == "documents/acme/123"


@pytest.mark.asyncio
async def test_in_memory_store_round_trip():
    store = InMemoryContentStore()
    key = document_storage_key("acme", "doc-1")

    await store.put(key, b"%PDF-1.4", "application/pdf", 8)

    assert await store.exists(key)
    assert await store.get(key) == b"%PDF-1.4"
    assert await store.delete(key) is True
    assert await store.get(key) is None
    assert await store.delete(key) is False
    assert len(store) == 0


@pytest.mark.asyncio
async def test_s3_store_round_trip():
    client = FakeS3Client()
    store = S3ContentStore("documents", client)

    await store.put("documents/acme/doc-1", b"pdf", "application/pdf", 3)

    assert client.objects[("documents", "documents/acme/doc-1")] == (b"pdf", "application/pdf")
    assert await store.get("documents/acme/doc-1") == b"pdf"
    assert await store.get("documents/acme/missing") is None
    assert await store.delete("documents/acme/doc-1") is True
    assert await store.exists("documents/acme/doc-1") is False
    assert await store.delete("documents/acme/doc-1") is False


@pytest.mark.asyncio
async def test_s3_errors_become_storage_failures():
    store = S3ContentStore("documents", FakeS3Client(fail_puts=True))
    with pytest.raises(StorageFailureException):
        await store.put("documents/acme/doc-1", b"pdf", "application/pdf", 3)


def test_factory_selects_backend():
    assert isinstance(create_content_store(Settings(CONTENT_STORE_TYPE="memory")), InMemoryContentStore)
    assert isinstance(create_content_store(Settings(CONTENT_STORE_TYPE="s3")), S3ContentStore)


def test_factory_rejects_unknown_backend():
    settings = Settings().model_copy(update={"CONTENT_STORE_TYPE": "ftp"})
    with pytest.raises(ConfigurationException):
        create_content_store(settings)
