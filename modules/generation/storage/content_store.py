"""
Content store backends for rendered documents.

Keys follow documents/{tenantId}/{documentId}; content is write-once per key.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from modules.generation.core.exceptions import ConfigurationException, StorageFailureException
from modules.generation.core.interfaces import IContentStore
from shared.utils.config import Settings, get_settings
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class StoredContent:
    content: bytes
    content_type: str
    size: int


class InMemoryContentStore(IContentStore):
    """
    In-memory content store.

    Content is lost on restart; used for development and tests.
    """

    def __init__(self):
        self._storage: Dict[str, StoredContent] = {}
        self._lock = asyncio.Lock()

    async def put(self, key: str, content: bytes, content_type: str, size: int) -> None:
        async with self._lock:
            self._storage[key] = StoredContent(content=bytes(content), content_type=content_type, size=size)

    async def get(self, key: str) -> Optional[bytes]:
        stored = self._storage.get(key)
        return stored.content if stored else None

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._storage.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self._storage

    def __len__(self) -> int:
        return len(self._storage)


class S3ContentStore(IContentStore):
    """
    S3 (or S3-compatible) content store.

    boto3 calls are blocking and run on the default thread pool.
    """

    def __init__(self, bucket: str, client=None):
        self.bucket = bucket
        self._s3 = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3ContentStore":
        client = boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            config=Config(signature_version="s3v4"),
            region_name=settings.S3_REGION,
        )
        return cls(settings.S3_BUCKET, client)

    async def put(self, key: str, content: bytes, content_type: str, size: int) -> None:
        def _put() -> None:
            self._s3.put_object(
                Bucket=self.bucket, Key=key, Body=content, ContentType=content_type, ContentLength=size
            )

        try:
            await asyncio.to_thread(_put)
        except (BotoCoreError, ClientError) as e:
            raise StorageFailureException(f"Failed to store {key}: {e}") from e

    async def get(self, key: str) -> Optional[bytes]:
        def _get() -> Optional[bytes]:
            try:
                response = self._s3.get_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                    return None
                raise
            return response["Body"].read()

        try:
            return await asyncio.to_thread(_get)
        except (BotoCoreError, ClientError) as e:
            raise StorageFailureException(f"Failed to read {key}: {e}") from e

    async def exists(self, key: str) -> bool:
        def _head() -> bool:
            try:
                self._s3.head_object(Bucket=self.bucket, Key=key)
                return True
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404", "NotFound"):
                    return False
                raise

        try:
            return await asyncio.to_thread(_head)
        except (BotoCoreError, ClientError) as e:
            raise StorageFailureException(f"Failed to check {key}: {e}") from e

    async def delete(self, key: str) -> bool:
        if not await self.exists(key):
            return False
        try:
            await asyncio.to_thread(self._s3.delete_object, Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageFailureException(f"Failed to delete {key}: {e}") from e
        return True


def create_content_store(settings: Optional[Settings] = None) -> IContentStore:
    """Build the content store selected by CONTENT_STORE_TYPE."""
    settings = settings or get_settings()
    if settings.CONTENT_STORE_TYPE == "memory":
        logger.info("Using in-memory content store")
        return InMemoryContentStore()
    if settings.CONTENT_STORE_TYPE == "s3":
        logger.info(f"Using S3 content store (bucket={settings.S3_BUCKET})")
        return S3ContentStore.from_settings(settings)
    raise ConfigurationException(f"Unknown content store type: {settings.CONTENT_STORE_TYPE}")
