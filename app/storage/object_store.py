"""
MinIO-backed storage for rendered invoice documents.
"""
import io
import logging
from datetime import timedelta
from functools import lru_cache
from anyio import to_thread
from minio import Minio
from minio.error import S3Error
from app.core.config import MINIO_ENDPOINT, MINIO_ACCESS_KEY, MINIO_SECRET_KEY, MINIO_USE_SSL, INVOICE_BUCKET

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "NoSuchObject", "NoSuchBucket"}


class DocumentStorage:
    """Blocking MinIO calls wrapped for use from async code."""

    def __init__(self, client: Minio, bucket_name: str = INVOICE_BUCKET):
        self.client = client
        self.bucket_name = bucket_name
        self._bucket_ready = False

    def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        if not self.client.bucket_exists(self.bucket_name):
            self.client.make_bucket(self.bucket_name)
            logger.info("Created MinIO bucket: %s", self.bucket_name)
        self._bucket_ready = True

    def _exists(self, key: str) -> bool:
        try:
            self.client.stat_object(self.bucket_name, key)
            return True
        except S3Error as e:
            if e.code in _MISSING_CODES:
                return False
            raise

    def _put_pdf(self, key: str, data: bytes) -> None:
        self._ensure_bucket()
        self.client.put_object(
            bucket_name=self.bucket_name,
            object_name=key,
            data=io.BytesIO(data),
            length=len(data),
            content_type="application/pdf"
        )

    def _signed_url(self, key: str, expires: timedelta) -> str:
        return self.client.presigned_get_object(
            bucket_name=self.bucket_name,
            object_name=key,
            expires=expires
        )

    async def exists(self, key: str) -> bool:
        return await to_thread.run_sync(self._exists, key)

    async def put_pdf(self, key: str, data: bytes) -> None:
        await to_thread.run_sync(self._put_pdf, key, data)

    async def signed_url(self, key: str, expires: timedelta) -> str:
        return await to_thread.run_sync(self._signed_url, key, expires)


@lru_cache(maxsize=1)
def get_storage() -> DocumentStorage:
    client = Minio(
        MINIO_ENDPOINT,
        access_key=MINIO_ACCESS_KEY,
        secret_key=MINIO_SECRET_KEY,
        secure=MINIO_USE_SSL
    )
    return DocumentStorage(client)
