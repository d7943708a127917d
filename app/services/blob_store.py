# app/services/blob_store.py
import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings
from app.core.exceptions import BlobUploadError
from app.services.cache_service import CacheService

logger = logging.getLogger(__name__)

# cached signatures expire a little before the URL itself
SIGNED_URL_CACHE_MARGIN_SECONDS = 5 * 60


@dataclass
class UploadedBlob:
    blob_name: str
    url: str
    signed_url: str


class BlobStore:
    """S3-backed media storage with cached presigned read URLs."""

    def __init__(self, settings: Settings, cache: CacheService, client: Any = None):
        self.settings = settings
        self.cache = cache
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.settings.AWS_REGION,
                aws_access_key_id=self.settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=self.settings.AWS_SECRET_ACCESS_KEY,
            )
        return self._client

    @property
    def bucket(self) -> str:
        if not self.settings.S3_BUCKET_NAME:
            raise BlobUploadError("S3_BUCKET_NAME is not configured")
        return self.settings.S3_BUCKET_NAME

    def _object_url(self, blob_name: str) -> str:
        return f"https://{self.bucket}.s3.{self.settings.AWS_REGION}.amazonaws.com/{blob_name}"

    async def upload(self, local_path: str, filename: str, content_type: str) -> UploadedBlob:
        bucket = self.bucket
        blob_name = f"{uuid.uuid4().hex}-{Path(filename).name}"
        try:
            await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.upload_file,
                    local_path,
                    bucket,
                    blob_name,
                    ExtraArgs={"ContentType": content_type},
                ),
                timeout=self.settings.BLOB_UPLOAD_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as e:
            raise BlobUploadError(
                f"upload of {filename} timed out after {self.settings.BLOB_UPLOAD_TIMEOUT_SECONDS}s"
            ) from e
        except (BotoCoreError, ClientError, OSError) as e:
            raise BlobUploadError(f"upload of {filename} failed: {e}") from e

        signed_url = await self.get_signed_url(blob_name)
        logger.info(f"Uploaded {local_path} as {blob_name}")
        return UploadedBlob(blob_name=blob_name, url=self._object_url(blob_name), signed_url=signed_url)

    async def upload_video(self, local_path: str) -> UploadedBlob:
        return await self.upload(local_path, Path(local_path).name, "video/mp4")

    async def upload_audio(self, local_path: str) -> UploadedBlob:
        return await self.upload(local_path, Path(local_path).name, "audio/mpeg")

    async def get_signed_url(self, blob_name: str, ttl_seconds: Optional[int] = None) -> str:
        ttl = ttl_seconds or self.settings.S3_PRESIGNED_URL_TTL_SECONDS
        cache_key = self.cache.file_url_key(blob_name)

        cached = await self.cache.get(cache_key)
        if isinstance(cached, str):
            return cached

        try:
            url = self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": blob_name},
                ExpiresIn=ttl,
            )
        except (BotoCoreError, ClientError) as e:
            raise BlobUploadError(f"could not sign URL for {blob_name}: {e}") from e

        await self.cache.set(cache_key, url, max(ttl - SIGNED_URL_CACHE_MARGIN_SECONDS, 60))
        return url
