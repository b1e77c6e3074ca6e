import logging
from datetime import datetime, timezone
from typing import List, Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import ClientError
from starlette.concurrency import run_in_threadpool

from listing_api.config import Settings
from listing_api.stores.objects import ObjectNotFound, ObjectStore, StoredObject

logger = logging.getLogger(__name__)

# SigV4 presigned URLs cannot outlive 7 days
MAX_PRESIGN_SECONDS = 7 * 24 * 3600


def _is_missing(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound")


class S3ObjectStore(ObjectStore):
    """Bucket on S3 or any S3-compatible endpoint"""

    backend_name = "s3"

    def __init__(self, settings: Settings, client=None):
        super().__init__(settings.S3_BUCKET_NAME, settings.EMIT_FINALIZE_EVENTS)
        self.s3_client = client or boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.S3_REGION,
            config=BotoConfig(
                signature_version="s3v4",
                request_checksum_calculation="when_required",
                response_checksum_validation="when_required",
                s3={"addressing_style": "path"},
            ),
        )
        self._cap_logged = False

    async def _put(self, key: str, data: bytes, content_type: Optional[str], public: bool) -> StoredObject:
        params = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        if public:
            params["ACL"] = "public-read"
        try:
            await run_in_threadpool(self.s3_client.put_object, **params)
        except ClientError as e:
            logger.error(f"S3 error while writing {key}: {e}")
            raise
        return StoredObject(key=key, size=len(data), content_type=content_type, public=public)

    async def upload_file(self, path: str, key: str, content_type: Optional[str] = None, public: bool = False) -> StoredObject:
        extra = {}
        if content_type:
            extra["ContentType"] = content_type
        if public:
            extra["ACL"] = "public-read"
        await run_in_threadpool(self.s3_client.upload_file, path, self.bucket, key, ExtraArgs=extra or None)
        stored = await self.head(key)
        logger.info(f"File uploaded: {path} -> {self.bucket}/{key}")
        await self._finalized(key, content_type)
        return stored

    async def get(self, key: str) -> bytes:
        try:
            response = await run_in_threadpool(self.s3_client.get_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                raise ObjectNotFound(key)
            raise
        return await run_in_threadpool(response["Body"].read)

    async def download(self, key: str, path: str) -> str:
        try:
            await run_in_threadpool(self.s3_client.download_file, self.bucket, key, path)
        except ClientError as e:
            if _is_missing(e):
                raise ObjectNotFound(key)
            raise
        return path

    async def head(self, key: str) -> Optional[StoredObject]:
        try:
            response = await run_in_threadpool(self.s3_client.head_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _is_missing(e):
                return None
            logger.error(f"S3 head error for {key}: {e}")
            raise
        return StoredObject(
            key=key,
            size=response.get("ContentLength", 0),
            content_type=response.get("ContentType"),
            metadata=response.get("Metadata", {}),
        )

    async def delete(self, key: str) -> bool:
        try:
            await run_in_threadpool(self.s3_client.delete_object, Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            logger.error(f"S3 delete error for {key}: {e}")
            return False

    async def list_keys(self, prefix: str) -> List[str]:
        def _list() -> List[str]:
            keys = []
            paginator = self.s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
            return keys

        return await run_in_threadpool(_list)

    async def signed_url(self, key: str, expires_at: datetime) -> str:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        seconds = int((expires_at - datetime.now(timezone.utc)).total_seconds())
        if seconds > MAX_PRESIGN_SECONDS and not self._cap_logged:
            logger.warning(
                f"Signed URLs expire after {MAX_PRESIGN_SECONDS}s instead of at {expires_at.isoformat()}, "
                "the S3 presign limit"
            )
            self._cap_logged = True
        expires_in = max(1, min(seconds, MAX_PRESIGN_SECONDS))
        return await run_in_threadpool(
            self.s3_client.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )

    async def ping(self) -> bool:
        try:
            await run_in_threadpool(self.s3_client.head_bucket, Bucket=self.bucket)
            return True
        except ClientError as e:
            logger.error(f"S3 health check failed: {e}")
            return False
