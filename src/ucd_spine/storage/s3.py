"""S3-compatible blob store."""

import asyncio

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ucd_spine.core.errors import StorageError
from ucd_spine.storage.base import BlobStore, ObjectInfo

logger = structlog.get_logger()

_NOT_FOUND = {"404", "NoSuchKey", "NotFound"}


class S3BlobStore(BlobStore):
    """
    S3-compatible object storage backend.

    Works with AWS S3, Cloudflare R2, MinIO and LocalStack. boto3 is
    synchronous, so every call is pushed to a worker thread.
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: str | None = None,
        region: str | None = None,
        client=None,
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.region = region

        if client is None:
            client_kwargs = {
                "service_name": "s3",
                "config": Config(signature_version="s3v4"),
            }
            if region:
                client_kwargs["region_name"] = region
            if endpoint_url:
                client_kwargs["endpoint_url"] = endpoint_url
            client = boto3.client(**client_kwargs)
        self.client = client

        logger.info("s3_blob_store.initialized", bucket=bucket, endpoint=endpoint_url, region=region)

    @staticmethod
    def _is_not_found(error: ClientError) -> bool:
        return error.response.get("Error", {}).get("Code") in _NOT_FOUND

    async def _call(self, op: str, key: str, fn, **kwargs):
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except ClientError as e:
            if self._is_not_found(e):
                return None
            raise StorageError(f"S3 {op} failed for {key}: {e}", cause=e).with_context(key=key)
        except BotoCoreError as e:
            raise StorageError(f"S3 {op} failed for {key}: {e}", cause=e).with_context(key=key)

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> ObjectInfo:
        key = key.lstrip("/")
        extra = {"ContentType": content_type} if content_type else {}
        response = await self._call(
            "put", key, self.client.put_object, Bucket=self.bucket, Key=key, Body=data, **extra
        )
        logger.debug("s3_blob_store.put", bucket=self.bucket, key=key, size=len(data))
        return ObjectInfo(
            key=key,
            size_bytes=len(data),
            content_type=content_type,
            checksum=(response or {}).get("ETag", "").strip('"') or None,
        )

    async def get(self, key: str) -> bytes | None:
        key = key.lstrip("/")
        response = await self._call("get", key, self.client.get_object, Bucket=self.bucket, Key=key)
        if response is None:
            return None
        return await asyncio.to_thread(response["Body"].read)

    async def head(self, key: str) -> ObjectInfo | None:
        key = key.lstrip("/")
        response = await self._call("head", key, self.client.head_object, Bucket=self.bucket, Key=key)
        if response is None:
            return None
        return ObjectInfo(
            key=key,
            size_bytes=response["ContentLength"],
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
            checksum=response.get("ETag", "").strip('"') or None,
        )

    async def delete(self, key: str) -> bool:
        key = key.lstrip("/")
        if await self.head(key) is None:
            return False
        await self._call("delete", key, self.client.delete_object, Bucket=self.bucket, Key=key)
        logger.debug("s3_blob_store.deleted", bucket=self.bucket, key=key)
        return True

    async def list(self, prefix: str = "") -> list[ObjectInfo]:
        prefix = prefix.lstrip("/")

        def _collect() -> list[ObjectInfo]:
            paginator = self.client.get_paginator("list_objects_v2")
            results = []
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    results.append(
                        ObjectInfo(
                            key=obj["Key"],
                            size_bytes=obj["Size"],
                            last_modified=obj.get("LastModified"),
                        )
                    )
            return results

        return await self._call("list", prefix, _collect) or []
