from __future__ import annotations

import asyncio
import atexit
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aioboto3
from botocore.config import Config

from imgops.io.credentials import StorageCredentials
from imgops.io.decorators import _bg_run, blocking

logger = logging.getLogger(__name__)


# ----------------------------------- dataclasses -------------------------------------------
@dataclass
class StorageConfig:
    """Configuration for StorageApi client."""

    service_name: str = "s3"
    addressing_style: str = "auto"
    max_pool_connections: int = 10
    read_timeout: int = 60
    connect_timeout: int = 10
    max_retries: int = 5
    multipart_threshold: int = 64 * 1024 * 1024  # 64 MiB
    part_size: int = 8 * 1024 * 1024  # 8 MiB

    def to_boto3_config(self, extra: Optional[Dict[str, Any]] = None) -> Config:
        """Convert to boto3 Config object."""
        s3_cfg = {"addressing_style": self.addressing_style}
        if extra and isinstance(extra.get(self.service_name), dict):
            s3_cfg.update(extra[self.service_name])
        return Config(
            signature_version="s3v4",
            s3=s3_cfg,
            retries={"max_attempts": self.max_retries, "mode": "standard"},
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            max_pool_connections=self.max_pool_connections,
        )


# --------------- Object Operations ---------------------------------------------
class ObjectOperations:
    """Object-related operations."""

    def __init__(self, api: StorageApi):
        self._api = api

    @blocking
    async def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> str:
        """Upload object from bytes. Returns its ETag."""
        return await self._put(bucket, key, body, content_type, metadata, **kwargs)

    async def _put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> str:
        await self._api._ensure_connected()
        params = {"Bucket": bucket, "Key": key, "Body": body}
        params.update(self._build_put_params(content_type, metadata, kwargs))

        resp = await self._api._client.put_object(**params)
        return resp.get("ETag", "")

    @staticmethod
    def _build_put_params(
        content_type: Optional[str], metadata: Optional[Dict[str, str]], kwargs: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Build optional parameters for put_object / create_multipart_upload."""
        params = {}
        if content_type:
            params["ContentType"] = content_type
        if metadata:
            params["Metadata"] = metadata

        for param, snake_case in (
            ("ACL", "acl"),
            ("CacheControl", "cache_control"),
            ("ContentDisposition", "content_disposition"),
        ):
            if snake_case in kwargs:
                params[param] = kwargs[snake_case]

        return params


# ----------------------------------------------------------------------------------
# --------------- StorageApi Class -------------------------------------------------
# ----------------------------------------------------------------------------------
class StorageApi:
    """
    Async S3 client wrapper built on aioboto3.

    One instance (and one underlying client) is meant to be created per
    process and shared by all in-flight operations.
    """

    def __init__(
        self,
        credentials: Optional[StorageCredentials] = None,
        config: Optional[StorageConfig] = None,
        extra_config: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Args:
            credentials: Storage credentials; read from the environment when omitted.
            config: Client tuning (timeouts, retries, multipart sizes).
            extra_config: Extra configuration for boto3 Config.
        """
        self._credentials = credentials or StorageCredentials()
        self._raw_config = config or StorageConfig()
        self._config = self._raw_config.to_boto3_config(extra=extra_config)
        self._session = aioboto3.Session()
        self._client_cm = None
        self._client = None  # type: ignore
        self._asyncio_lock: Optional[asyncio.Lock] = None

        self.objects = ObjectOperations(self)

        atexit.register(self._close_at_exit)

    # --------------- Properties ---------------
    @property
    def is_connected(self) -> bool:
        """Check if client is connected."""
        return self._client is not None

    # --------------- Connection Management ---------------
    async def _get_lock(self) -> asyncio.Lock:
        """Get or create the asyncio lock (lazy initialization)."""
        if self._asyncio_lock is None:
            self._asyncio_lock = asyncio.Lock()
        return self._asyncio_lock

    async def _connect(self) -> StorageApi:
        """Explicitly open the underlying S3 client."""
        if self.is_connected:
            return self
        lock = await self._get_lock()
        async with lock:
            if self.is_connected:
                return self
            self._client_cm = self._session.client(
                service_name=self._raw_config.service_name,
                config=self._config,
                **self._credentials.client_kwargs(),
            )
            self._client = await self._client_cm.__aenter__()  # type: ignore
            logger.debug(f"Connected to {self._raw_config.service_name} storage")
        return self

    async def _close(self) -> None:
        """Explicitly close the underlying S3 client."""
        if self._client_cm is not None:
            await self._client_cm.__aexit__(None, None, None)
        self._client = None
        self._client_cm = None

    async def _ensure_connected(self) -> None:
        if self.is_connected:
            return
        await self._connect()

    @blocking
    async def close(self) -> None:
        await self._close()

    def _close_at_exit(self) -> None:
        if self._client_cm is not None:
            _bg_run(self._close(), timeout=5)

    # --------------- Uploads ---------------
    @blocking
    async def upload(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Uploads a buffer. Uses single PUT for small bodies; multipart for large ones.
        Returns ETag (for multipart, the ETag is not a simple MD5).
        """
        await self._ensure_connected()
        if len(body) < self._raw_config.multipart_threshold:
            etag = await self.objects._put(
                bucket=bucket,
                key=key,
                body=body,
                content_type=content_type,
                metadata=metadata,
            )
            logger.debug(f"Uploaded {len(body)} bytes to s3://{bucket}/{key}")
            return etag

        create_params: Dict[str, Any] = {"Bucket": bucket, "Key": key}
        create_params.update(ObjectOperations._build_put_params(content_type, metadata, {}))

        resp = await self._client.create_multipart_upload(**create_params)
        upload_id = resp["UploadId"]
        parts: List[Dict[str, Any]] = []
        part_size = self._raw_config.part_size

        try:
            for part_number, offset in enumerate(range(0, len(body), part_size), start=1):
                up = await self._client.upload_part(
                    Bucket=bucket,
                    Key=key,
                    PartNumber=part_number,
                    UploadId=upload_id,
                    Body=body[offset : offset + part_size],
                )
                parts.append({"PartNumber": part_number, "ETag": up["ETag"]})

            complete = await self._client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
            )
        except Exception:
            try:
                await self._client.abort_multipart_upload(
                    Bucket=bucket, Key=key, UploadId=upload_id
                )
            except Exception:
                logger.warning(f"Unable to abort multipart upload {upload_id} of {key!r}")
            raise
        logger.debug(f"Uploaded {len(body)} bytes in {len(parts)} parts to s3://{bucket}/{key}")
        return complete.get("ETag", "")
