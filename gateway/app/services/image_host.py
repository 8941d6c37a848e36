"""
Public URL strategies for generated images.

``direct`` hands out the generation backend's CDN link as-is. ``rehost``
copies the image into our Qiniu bucket so public links outlive the
upstream provider's URL lifetime.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Protocol

import httpx
from qiniu import Auth, put_data

logger = logging.getLogger("gateway.image_host")


class ImageHostError(Exception):
    """Raised when an image cannot be copied into object storage."""


class ImageHost(Protocol):
    strategy: str

    async def publish(self, source_url: str) -> str:
        ...


class DirectImageHost:
    strategy = "direct"

    async def publish(self, source_url: str) -> str:
        return source_url


def timestamp_key(now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"images/{now_ms}.jpeg"


class QiniuImageHost:
    strategy = "rehost"

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        bucket: str,
        domain: str,
        timeout_seconds: float = 60.0,
        client: httpx.AsyncClient | None = None,
        key_factory: Callable[[], str] = timestamp_key,
    ):
        if not all([access_key, secret_key, bucket, domain]):
            raise ValueError(
                "Qiniu is not configured; set QINIU_ACCESS_KEY/QINIU_SECRET_KEY/QINIU_BUCKET/QINIU_DOMAIN"
            )
        self._auth = Auth(access_key, secret_key)
        self.bucket = bucket
        self.domain = domain.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client or httpx.AsyncClient(timeout=self.timeout_seconds)
        self._key_factory = key_factory

    async def _download(self, source_url: str) -> bytes:
        try:
            response = await self._client.get(source_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ImageHostError(f"download failed: {type(exc).__name__}") from exc
        if not response.content:
            raise ImageHostError("download returned an empty body")
        return response.content

    def _upload(self, key: str, data: bytes) -> str:
        token = self._auth.upload_token(self.bucket, key, 3600)
        ret, info = put_data(token, key, data, mime_type="image/jpeg")
        status = getattr(info, "status_code", None)
        if status != 200 or not ret:
            raise ImageHostError(f"upload failed: status={status}")
        return f"{self.domain}/{ret.get('key', key)}"

    async def publish(self, source_url: str) -> str:
        data = await self._download(source_url)
        key = self._key_factory()
        # The Qiniu SDK is blocking (requests underneath).
        url = await asyncio.to_thread(self._upload, key, data)
        logger.info("Image re-hosted", extra={"key": key, "bytes": len(data)})
        return url

    async def aclose(self) -> None:
        await self._client.aclose()


def build_image_host(settings) -> ImageHost:
    if settings.image_url_strategy == "rehost":
        return QiniuImageHost(
            access_key=settings.qiniu_access_key,
            secret_key=settings.qiniu_secret_key,
            bucket=settings.qiniu_bucket,
            domain=settings.qiniu_domain,
            timeout_seconds=settings.generation_timeout_seconds,
        )
    return DirectImageHost()
