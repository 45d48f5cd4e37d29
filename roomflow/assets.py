"""Asset service clients turning uploaded bytes into opaque asset refs."""

from __future__ import annotations

import hashlib
import logging
from typing import Dict, Optional, Protocol

import httpx

from .config import AssetConfig
from .contracts import AssetRef
from .errors import WorkflowError

logger = logging.getLogger(__name__)


class AssetUploadFailed(WorkflowError):
    code = "asset_upload_failed"


class AssetService(Protocol):
    """Stores media and hands back a reference the workflow can keep."""

    async def upload(self, data: bytes, filename: str = "upload.bin", content_type: str = "application/octet-stream") -> AssetRef:
        """Store ``data`` and return its reference."""


class InMemoryAssetService(AssetService):
    """Content-addressed store kept in process memory."""

    def __init__(self, prefix: str = "mem://") -> None:
        self._prefix = prefix
        self._blobs: Dict[AssetRef, bytes] = {}

    async def upload(self, data: bytes, filename: str = "upload.bin", content_type: str = "application/octet-stream") -> AssetRef:
        ref = f"{self._prefix}{hashlib.sha256(data).hexdigest()}"
        self._blobs[ref] = data
        return ref

    def get(self, ref: AssetRef) -> Optional[bytes]:
        return self._blobs.get(ref)


class HttpAssetService(AssetService):
    """Upload media to the asset HTTP endpoint.

    The endpoint accepts a multipart ``file`` field on ``POST /upload`` and
    answers with JSON carrying the stored asset's ``url`` (or ``ref``).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None

    @classmethod
    def from_config(cls, config: AssetConfig) -> "HttpAssetService":
        if not config.base_url:
            raise ValueError("assets.base_url is not configured")
        return cls(config.base_url, timeout=config.timeout)

    async def upload(self, data: bytes, filename: str = "upload.bin", content_type: str = "application/octet-stream") -> AssetRef:
        try:
            response = await self._client.post("/upload", files={"file": (filename, data, content_type)})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Asset upload of {filename} failed: {exc}")
            raise AssetUploadFailed(f"upload of {filename} failed: {exc}") from exc
        body = response.json()
        ref = body.get("url") or body.get("ref")
        if not ref:
            raise AssetUploadFailed(f"asset service returned no reference for {filename}")
        logger.debug(f"Uploaded {filename} ({len(data)} bytes) as {ref}")
        return ref

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
