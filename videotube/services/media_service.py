"""Media uploads to Cloudinary.

Files arrive on local disk (spooled from multipart requests) and are pushed
to Cloudinary with a signed upload. The local copy is always removed.
"""

import hashlib
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from uuid import uuid4

import httpx
import structlog
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from videotube.config import get_settings

logger = structlog.get_logger(__name__)

CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/auto/upload"


@dataclass(frozen=True)
class UploadedMedia:
    """Result of a successful upload."""

    url: str
    public_id: Optional[str] = None
    resource_type: Optional[str] = None


def sign_upload_params(params: dict, api_secret: str) -> str:
    """Compute a Cloudinary request signature.

    Parameters are sorted by key, joined as ``k=v`` with ``&``, suffixed with
    the API secret and SHA-1 hashed.
    """
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()


async def spool_upload(upload: UploadFile, temp_dir: str | Path) -> Path:
    """Write an uploaded file to the temp directory under a unique name."""
    directory = Path(temp_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{uuid4().hex}{Path(upload.filename or '').suffix}"
    content = await upload.read()
    await run_in_threadpool(path.write_bytes, content)
    return path


def remove_local_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("local_file_cleanup_failed", path=str(path), error=str(e))


class MediaUploader:
    """Uploads local files to Cloudinary and returns their public URL."""

    def __init__(self):
        self.settings = get_settings()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.upload_timeout_seconds)
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @property
    def configured(self) -> bool:
        return bool(
            self.settings.cloudinary_cloud_name
            and self.settings.cloudinary_api_key
            and self.settings.cloudinary_api_secret
        )

    async def upload(self, local_path: str | Path | None) -> Optional[UploadedMedia]:
        """Upload a local file.

        Args:
            local_path: Path of the file to upload

        Returns:
            UploadedMedia, or None if there was nothing to upload or the
            upload failed
        """
        if not local_path:
            return None

        path = Path(local_path)
        try:
            if not path.is_file():
                logger.warning("media_upload_missing_file", path=str(path))
                return None

            if not self.configured:
                logger.error("media_upload_not_configured")
                return None

            return await self._upload(path)
        finally:
            remove_local_file(path)

    async def _upload(self, path: Path) -> Optional[UploadedMedia]:
        params = {"timestamp": int(time.time())}
        data = {
            **params,
            "api_key": self.settings.cloudinary_api_key,
            "signature": sign_upload_params(params, self.settings.cloudinary_api_secret),
        }
        url = CLOUDINARY_UPLOAD_URL.format(cloud_name=self.settings.cloudinary_cloud_name)
        content = await run_in_threadpool(path.read_bytes)

        client = await self._get_client()
        try:
            response = await client.post(
                url,
                data=data,
                files={"file": (path.name, content)},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "media_upload_failed",
                file=path.name,
                status_code=e.response.status_code,
            )
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                "media_upload_failed",
                file=path.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        media_url = body.get("secure_url") or body.get("url")
        if not media_url:
            logger.error("media_upload_missing_url", file=path.name)
            return None

        logger.info(
            "media_uploaded",
            file=path.name,
            public_id=body.get("public_id"),
            resource_type=body.get("resource_type"),
        )
        return UploadedMedia(
            url=media_url,
            public_id=body.get("public_id"),
            resource_type=body.get("resource_type"),
        )


_uploader: MediaUploader | None = None


def get_media_uploader() -> MediaUploader:
    """Return the process-wide uploader (shares one HTTP client)."""
    global _uploader
    if _uploader is None:
        _uploader = MediaUploader()
    return _uploader


async def close_media_uploader() -> None:
    global _uploader
    if _uploader is not None:
        await _uploader.close()
        _uploader = None
