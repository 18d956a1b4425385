from __future__ import annotations

import asyncio
import io
import os
import pathlib
import re
import time
from typing import Optional

import aiofiles
import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.errors import StorageFailure


def sanitize_filename(filename: str, default: str = "image") -> str:
    name = pathlib.Path(filename or default).name
    return re.sub(r"[^A-Za-z0-9._-]", "_", name).strip("._") or default


def unique_name(prefix: str, filename: str) -> str:
    """``<prefix>_<millis>.<ext>``, the naming scheme the buckets already use."""
    suffix = pathlib.Path(sanitize_filename(filename)).suffix.lower()
    return f"{prefix}_{int(time.time() * 1000)}{suffix}"


class ImageStorage:
    """Object storage for avatars and GeoThinkr photos: put(bytes) -> public URL."""

    backend_name = "base"

    async def put(self, folder: str, filename: str, data: bytes, content_type: Optional[str] = None) -> str:  # pragma: no cover
        raise NotImplementedError

    async def delete_url(self, url: str) -> None:  # pragma: no cover - interface only
        raise NotImplementedError


class LocalImageStorage(ImageStorage):
    backend_name = "local"

    def __init__(self, base_path: Optional[str] = None, public_base_url: Optional[str] = None) -> None:
        base_path = base_path or os.getenv("IMAGE_LOCAL_PATH", "storage/images")
        self.base_path = pathlib.Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or os.getenv("IMAGE_PUBLIC_BASE_URL", "/media")).rstrip("/")

    def _path_for(self, folder: str, filename: str) -> pathlib.Path:
        directory = (self.base_path / sanitize_filename(folder, "misc")).resolve()
        directory.mkdir(parents=True, exist_ok=True)
        path = (directory / sanitize_filename(filename)).resolve()
        if not path.is_relative_to(self.base_path):
            raise StorageFailure("Invalid image path")
        return path

    def _path_for_url(self, url: str) -> Optional[pathlib.Path]:
        prefix = self.public_base_url + "/"
        if not url.startswith(prefix):
            return None
        candidate = (self.base_path / url[len(prefix):]).resolve()
        if not candidate.is_relative_to(self.base_path):
            return None
        return candidate

    async def put(self, folder: str, filename: str, data: bytes, content_type: Optional[str] = None) -> str:
        path = self._path_for(folder, filename)
        try:
            async with aiofiles.open(path, "wb") as buffer:
                await buffer.write(data)
        except OSError as exc:
            raise StorageFailure(f"Failed to store image: {exc}") from exc
        relative = path.relative_to(self.base_path).as_posix()
        return f"{self.public_base_url}/{relative}"

    async def delete_url(self, url: str) -> None:
        path = self._path_for_url(url)
        if path is None:
            return
        try:
            path.unlink()
        except FileNotFoundError:  # pragma: no cover - fine if already gone
            pass


class S3ImageStorage(ImageStorage):
    backend_name = "s3"

    def __init__(self) -> None:
        bucket = os.getenv("IMAGE_S3_BUCKET")
        if not bucket:
            raise RuntimeError("IMAGE_S3_BUCKET must be set for S3 storage")
        self.bucket = bucket
        endpoint = os.getenv("IMAGE_S3_ENDPOINT")
        self.client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            region_name=os.getenv("IMAGE_S3_REGION"),
        )
        default_public = f"{endpoint.rstrip('/')}/{bucket}" if endpoint else f"https://{bucket}.s3.amazonaws.com"
        self.public_url = os.getenv("IMAGE_S3_PUBLIC_URL", default_public).rstrip("/")

    async def put(self, folder: str, filename: str, data: bytes, content_type: Optional[str] = None) -> str:
        key = f"{sanitize_filename(folder, 'misc')}/{sanitize_filename(filename)}"
        extra = {"ContentType": content_type} if content_type else None

        def _upload():
            self.client.upload_fileobj(io.BytesIO(data), self.bucket, key, ExtraArgs=extra)

        try:
            await asyncio.to_thread(_upload)
        except (BotoCoreError, ClientError) as exc:  # pragma: no cover
            raise StorageFailure(f"Failed to store image: {exc}") from exc
        return f"{self.public_url}/{key}"

    async def delete_url(self, url: str) -> None:
        prefix = self.public_url + "/"
        if not url.startswith(prefix):
            return
        await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=url[len(prefix):])


_storage: Optional[ImageStorage] = None


def get_image_storage() -> ImageStorage:
    global _storage
    if _storage is not None:
        return _storage

    backend = os.getenv("IMAGE_STORAGE", "local").lower()
    if backend == "local":
        _storage = LocalImageStorage()
    elif backend == "s3":
        _storage = S3ImageStorage()
    else:  # pragma: no cover - configuration error
        raise RuntimeError(f"Unsupported IMAGE_STORAGE backend: {backend}")
    return _storage
