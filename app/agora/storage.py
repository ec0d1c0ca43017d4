from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from werkzeug.utils import secure_filename

from app.agora.constants import ALLOWED_PICTURE_EXTENSIONS

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "uploads/"


class StorageError(RuntimeError):
    pass


class Storage:
    """Flat key/value blob store; keys look like ``uploads/<user_id>/<name>``."""

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise NotImplementedError

    def open(self, key: str) -> BinaryIO:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalStorage(Storage):
    root: Path

    def _path(self, key: str) -> Path:
        root = self.root.resolve()
        p = (root / key.lstrip("/").replace("\\", "/")).resolve()
        if not p.is_relative_to(root):
            raise StorageError(f"Storage key escapes root: {key!r}")
        return p

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def open(self, key: str) -> BinaryIO:
        return self._path(key).open("rb")

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


@dataclass(frozen=True)
class S3Storage(Storage):
    """S3-compatible bucket (DigitalOcean Spaces, MinIO, AWS)."""

    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    def _client(self):
        import boto3

        return boto3.client(
            "s3",
            endpoint_url=f"https://{self.endpoint}" if self.endpoint else None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        extra: dict[str, object] = {"ContentType": content_type} if content_type else {}
        self._client().put_object(Bucket=self.bucket, Key=key, Body=data, **extra)

    def open(self, key: str) -> BinaryIO:
        return self._client().get_object(Bucket=self.bucket, Key=key)["Body"]  # type: ignore[return-value]

    def exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self._client().head_object(Bucket=self.bucket, Key=key)
        except ClientError:
            return False
        return True

    def delete(self, key: str) -> None:
        self._client().delete_object(Bucket=self.bucket, Key=key)


def storage_from_config(config) -> Storage:
    if (config.get("STORAGE_BACKEND") or "local").strip().lower() == "s3":
        return S3Storage(
            endpoint=(config.get("S3_ENDPOINT") or "").strip(),
            region=(config.get("S3_REGION") or "nyc3").strip(),
            bucket=(config.get("S3_BUCKET") or "").strip(),
            access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
            secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
        )
    root = (config.get("UPLOAD_ROOT") or "").strip()
    return LocalStorage(root=Path(root) if root else Path(os.getcwd()) / "storage")


def build_profile_picture_key(user_id: int, filename: str, *, now: float | None = None) -> str:
    """uploads/<user_id>/<millis>-<secure filename>; raises StorageError for non-image names."""
    safe_filename = secure_filename(filename or "")
    ext = os.path.splitext(safe_filename)[1].lower()
    if not safe_filename or ext not in ALLOWED_PICTURE_EXTENSIONS:
        raise StorageError("Profile picture must be a PNG, JPEG, GIF or WebP image.")
    millis = int((now if now is not None else time.time()) * 1000)
    return f"{UPLOAD_PREFIX}{user_id}/{millis}-{safe_filename}"


def save_profile_picture(
    storage: Storage,
    user_id: int,
    filename: str,
    data: bytes,
    *,
    content_type: str | None = None,
) -> str:
    key = build_profile_picture_key(user_id, filename)
    storage.put_bytes(key, data, content_type=content_type)
    return key


def discard_profile_picture(storage: Storage, key: str | None) -> None:
    if not key or not key.startswith(UPLOAD_PREFIX):
        return
    try:
        storage.delete(key)
    except Exception:
        logger.warning("Could not delete profile picture %s", key, exc_info=True)
