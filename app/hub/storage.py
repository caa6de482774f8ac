"""
Blob storage for user uploads (chat images) and generated AI images.

Two backends: a directory under ./storage for development and tests, and any
S3-compatible bucket (DigitalOcean Spaces in production).
"""

from __future__ import annotations

import os
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from functools import cached_property
from pathlib import Path
from typing import BinaryIO

from werkzeug.utils import secure_filename


class StorageError(RuntimeError):
    """Missing object or a key that would resolve outside the storage root."""


class Storage:
    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise NotImplementedError

    def open(self, key: str) -> BinaryIO:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalStorage(Storage):
    root: Path

    def _resolve(self, key: str) -> Path:
        base = self.root.resolve()
        target = (base / key.replace("\\", "/").lstrip("/")).resolve()
        if base not in target.parents:
            raise StorageError(f"Invalid storage key: {key}")
        return target

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        target = self._resolve(key)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def open(self, key: str) -> BinaryIO:
        target = self._resolve(key)
        if not target.is_file():
            raise StorageError(f"No stored object at {key}")
        return target.open("rb")


@dataclass(frozen=True)
class S3Storage(Storage):
    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    @cached_property
    def client(self):
        import boto3

        return boto3.client(
            "s3",
            endpoint_url=f"https://{self.endpoint}" if self.endpoint else None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        params = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        self.client.put_object(**params)

    def open(self, key: str) -> BinaryIO:
        from botocore.exceptions import ClientError

        try:
            return self.client.get_object(Bucket=self.bucket, Key=key)["Body"]
        except ClientError as e:
            raise StorageError(f"No stored object at {key}") from e


def storage_from_config(config) -> Storage:
    if (config.get("STORAGE_BACKEND") or "local").strip().lower() != "s3":
        return LocalStorage(root=Path(os.getcwd()) / "storage")

    def opt(name: str, default: str = "") -> str:
        return (config.get(name) or default).strip()

    return S3Storage(
        endpoint=opt("S3_ENDPOINT"),
        region=opt("S3_REGION", "nyc3"),
        bucket=opt("S3_BUCKET"),
        access_key_id=opt("S3_ACCESS_KEY_ID"),
        secret_access_key=opt("S3_SECRET_ACCESS_KEY"),
    )


def build_ai_image_key(user_id: int, image_type: str, now: datetime | None = None) -> str:
    stamp = (now or datetime.utcnow()).strftime("%Y%m%d%H%M%S")
    return f"ai-images/{user_id}/{stamp}-{image_type}-{secrets.token_hex(4)}.png"


def build_chat_image_key(user_id: int, filename: str) -> str:
    """Keys are always prefixed `{user_id}/chat/`; ownership checks rely on it."""
    safe = secure_filename(filename or "")
    ext = safe.rsplit(".", 1)[-1].lower() if "." in safe else "bin"
    return f"{user_id}/chat/{int(time.time() * 1000)}-{secrets.token_hex(3)}.{ext}"
