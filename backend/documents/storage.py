"""Artifact store adapters.

Artifacts are write-once PDF blobs addressed by an opaque locator. The local
backend keeps them under ``PRIVATE_STORAGE_ROOT`` and hands out signed
download tokens served by this app; the S3 backend (AWS or MinIO) hands out
presigned GET URLs.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone as dt_timezone
from pathlib import Path
from typing import Iterator, Optional

from django.conf import settings
from django.core import signing
from django.urls import reverse

from .exceptions import NotFoundError, StorageError


logger = logging.getLogger(__name__)

DOWNLOAD_TOKEN_SALT = "documents.artifact-download"


def artifact_key(doc_type: str, document_id) -> str:
    return f"documents/{doc_type}/{document_id}.pdf"


def _safe_join_private(root: Path, relpath: str) -> Path:
    rel = Path(relpath)
    if rel.is_absolute():
        raise ValueError("Absolute paths are not allowed")

    final = (root / rel).resolve()
    root_resolved = root.resolve()
    if root_resolved not in final.parents and final != root_resolved:
        raise ValueError("Invalid path")
    return final


class ArtifactStore:
    backend_name = ""

    def put(self, data: bytes, suggested_key: str) -> str:
        raise NotImplementedError

    def signed_url(self, locator: str, ttl_seconds: int) -> str:
        raise NotImplementedError

    def open(self, locator: str) -> bytes:
        raise NotImplementedError

    def exists(self, locator: str) -> bool:
        raise NotImplementedError

    def delete(self, locator: str) -> None:
        raise NotImplementedError

    def list_artifacts(self, prefix: str = "documents/") -> Iterator[tuple[str, datetime]]:
        raise NotImplementedError


class LocalArtifactStore(ArtifactStore):
    backend_name = "local"

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _path(self, locator: str) -> Path:
        try:
            return _safe_join_private(self.root, locator)
        except ValueError as e:
            raise StorageError("Invalid artifact locator.", details={"locator": locator}) from e

    def put(self, data: bytes, suggested_key: str) -> str:
        path = self._path(suggested_key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # "x" mode fails if the file exists: artifacts are write-once.
            with open(path, "xb") as fh:
                fh.write(data)
        except FileExistsError as e:
            raise StorageError("Artifact already exists.", details={"locator": suggested_key}) from e
        except OSError as e:
            logger.error("documents.storage_failed", extra={"locator": suggested_key, "op": "put"})
            raise StorageError(details={"locator": suggested_key}) from e
        return suggested_key

    def exists(self, locator: str) -> bool:
        return self._path(locator).is_file()

    def signed_url(self, locator: str, ttl_seconds: int) -> str:
        if not self.exists(locator):
            raise NotFoundError("Artifact not found.", details={"locator": locator})
        token = signing.dumps(
            {"locator": locator, "exp": int(time.time()) + int(ttl_seconds)},
            salt=DOWNLOAD_TOKEN_SALT,
        )
        return reverse("documents:artifact-download", kwargs={"token": token})

    def resolve_token(self, token: str) -> str:
        """Return the locator a download token points at, or raise NotFoundError."""

        try:
            payload = signing.loads(token, salt=DOWNLOAD_TOKEN_SALT)
        except signing.BadSignature as e:
            raise NotFoundError("Invalid download link.") from e

        locator = payload.get("locator") if isinstance(payload, dict) else None
        exp = payload.get("exp") if isinstance(payload, dict) else None
        if not locator or not isinstance(exp, int) or exp < int(time.time()):
            raise NotFoundError("Download link expired.")
        return locator

    def open(self, locator: str) -> bytes:
        path = self._path(locator)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError("Artifact not found.", details={"locator": locator}) from e
        except OSError as e:
            logger.error("documents.storage_failed", extra={"locator": locator, "op": "open"})
            raise StorageError(details={"locator": locator}) from e

    def delete(self, locator: str) -> None:
        try:
            self._path(locator).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(details={"locator": locator}) from e

    def list_artifacts(self, prefix: str = "documents/") -> Iterator[tuple[str, datetime]]:
        base = self._path(prefix) if prefix else self.root
        if not base.is_dir():
            return
        root_resolved = self.root.resolve()
        for path in sorted(base.rglob("*")):
            if not path.is_file():
                continue
            locator = path.resolve().relative_to(root_resolved).as_posix()
            modified = datetime.fromtimestamp(path.stat().st_mtime, tz=dt_timezone.utc)
            yield locator, modified


class S3ArtifactStore(ArtifactStore):
    backend_name = "s3"

    def __init__(
        self,
        *,
        bucket: str,
        endpoint_url: str = "",
        access_key_id: str = "",
        secret_access_key: str = "",
        region_name: str = "us-east-1",
        client=None,
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.region_name = region_name
        self._client = client

    def _get_client(self):
        """Lazy initialization of the S3/MinIO client."""

        if self._client is None:
            import boto3  # noqa: PLC0415
            from botocore.config import Config  # noqa: PLC0415

            self._client = boto3.client(
                "s3",
                endpoint_url=self.endpoint_url or None,
                aws_access_key_id=self.access_key_id or None,
                aws_secret_access_key=self.secret_access_key or None,
                region_name=self.region_name,
                config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
            )
        return self._client

    @staticmethod
    def _is_missing(error) -> bool:
        code = str(getattr(error, "response", {}).get("Error", {}).get("Code", ""))
        return code in {"404", "NoSuchKey", "NotFound"}

    def exists(self, locator: str) -> bool:
        from botocore.exceptions import BotoCoreError, ClientError  # noqa: PLC0415

        try:
            self._get_client().head_object(Bucket=self.bucket, Key=locator)
            return True
        except ClientError as e:
            if self._is_missing(e):
                return False
            raise StorageError(details={"locator": locator}) from e
        except BotoCoreError as e:
            raise StorageError(details={"locator": locator}) from e

    def put(self, data: bytes, suggested_key: str) -> str:
        from botocore.exceptions import BotoCoreError, ClientError  # noqa: PLC0415

        if self.exists(suggested_key):
            raise StorageError("Artifact already exists.", details={"locator": suggested_key})
        try:
            self._get_client().put_object(
                Bucket=self.bucket,
                Key=suggested_key,
                Body=data,
                ContentType="application/pdf",
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("documents.storage_failed", extra={"locator": suggested_key, "op": "put"})
            raise StorageError(details={"locator": suggested_key}) from e
        return suggested_key

    def signed_url(self, locator: str, ttl_seconds: int) -> str:
        from botocore.exceptions import BotoCoreError, ClientError  # noqa: PLC0415

        if not self.exists(locator):
            raise NotFoundError("Artifact not found.", details={"locator": locator})
        try:
            return self._get_client().generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": locator},
                ExpiresIn=int(ttl_seconds),
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(details={"locator": locator}) from e

    def open(self, locator: str) -> bytes:
        from botocore.exceptions import BotoCoreError, ClientError  # noqa: PLC0415

        try:
            obj = self._get_client().get_object(Bucket=self.bucket, Key=locator)
            return obj["Body"].read()
        except ClientError as e:
            if self._is_missing(e):
                raise NotFoundError("Artifact not found.", details={"locator": locator}) from e
            raise StorageError(details={"locator": locator}) from e
        except BotoCoreError as e:
            raise StorageError(details={"locator": locator}) from e

    def delete(self, locator: str) -> None:
        from botocore.exceptions import BotoCoreError, ClientError  # noqa: PLC0415

        try:
            self._get_client().delete_object(Bucket=self.bucket, Key=locator)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(details={"locator": locator}) from e

    def list_artifacts(self, prefix: str = "documents/") -> Iterator[tuple[str, datetime]]:
        from botocore.exceptions import BotoCoreError, ClientError  # noqa: PLC0415

        try:
            paginator = self._get_client().get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []) or []:
                    yield obj["Key"], obj["LastModified"]
        except (BotoCoreError, ClientError) as e:
            raise StorageError(details={"prefix": prefix}) from e


def build_artifact_store(backend: Optional[str] = None) -> ArtifactStore:
    backend = (backend or settings.ARTIFACT_STORE_BACKEND or "local").strip().lower()
    if backend == "local":
        return LocalArtifactStore(settings.PRIVATE_STORAGE_ROOT)
    if backend == "s3":
        return S3ArtifactStore(
            bucket=settings.S3_BUCKET_NAME,
            endpoint_url=settings.S3_ENDPOINT_URL,
            access_key_id=settings.S3_ACCESS_KEY_ID,
            secret_access_key=settings.S3_SECRET_ACCESS_KEY,
            region_name=settings.S3_REGION_NAME,
        )
    raise ValueError(f"Unknown ARTIFACT_STORE_BACKEND: {backend}")
