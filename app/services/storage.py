"""Blob storage for group chat attachments.

Attachments are addressed by an opaque, ``/``-separated storage key such as
``groups/<group_id>/<uuid>.pdf``. Two backends exist: a local directory tree
for development and tests, and an S3-compatible bucket for hosted storage.
"""

import enum
import errno
import logging
import uuid
from pathlib import Path, PurePosixPath

import boto3
from botocore.exceptions import BotoCoreError, ClientError, ConnectionError as BotoConnectionError, ReadTimeoutError

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
TRANSIENT_CODES = {"RequestTimeout", "SlowDown", "Throttling", "ThrottlingException", "ServiceUnavailable", "InternalError"}
TRANSIENT_ERRNOS = {errno.EAGAIN, errno.EBUSY, errno.EINTR, errno.EIO, errno.ETIMEDOUT}


class DeleteOutcome(str, enum.Enum):
    DELETED = "deleted"
    NOT_FOUND = "not_found"


class StoreError(Exception):
    """The object store refused an operation and retrying will not help."""


class TransientStoreError(StoreError):
    """Network, timeout or throttling failure that may succeed on retry."""


def validate_key(key: str) -> str:
    path = PurePosixPath(key)
    if not key or path.is_absolute() or ".." in path.parts or "\\" in key:
        raise ValueError(f"Invalid storage key: {key!r}")
    return str(path)


def build_attachment_key(group_id: str, filename: str | None) -> str:
    ext = PurePosixPath(filename or "").suffix.lower()[:16]
    return f"groups/{group_id}/{uuid.uuid4()}{ext}"


class LocalObjectStore:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path_for(self, key: str) -> Path:
        return self.root / validate_key(key)

    def put_blob(self, key: str, data: bytes, content_type: str | None = None) -> None:
        target = self._path_for(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise _local_error(exc) from exc

    def delete_blob(self, key: str) -> DeleteOutcome:
        target = self._path_for(key)
        try:
            target.unlink()
        except FileNotFoundError:
            return DeleteOutcome.NOT_FOUND
        except OSError as exc:
            raise _local_error(exc) from exc
        return DeleteOutcome.DELETED

    def exists(self, key: str) -> bool:
        return self._path_for(key).is_file()


def _local_error(exc: OSError) -> StoreError:
    if exc.errno in TRANSIENT_ERRNOS:
        return TransientStoreError(str(exc))
    return StoreError(str(exc))


class S3ObjectStore:
    def __init__(self, bucket: str, client=None, endpoint_url: str | None = None, region: str | None = None) -> None:
        self.bucket = bucket
        self.client = client or boto3.client("s3", endpoint_url=endpoint_url, region_name=region)

    def put_blob(self, key: str, data: bytes, content_type: str | None = None) -> None:
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=self.bucket, Key=validate_key(key), Body=data, **extra)
        except (BotoCoreError, ClientError) as exc:
            raise _s3_error(exc) from exc

    def delete_blob(self, key: str) -> DeleteOutcome:
        key = validate_key(key)
        try:
            # delete_object succeeds for missing keys, so probe first to report NOT_FOUND.
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _s3_code(exc) in NOT_FOUND_CODES:
                return DeleteOutcome.NOT_FOUND
            raise _s3_error(exc) from exc
        except BotoCoreError as exc:
            raise _s3_error(exc) from exc
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            if isinstance(exc, ClientError) and _s3_code(exc) in NOT_FOUND_CODES:
                return DeleteOutcome.NOT_FOUND
            raise _s3_error(exc) from exc
        return DeleteOutcome.DELETED


def _s3_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _s3_error(exc: Exception) -> StoreError:
    if isinstance(exc, (BotoConnectionError, ReadTimeoutError)):
        return TransientStoreError(str(exc))
    if isinstance(exc, ClientError):
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        if _s3_code(exc) in TRANSIENT_CODES or status >= 500:
            return TransientStoreError(str(exc))
    return StoreError(str(exc))


def get_object_store(settings: Settings | None = None) -> LocalObjectStore | S3ObjectStore:
    settings = settings or get_settings()
    if settings.storage_backend == "s3":
        logger.info("object_store_selected", extra={"backend": "s3", "bucket": settings.s3_bucket})
        return S3ObjectStore(settings.s3_bucket, endpoint_url=settings.s3_endpoint_url, region=settings.s3_region)
    return LocalObjectStore(settings.storage_dir)
