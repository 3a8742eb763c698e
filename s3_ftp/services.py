from __future__ import annotations
"""Object storage access for navigation and transfer commands."""
import logging
from typing import BinaryIO, Callable, Optional, Protocol

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .errors import ObjectNotFoundError, StorageOperationError, TransferInterruptedError
from .glacier import parse_restore_header
from .models import ObjectDetails, RestoreRequest, normalize_storage_class
from .transfer import ProgressFn, ProgressTracker, copy_stream

LOGGER = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound", "NoSuchBucket"})


class StorageBackend(Protocol):
    """Capabilities the command handlers need from an object store."""

    def list_buckets(self) -> list[str]:
        ...

    def list_objects(self, bucket: str, prefix: str = "", recursive: bool = False) -> list[ObjectDetails]:
        ...

    def head_object(self, bucket: str, key: str) -> ObjectDetails:
        ...

    def download(
        self, bucket: str, key: str, sink: BinaryIO, progress: Optional[ProgressFn] = None
    ) -> int:
        ...

    def upload(
        self,
        bucket: str,
        key: str,
        source: BinaryIO,
        size: Optional[int],
        storage_class: str = "",
        progress: Optional[ProgressFn] = None,
    ) -> None:
        ...

    def restore_object(self, request: RestoreRequest) -> None:
        ...


def _format_timestamp(value: object) -> str:
    if not value:
        return ""
    try:
        return value.strftime(TIMESTAMP_FORMAT)  # type: ignore[attr-defined]
    except AttributeError:
        return str(value)


def _wrap_error(operation: str, key: Optional[str], exc: Exception) -> StorageOperationError:
    if isinstance(exc, ClientError):
        code = str(exc.response.get("Error", {}).get("Code", ""))
        if code in NOT_FOUND_CODES:
            return ObjectNotFoundError(operation, key, exc)
    return StorageOperationError(operation, key, exc)


class S3Service:
    """boto3 implementation of :class:`StorageBackend`."""

    def __init__(
        self,
        *,
        region: str | None = None,
        profile: str | None = None,
        endpoint_url: str | None = None,
        client_factory: Callable[..., object] | None = None,
    ):
        self._region = region or None
        self._profile = profile or None
        self._endpoint_url = endpoint_url or None
        self._client_factory = client_factory or self._default_client_factory
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _default_client_factory(self, service_name: str, **kwargs):
        session = boto3.Session(profile_name=self._profile, region_name=self._region)
        return session.client(service_name, **kwargs)

    def _create_client(self):
        config = Config(signature_version="s3v4")
        kwargs = {"config": config}
        if self._endpoint_url:
            kwargs["endpoint_url"] = self._endpoint_url
        LOGGER.debug(
            "Creating S3 client (region=%s, profile=%s, endpoint=%s)",
            self._region,
            self._profile,
            self._endpoint_url,
        )
        try:
            return self._client_factory("s3", **kwargs)
        except BotoCoreError as exc:
            raise StorageOperationError("creating S3 client", None, exc) from exc

    def list_buckets(self) -> list[str]:
        """Return the bucket names visible to the credentials."""

        try:
            response = self.client.list_buckets()
        except (ClientError, BotoCoreError) as exc:
            raise _wrap_error("listing buckets", None, exc) from exc
        return [bucket["Name"] for bucket in response.get("Buckets", [])]

    def list_objects(self, bucket: str, prefix: str = "", recursive: bool = False) -> list[ObjectDetails]:
        """List keys under ``prefix``.

        Without ``recursive`` the listing is delimited by ``/`` and common
        prefixes are returned first as ``is_prefix`` entries.
        """

        params = {"Bucket": bucket}
        if prefix:
            params["Prefix"] = prefix
        if not recursive:
            params["Delimiter"] = "/"

        prefixes: list[ObjectDetails] = []
        objects: list[ObjectDetails] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for common in page.get("CommonPrefixes", []):
                    prefixes.append(ObjectDetails(bucket=bucket, key=common["Prefix"], is_prefix=True))
                for obj in page.get("Contents", []):
                    objects.append(
                        ObjectDetails(
                            bucket=bucket,
                            key=obj["Key"],
                            size=int(obj.get("Size") or 0),
                            last_modified=_format_timestamp(obj.get("LastModified")),
                            storage_class=normalize_storage_class(obj.get("StorageClass")),
                            etag=obj.get("ETag") or "",
                        )
                    )
        except (ClientError, BotoCoreError) as exc:
            raise _wrap_error("listing objects", prefix or "/", exc) from exc
        LOGGER.debug("Listed %d prefixes and %d objects in %s/%s", len(prefixes), len(objects), bucket, prefix)
        return prefixes + objects

    def head_object(self, bucket: str, key: str) -> ObjectDetails:
        """Fetch metadata, including restore status, for a single object."""

        try:
            response = self.client.head_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise _wrap_error("head object", key, exc) from exc
        return ObjectDetails(
            bucket=bucket,
            key=key,
            size=int(response.get("ContentLength") or 0),
            last_modified=_format_timestamp(response.get("LastModified")),
            storage_class=normalize_storage_class(response.get("StorageClass")),
            restore_status=parse_restore_header(response.get("Restore")),
            content_type=response.get("ContentType") or "",
            etag=response.get("ETag") or "",
            metadata=dict(response.get("Metadata") or {}),
        )

    def download(
        self, bucket: str, key: str, sink: BinaryIO, progress: Optional[ProgressFn] = None
    ) -> int:
        """Stream an object into ``sink`` and return the number of bytes written.

        Raises:
            StorageOperationError: the object could not be opened at all.
            TransferInterruptedError: the stream failed after it was opened.
        """

        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise _wrap_error("downloading", key, exc) from exc

        length = response.get("ContentLength")
        total = int(length) if length is not None else None
        body = response["Body"]
        try:
            return copy_stream(body, sink, total=total, progress=progress, key=key)
        finally:
            body.close()

    def upload(
        self,
        bucket: str,
        key: str,
        source: BinaryIO,
        size: Optional[int],
        storage_class: str = "",
        progress: Optional[ProgressFn] = None,
    ) -> None:
        """Upload ``source`` to ``bucket``/``key``, single threaded."""

        tracker = ProgressTracker(size, progress)
        extra_args = {}
        if storage_class:
            extra_args["StorageClass"] = storage_class
        try:
            self.client.upload_fileobj(
                source,
                bucket,
                key,
                ExtraArgs=extra_args or None,
                Callback=tracker,
                Config=TransferConfig(use_threads=False),
            )
        except (ClientError, BotoCoreError, OSError) as exc:
            if tracker.reported:
                raise TransferInterruptedError(tracker.reported, size, exc, key=key) from exc
            raise _wrap_error("uploading", key, exc) from exc

    def restore_object(self, request: RestoreRequest) -> None:
        try:
            self.client.restore_object(
                Bucket=request.bucket,
                Key=request.key,
                RestoreRequest={
                    "Days": request.days,
                    "GlacierJobParameters": {"Tier": request.tier.value},
                },
            )
        except (ClientError, BotoCoreError) as exc:
            raise _wrap_error("restoring object", request.key, exc) from exc
