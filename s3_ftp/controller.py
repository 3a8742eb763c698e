from __future__ import annotations
"""Command handlers combining navigation state, config and storage."""

from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import Path
import sys
from typing import BinaryIO, Callable, Optional

from .errors import InvalidInputError, NoBucketError, S3FtpError, TransferInterruptedError
from .glacier import ensure_readable, is_archival_class, parse_tier, validate_tier
from .models import DEEP_ARCHIVE, ObjectDetails, RestoreRequest, RestoreStatus, RetrievalTier
from .paths import key_basename, resolve_path, resolve_prefix, split_bucket_path
from .services import S3Service, StorageBackend
from .settings import AppConfig, BucketConfig
from .state import NavigationState
from .transfer import ProgressFn

DEFAULT_STORAGE_CLASS = DEEP_ARCHIVE
DEFAULT_RESTORE_DAYS = 7

ServiceFactory = Callable[..., StorageBackend]

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class GlobalOptions:
    """Per-invocation overrides taken from the command line."""

    bucket: str = ""
    region: str = ""
    profile: str = ""
    endpoint_url: str = ""


class RestoreOutcome(Enum):
    INITIATED = "initiated"
    ALREADY_IN_PROGRESS = "in-progress"
    ALREADY_AVAILABLE = "available"


@dataclass(frozen=True)
class RestoreResult:
    key: str
    outcome: RestoreOutcome
    storage_class: str
    tier: RetrievalTier
    days: int


class S3FtpController:
    """Implements each command against explicit config and state objects.

    The controller mutates ``state``/``config`` in place and flags them as
    changed; persisting them is the caller's job.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        state: NavigationState,
        options: GlobalOptions | None = None,
        service_factory: ServiceFactory | None = None,
    ):
        self._config = config
        self._state = state
        self._options = options or GlobalOptions()
        self._service_factory = service_factory or S3Service
        self._services: dict[tuple[str, str, str], StorageBackend] = {}
        self.state_changed = False
        self.config_changed = False

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def config(self) -> AppConfig:
        return self._config

    def resolve_bucket(self) -> str:
        """Return the bucket from --bucket, navigation state or config."""

        if self._options.bucket:
            return self._options.bucket
        if self._state.bucket:
            return self._state.bucket
        return self._config.resolve_bucket()

    def list_objects(self, path: str | None = None, *, recursive: bool = False) -> list[ObjectDetails]:
        bucket = self.resolve_bucket()
        prefix = self._state.prefix
        if path:
            prefix = resolve_prefix(self._state.prefix, path)
        return self._service(bucket).list_objects(bucket, prefix, recursive)

    def stat(self, path: str) -> ObjectDetails:
        bucket = self.resolve_bucket()
        key = self._require_key(path, "stat")
        return self._service(bucket).head_object(bucket, key)

    def get(
        self,
        remote: str,
        local: str | None = None,
        *,
        stdout: BinaryIO | None = None,
        progress: Optional[ProgressFn] = None,
    ) -> str:
        """Download ``remote`` and return where it was written (``-`` for stdout).

        Archived objects must be restored first; the local file is removed
        when the download fails.
        """

        bucket = self.resolve_bucket()
        key = self._require_key(remote, "get")
        service = self._service(bucket)
        ensure_readable(service.head_object(bucket, key))

        if local == "-":
            service.download(bucket, key, stdout or sys.stdout.buffer, progress)
            return "-"

        destination = Path(local) if local else Path(key_basename(key))
        if destination.is_dir():
            destination = destination / key_basename(key)
        try:
            sink = destination.open("wb")
        except OSError as exc:
            raise InvalidInputError(f"creating {destination}: {exc}") from exc
        try:
            with sink:
                service.download(bucket, key, sink, progress)
        except TransferInterruptedError as exc:
            LOGGER.warning(
                "Removing partial download %s after %d bytes", destination, exc.bytes_transferred
            )
            destination.unlink(missing_ok=True)
            raise
        except S3FtpError:
            destination.unlink(missing_ok=True)
            raise
        return str(destination)

    def put(
        self,
        local: str,
        remote: str | None = None,
        *,
        storage_class: str = DEFAULT_STORAGE_CLASS,
        progress: Optional[ProgressFn] = None,
    ) -> str:
        """Upload a local file and return the key it was stored under."""

        bucket = self.resolve_bucket()
        source_path = Path(local)
        target = remote or source_path.name
        if target.endswith("/"):
            target = f"{target}{source_path.name}"
        key = resolve_path(self._state.prefix, target)
        if not key:
            raise InvalidInputError("put requires an object key, not a directory")

        try:
            handle = source_path.open("rb")
        except OSError as exc:
            raise InvalidInputError(f"opening {local}: {exc}") from exc
        with handle:
            size = source_path.stat().st_size
            self._service(bucket).upload(
                bucket,
                key,
                handle,
                size,
                storage_class=(storage_class or "").upper(),
                progress=progress,
            )
        LOGGER.info("Uploaded %s to s3://%s/%s", local, bucket, key)
        return key

    def restore(
        self,
        path: str,
        *,
        days: int = DEFAULT_RESTORE_DAYS,
        tier: str = RetrievalTier.STANDARD.value,
    ) -> RestoreResult:
        """Request a restore unless one is running or a copy is available."""

        bucket = self.resolve_bucket()
        key = self._require_key(path, "restore")
        parsed_tier = parse_tier(tier)
        request = RestoreRequest(bucket=bucket, key=key, days=days, tier=parsed_tier)

        service = self._service(bucket)
        details = service.head_object(bucket, key)
        if not is_archival_class(details.storage_class):
            raise InvalidInputError(
                f"object {key!r} is in {details.storage_class} storage (not archival); restore not needed"
            )
        validate_tier(details.storage_class, parsed_tier)

        outcome = RestoreOutcome.INITIATED
        if details.restore_status is RestoreStatus.IN_PROGRESS:
            outcome = RestoreOutcome.ALREADY_IN_PROGRESS
        elif details.restore_status is RestoreStatus.AVAILABLE:
            outcome = RestoreOutcome.ALREADY_AVAILABLE
        else:
            service.restore_object(request)
        return RestoreResult(
            key=key,
            outcome=outcome,
            storage_class=details.storage_class,
            tier=parsed_tier,
            days=days,
        )

    def cd(self, path: str) -> str:
        """Change the current prefix; ``bucket:path`` also switches bucket."""

        target = path
        bucket, rest = split_bucket_path(path)
        if bucket:
            self._state.set_bucket(bucket)
            target = rest or "/"
        self._state.prefix = resolve_prefix(self._state.prefix, target)
        self.state_changed = True
        return self._state.prefix

    def pwd(self) -> str | None:
        try:
            bucket = self.resolve_bucket()
        except NoBucketError:
            return None
        return f"{bucket}:/{self._state.prefix}"

    def list_configured_buckets(self) -> list[BucketConfig]:
        return list(self._config.buckets)

    def list_remote_buckets(self) -> list[str]:
        return self._service().list_buckets()

    def add_bucket(self, name: str, *, region: str = "", profile: str = "") -> None:
        if not name:
            raise InvalidInputError("bucket name cannot be empty")
        self._config.add_bucket(name, region, profile)
        self.config_changed = True

    def remove_bucket(self, name: str) -> None:
        if not self._config.remove_bucket(name):
            raise InvalidInputError(f"bucket {name!r} not found in config")
        self.config_changed = True
        if self._state.bucket == name:
            self._state.set_bucket(None)
            self.state_changed = True

    def set_default_bucket(self, name: str) -> None:
        self._config.set_default(name)
        self.config_changed = True

    @property
    def default_bucket(self) -> str:
        return self._config.default_bucket

    def _require_key(self, path: str, command: str) -> str:
        key = resolve_path(self._state.prefix, path)
        if not key:
            raise InvalidInputError(f"{command} requires an object key, not a directory")
        return key

    def _service(self, bucket: str = "") -> StorageBackend:
        region = self._config.resolve_region(self._options.region, bucket)
        profile = self._config.resolve_profile(self._options.profile, bucket)
        endpoint_url = self._options.endpoint_url or self._config.endpoint_url
        cache_key = (region, profile, endpoint_url)
        service = self._services.get(cache_key)
        if service is None:
            service = self._service_factory(region=region, profile=profile, endpoint_url=endpoint_url)
            self._services[cache_key] = service
        return service
