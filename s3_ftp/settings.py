from __future__ import annotations
"""Configured buckets and connection defaults, persisted as JSON."""

from dataclasses import dataclass, field
import json
import logging
from pathlib import Path
from typing import Optional

from .errors import InvalidInputError, NoBucketError, StateError

CONFIG_DIR = Path.home() / ".config" / "pys3ftp"

LOGGER = logging.getLogger(__name__)


@dataclass
class BucketConfig:
    name: str
    region: str = ""
    profile: str = ""


@dataclass
class AppConfig:
    """User configuration: known buckets plus global region/profile."""

    default_bucket: str = ""
    buckets: list[BucketConfig] = field(default_factory=list)
    region: str = ""
    profile: str = ""
    endpoint_url: str = ""

    def get_bucket(self, name: str) -> Optional[BucketConfig]:
        for bucket in self.buckets:
            if bucket.name == name:
                return bucket
        return None

    def add_bucket(self, name: str, region: str = "", profile: str = "") -> None:
        existing = self.get_bucket(name)
        if existing is not None:
            existing.region = region
            existing.profile = profile
            return
        self.buckets.append(BucketConfig(name=name, region=region, profile=profile))

    def remove_bucket(self, name: str) -> bool:
        before = len(self.buckets)
        self.buckets = [b for b in self.buckets if b.name != name]
        if len(self.buckets) == before:
            return False
        if self.default_bucket == name:
            self.default_bucket = ""
        return True

    def set_default(self, name: str) -> None:
        if self.get_bucket(name) is None:
            raise InvalidInputError(
                f"bucket {name!r} not configured",
                hint=f"add it first with: pys3ftp buckets add {name}",
            )
        self.default_bucket = name

    def resolve_bucket(self, override: str = "") -> str:
        if override:
            return override
        if self.default_bucket:
            return self.default_bucket
        if len(self.buckets) == 1:
            return self.buckets[0].name
        raise NoBucketError()

    def resolve_region(self, override: str = "", bucket: str = "") -> str:
        if override:
            return override
        configured = self.get_bucket(bucket) if bucket else None
        if configured and configured.region:
            return configured.region
        return self.region

    def resolve_profile(self, override: str = "", bucket: str = "") -> str:
        if override:
            return override
        configured = self.get_bucket(bucket) if bucket else None
        if configured and configured.profile:
            return configured.profile
        return self.profile


def _as_str(value: object) -> str:
    return value if isinstance(value, str) else ""


class ConfigStorage:
    """JSON-backed persistence for :class:`AppConfig`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = CONFIG_DIR / "config.json"
        self._path = Path(storage_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AppConfig:
        if not self._path.exists():
            return AppConfig()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StateError(
                f"loading config {self._path}: {exc}",
                hint=f"fix or remove {self._path}",
            ) from exc
        if not isinstance(data, dict):
            raise StateError(
                f"loading config {self._path}: expected a JSON object",
                hint=f"fix or remove {self._path}",
            )

        buckets: list[BucketConfig] = []
        for entry in data.get("buckets") or []:
            try:
                name = entry["name"]
            except (KeyError, TypeError):
                continue
            if not isinstance(name, str) or not name:
                continue
            buckets.append(
                BucketConfig(
                    name=name,
                    region=_as_str(entry.get("region")),
                    profile=_as_str(entry.get("profile")),
                )
            )
        LOGGER.debug("Loaded %d configured buckets from %s", len(buckets), self._path)
        return AppConfig(
            default_bucket=_as_str(data.get("default_bucket")),
            buckets=buckets,
            region=_as_str(data.get("region")),
            profile=_as_str(data.get("profile")),
            endpoint_url=_as_str(data.get("endpoint_url")),
        )

    def save(self, config: AppConfig) -> None:
        payload: dict[str, object] = {}
        if config.default_bucket:
            payload["default_bucket"] = config.default_bucket
        buckets = []
        for bucket in config.buckets:
            entry = {"name": bucket.name}
            if bucket.region:
                entry["region"] = bucket.region
            if bucket.profile:
                entry["profile"] = bucket.profile
            buckets.append(entry)
        if buckets:
            payload["buckets"] = buckets
        for name in ("region", "profile", "endpoint_url"):
            value = getattr(config, name)
            if value:
                payload[name] = value
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise StateError(f"writing config {self._path}: {exc}") from exc
