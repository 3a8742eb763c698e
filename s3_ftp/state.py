from __future__ import annotations
"""Navigation state (current bucket and prefix) kept between invocations."""

from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Optional

from .errors import StateError
from .settings import CONFIG_DIR

LOGGER = logging.getLogger(__name__)


@dataclass
class NavigationState:
    bucket: Optional[str] = None
    prefix: str = ""

    def set_bucket(self, bucket: Optional[str]) -> None:
        """Switch bucket and return to its root."""
        self.bucket = bucket or None
        self.prefix = ""


class StateStorage:
    """JSON-backed persistence for :class:`NavigationState`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = CONFIG_DIR / "state.json"
        self._path = Path(storage_path)

    def load(self) -> NavigationState:
        if not self._path.exists():
            return NavigationState()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StateError(
                f"loading state {self._path}: {exc}",
                hint=f"fix or remove {self._path}",
            ) from exc
        if not isinstance(data, dict):
            raise StateError(
                f"loading state {self._path}: expected a JSON object",
                hint=f"fix or remove {self._path}",
            )
        bucket = data.get("bucket")
        prefix = data.get("prefix")
        LOGGER.debug("Loaded navigation state from %s", self._path)
        return NavigationState(
            bucket=bucket if isinstance(bucket, str) and bucket else None,
            prefix=prefix.lstrip("/") if isinstance(prefix, str) else "",
        )

    def save(self, state: NavigationState) -> None:
        payload = {}
        if state.bucket:
            payload["bucket"] = state.bucket
        if state.prefix:
            payload["prefix"] = state.prefix
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise StateError(f"writing state {self._path}: {exc}") from exc
