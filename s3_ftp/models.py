from __future__ import annotations
"""Data models describing objects and restore requests."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import InvalidInputError

STANDARD = "STANDARD"
STANDARD_IA = "STANDARD_IA"
ONEZONE_IA = "ONEZONE_IA"
INTELLIGENT_TIERING = "INTELLIGENT_TIERING"
GLACIER = "GLACIER"
GLACIER_IR = "GLACIER_IR"
DEEP_ARCHIVE = "DEEP_ARCHIVE"


class RestoreStatus(str, Enum):
    NONE = ""
    IN_PROGRESS = "in-progress"
    AVAILABLE = "available"
    EXPIRED = "expired"


class RetrievalTier(str, Enum):
    STANDARD = "Standard"
    BULK = "Bulk"
    EXPEDITED = "Expedited"


@dataclass(frozen=True)
class ObjectDetails:
    """Metadata about a single key or common prefix."""

    bucket: str
    key: str
    size: int = 0
    last_modified: str = ""
    storage_class: str = STANDARD
    restore_status: RestoreStatus = RestoreStatus.NONE
    content_type: str = ""
    etag: str = ""
    is_prefix: bool = False
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RestoreRequest:
    """A single restore invocation for an archived object."""

    bucket: str
    key: str
    days: int = 7
    tier: RetrievalTier = RetrievalTier.STANDARD

    def __post_init__(self) -> None:
        if self.days <= 0:
            raise InvalidInputError(f"restore days must be greater than zero, got {self.days}")


def normalize_storage_class(value: Optional[str]) -> str:
    """S3 omits the storage class for STANDARD objects."""
    return value or STANDARD
