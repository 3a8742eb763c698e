from __future__ import annotations
"""Archival storage rules: restore status, retrieval tiers and read access."""
from enum import Enum
from typing import Optional

from .errors import (
    InvalidInputError,
    ObjectNotRestoredError,
    RestoreInProgressError,
    TierNotSupportedError,
)
from .models import (
    DEEP_ARCHIVE,
    GLACIER,
    GLACIER_IR,
    ObjectDetails,
    RestoreStatus,
    RetrievalTier,
)

ARCHIVAL_CLASSES = frozenset({GLACIER, DEEP_ARCHIVE, GLACIER_IR})

ALL_TIERS = frozenset(RetrievalTier)
# Classes missing from this mapping accept every tier.
TIER_COMPATIBILITY: dict[str, frozenset[RetrievalTier]] = {
    DEEP_ARCHIVE: frozenset({RetrievalTier.STANDARD, RetrievalTier.BULK}),
}

_ONGOING_TRUE = 'ongoing-request="true"'
_ONGOING_FALSE = 'ongoing-request="false"'


class ArchiveState(Enum):
    STANDARD = "standard"
    NOT_REQUESTED = "not-requested"
    IN_PROGRESS = "in-progress"
    AVAILABLE = "available"
    EXPIRED = "expired"


def is_archival_class(storage_class: Optional[str]) -> bool:
    """Return True when objects of this class must be restored before download."""
    return storage_class in ARCHIVAL_CLASSES


def parse_restore_header(header: Optional[str]) -> RestoreStatus:
    """Classify the raw ``x-amz-restore`` header value.

    Examples::

        ongoing-request="true"                                     -> IN_PROGRESS
        ongoing-request="false", expiry-date="Fri, 23 Dec 2022..." -> AVAILABLE
        "" / None / anything else                                  -> NONE
    """

    if not header or not isinstance(header, str):
        return RestoreStatus.NONE
    if _ONGOING_TRUE in header:
        return RestoreStatus.IN_PROGRESS
    if _ONGOING_FALSE in header:
        return RestoreStatus.AVAILABLE
    return RestoreStatus.NONE


def archive_state(storage_class: Optional[str], restore_status: RestoreStatus) -> ArchiveState:
    if not is_archival_class(storage_class):
        return ArchiveState.STANDARD
    if restore_status is RestoreStatus.IN_PROGRESS:
        return ArchiveState.IN_PROGRESS
    if restore_status is RestoreStatus.AVAILABLE:
        return ArchiveState.AVAILABLE
    if restore_status is RestoreStatus.EXPIRED:
        return ArchiveState.EXPIRED
    return ArchiveState.NOT_REQUESTED


def parse_tier(name: str) -> RetrievalTier:
    normalized = (name or "").strip().lower()
    for tier in RetrievalTier:
        if tier.value.lower() == normalized:
            return tier
    raise InvalidInputError(
        f"invalid tier {name!r}; valid options: Standard, Bulk, Expedited"
    )


def validate_tier(storage_class: Optional[str], tier: RetrievalTier) -> None:
    """Reject tiers the storage class cannot be retrieved with.

    This is purely a capability check; whether the class needs a restore at
    all is decided by the caller with :func:`is_archival_class`.

    Raises:
        TierNotSupportedError: for Expedited retrieval of DEEP_ARCHIVE objects.
    """

    allowed = TIER_COMPATIBILITY.get(storage_class or "", ALL_TIERS)
    if tier not in allowed:
        options = " or ".join(sorted(t.value for t in allowed))
        raise TierNotSupportedError(
            f"{tier.value} retrieval is not available for {storage_class} storage class",
            hint=f"use {options}",
        )


def is_readable(details: ObjectDetails) -> bool:
    return archive_state(details.storage_class, details.restore_status) in (
        ArchiveState.STANDARD,
        ArchiveState.AVAILABLE,
    )


def ensure_readable(details: ObjectDetails) -> None:
    """Gate direct reads of archived objects.

    Raises:
        RestoreInProgressError: a restore was requested but has not finished.
        ObjectNotRestoredError: no restore was requested or the copy expired.
    """

    state = archive_state(details.storage_class, details.restore_status)
    if state is ArchiveState.IN_PROGRESS:
        raise RestoreInProgressError(details.key, details.storage_class)
    if state in (ArchiveState.NOT_REQUESTED, ArchiveState.EXPIRED):
        raise ObjectNotRestoredError(details.key, details.storage_class)
