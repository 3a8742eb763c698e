from __future__ import annotations
"""Streaming copy helpers with cumulative progress reporting."""
import logging
from typing import BinaryIO, Callable, Optional

from botocore.exceptions import BotoCoreError

from .errors import TransferInterruptedError

CHUNK_SIZE = 32 * 1024

# Called with (bytes transferred so far, total bytes or None when unknown).
ProgressFn = Callable[[int, Optional[int]], None]

LOGGER = logging.getLogger(__name__)


def copy_stream(
    source: BinaryIO,
    sink: BinaryIO,
    *,
    total: Optional[int] = None,
    progress: Optional[ProgressFn] = None,
    chunk_size: int = CHUNK_SIZE,
    key: str = "",
) -> int:
    """Copy ``source`` into ``sink`` in a single pass and return the byte count.

    Raises:
        TransferInterruptedError: when reading or writing fails mid-stream.
    """

    transferred = 0
    while True:
        try:
            chunk = source.read(chunk_size)
        except (OSError, BotoCoreError) as exc:
            raise TransferInterruptedError(transferred, total, exc, key=key) from exc
        if not chunk:
            break
        try:
            sink.write(chunk)
        except OSError as exc:
            raise TransferInterruptedError(transferred, total, exc, key=key) from exc
        transferred += len(chunk)
        if progress:
            progress(transferred, total)
    LOGGER.debug("Copied %d bytes for %s", transferred, key or "<stream>")
    return transferred


class ProgressTracker:
    """Adapts boto3's incremental ``Callback`` to :data:`ProgressFn`.

    s3transfer reports negative amounts when it rewinds a part for a retry;
    reported totals never go backwards.
    """

    def __init__(self, total: Optional[int], progress: Optional[ProgressFn] = None):
        self.total = total
        self.transferred = 0
        self._progress = progress
        self._reported = 0

    def __call__(self, bytes_amount: int) -> None:
        self.transferred = max(self.transferred + bytes_amount, 0)
        if self.transferred <= self._reported:
            return
        self._reported = self.transferred
        if self._progress:
            self._progress(self._reported, self.total)

    @property
    def reported(self) -> int:
        return self._reported
