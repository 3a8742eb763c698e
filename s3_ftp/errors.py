from __future__ import annotations
"""Exception hierarchy shared by the service, controller and CLI layers."""
from typing import Optional


class S3FtpError(RuntimeError):
    """Base class for failures reported to the user.

    ``hint`` carries an optional remediation line printed under the message.
    """

    def __init__(self, message: str, *, hint: Optional[str] = None):
        super().__init__(message)
        self.hint = hint


class InvalidInputError(S3FtpError):
    """Raised for malformed invocations such as a missing key or bad tier."""


class TierNotSupportedError(InvalidInputError):
    """Raised when a retrieval tier is not offered for a storage class."""


class StateError(S3FtpError):
    """Raised when persisted config or navigation state cannot be used."""


class NoBucketError(StateError):
    """Raised when no bucket can be resolved for an operation."""

    def __init__(self):
        super().__init__(
            "no bucket specified",
            hint="use --bucket, 'cd bucket:' or set a default with: pys3ftp buckets default <name>",
        )


class ArchivalAccessError(S3FtpError):
    """Raised when an archived object cannot be read directly."""

    def __init__(self, message: str, *, key: str, storage_class: str, hint: Optional[str] = None):
        super().__init__(message, hint=hint)
        self.key = key
        self.storage_class = storage_class


class ObjectNotRestoredError(ArchivalAccessError):
    """The object is archived and no usable restored copy exists."""

    def __init__(self, key: str, storage_class: str):
        super().__init__(
            f"object {key!r} is in {storage_class} storage and has not been restored",
            key=key,
            storage_class=storage_class,
            hint=f"restore it first with: pys3ftp restore /{key}",
        )


class RestoreInProgressError(ArchivalAccessError):
    """The object is being restored and is not readable yet."""

    def __init__(self, key: str, storage_class: str):
        super().__init__(
            f"object {key!r} is being restored from {storage_class} (in progress)",
            key=key,
            storage_class=storage_class,
            hint="try again later",
        )


class StorageOperationError(S3FtpError):
    """Wraps a backend failure with the operation and key it concerns."""

    def __init__(self, operation: str, key: Optional[str], cause: BaseException):
        target = f" {key}" if key else ""
        super().__init__(f"{operation}{target}: {cause}")
        self.operation = operation
        self.key = key


class ObjectNotFoundError(StorageOperationError):
    """The requested key does not exist in the bucket."""


class TransferInterruptedError(S3FtpError):
    """Raised when a transfer fails after the byte stream was opened.

    ``bytes_transferred`` is how much reached the sink before the failure;
    ``total`` is ``None`` when the producer did not report a length.
    """

    def __init__(self, bytes_transferred: int, total: Optional[int], cause: BaseException, *, key: str = ""):
        of_total = f" of {total}" if total is not None else ""
        target = f" {key}" if key else ""
        super().__init__(f"transfer{target} interrupted after {bytes_transferred}{of_total} bytes: {cause}")
        self.bytes_transferred = bytes_transferred
        self.total = total
        self.key = key
