"""
Error hierarchy raised by image operations.

Every public operation either returns an :class:`~imgops.domain.types.image.Image`
or raises exactly one :class:`ImageOpsError` subclass.
"""

from __future__ import annotations

import enum
from typing import Any, Dict


class ErrorKind(str, enum.Enum):
    INVALID_ARGUMENT = "invalid_argument"
    ENGINE_FAILURE = "engine_failure"
    INTERNAL_FAILURE = "internal_failure"
    STORAGE_FAILURE = "storage_failure"
    TIMEOUT = "timeout"


class ImageOpsError(Exception):
    """Base class for all errors surfaced to callers."""

    kind: ErrorKind = ErrorKind.INTERNAL_FAILURE
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.status_code, "kind": self.kind.value}


class InvalidArgumentError(ImageOpsError):
    """Missing required param or unsupported value. Never reaches the engine."""

    kind = ErrorKind.INVALID_ARGUMENT
    status_code = 400


class EngineFailureError(ImageOpsError):
    """The engine reported an ordinary failure (corrupt data, bad area, ...)."""

    kind = ErrorKind.ENGINE_FAILURE
    status_code = 406


class InternalFailureError(ImageOpsError):
    kind = ErrorKind.INTERNAL_FAILURE
    status_code = 500


class StorageFailureError(ImageOpsError):
    kind = ErrorKind.STORAGE_FAILURE
    status_code = 502


class OperationTimeoutError(ImageOpsError):
    kind = ErrorKind.TIMEOUT
    status_code = 504


class EngineError(Exception):
    """
    Raised by engine implementations for ordinary, expected failures.

    The execution boundary maps it to :class:`EngineFailureError`; any other
    exception escaping an engine is treated as an abnormal termination.
    """
