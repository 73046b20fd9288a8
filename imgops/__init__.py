"""
Public package interface for imgops.

Named image operations (resize, crop, rotate, convert, watermark, ...) run
through a single calling convention: ``Api.run(name, buf, options)``.
"""

from __future__ import annotations

from imgops.api.api import Api, parse_options
from imgops.api.storage_api import StorageApi
from imgops.domain.types import Image, ImageInfo, ImageOptions, SaveTarget, TransformOptions
from imgops.io.exceptions import (
    EngineFailureError,
    ErrorKind,
    ImageOpsError,
    InternalFailureError,
    InvalidArgumentError,
    OperationTimeoutError,
    StorageFailureError,
)
from imgops.ops.engine.pillow import PillowEngine

__all__ = [
    "Api",
    "parse_options",
    "StorageApi",
    "Image",
    "ImageInfo",
    "ImageOptions",
    "SaveTarget",
    "TransformOptions",
    "PillowEngine",
    "ErrorKind",
    "ImageOpsError",
    "InvalidArgumentError",
    "EngineFailureError",
    "InternalFailureError",
    "StorageFailureError",
    "OperationTimeoutError",
]
