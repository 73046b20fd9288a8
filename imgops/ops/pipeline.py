"""
Execution boundary around the transformation engine.

The engine is invoked under a guard that turns any abnormal termination into
an :class:`~imgops.io.exceptions.ImageOpsError`, then the result is optionally
persisted to remote storage.
"""

from __future__ import annotations

import inspect
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, TypeVar, runtime_checkable

from imgops.domain.types.image import Image, ImageInfo
from imgops.domain.types.transform import SaveTarget, TransformOptions
from imgops.io.exceptions import (
    EngineError,
    EngineFailureError,
    ImageOpsError,
    InternalFailureError,
    InvalidArgumentError,
    OperationTimeoutError,
    StorageFailureError,
)
from imgops.ops.engine.base import ImageEngine, get_mime_type

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DEADLINE_WORKERS = 8

_deadline_pool: Optional[ThreadPoolExecutor] = None
_deadline_lock = threading.Lock()


@runtime_checkable
class StorageClient(Protocol):
    """Remote object storage the transformed buffer is persisted to."""

    def upload(self, bucket: str, key: str, body: bytes, content_type: Optional[str] = None) -> str:
        ...


@dataclass(frozen=True)
class OperationContext:
    """
    Collaborators an operation runs with.

    Built once by the caller and shared by concurrent calls; holds no
    per-call state.

    Calls with a timeout run on ``executor`` (a process-wide pool of
    ``DEFAULT_DEADLINE_WORKERS`` threads when omitted). A call that times out
    cannot be interrupted: its thread keeps running until the engine or the
    upload returns, and occupies a pool slot until then. Size the pool for
    the number of calls that may be stuck at once.
    """

    engine: ImageEngine
    storage: Optional[StorageClient] = None
    engine_timeout: Optional[float] = None
    storage_timeout: Optional[float] = None
    persist: bool = True
    executor: Optional[ThreadPoolExecutor] = None


def _get_deadline_pool() -> ThreadPoolExecutor:
    global _deadline_pool
    with _deadline_lock:
        if _deadline_pool is None:
            _deadline_pool = ThreadPoolExecutor(
                max_workers=DEFAULT_DEADLINE_WORKERS, thread_name_prefix="imgops-deadline"
            )
    return _deadline_pool


def _run_with_deadline(
    fn: Callable[[], T],
    timeout: Optional[float],
    what: str,
    executor: Optional[ThreadPoolExecutor] = None,
) -> T:
    """Run ``fn`` and give up waiting after ``timeout`` seconds."""
    if timeout is None:
        return fn()
    future = (executor or _get_deadline_pool()).submit(fn)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        future.cancel()
        raise OperationTimeoutError(f"{what} did not finish within {timeout:g}s") from None


def _guarded(fn: Callable[[], T]) -> T:
    """
    Call into the engine, recovering from anything it raises.

    Errors of our own hierarchy are forwarded as-is; ordinary engine errors
    become :class:`EngineFailureError`; everything else is reported as an
    internal processing error.
    """
    try:
        return fn()
    except ImageOpsError:
        raise
    except EngineError as exc:
        raise EngineFailureError(str(exc)) from exc
    except Exception as exc:
        logger.error("Recovered from abnormal engine termination", exc_info=True)
        raise InternalFailureError("internal processing error") from exc


def read_metadata(buf: bytes, ctx: OperationContext) -> ImageInfo:
    """
    Extract image metadata. Ordinary extraction failures are caller-input
    errors, since metadata reading only fails on undecodable input.
    """
    try:
        return _run_with_deadline(
            lambda: _guarded(lambda: ctx.engine.metadata(buf)),
            ctx.engine_timeout,
            "Image metadata extraction",
            ctx.executor,
        )
    except EngineFailureError as exc:
        raise InvalidArgumentError(f"Cannot retrieve image metadata: {exc.message}") from exc


def process(
    buf: bytes,
    options: TransformOptions,
    save: Optional[SaveTarget],
    ctx: OperationContext,
) -> Image:
    """Transform ``buf``, persist it if ``save`` is given, and return the result."""
    body = _run_with_deadline(
        lambda: _guarded(lambda: ctx.engine.transform(buf, options)),
        ctx.engine_timeout,
        "Image transformation",
        ctx.executor,
    )
    mime = get_mime_type(_guarded(lambda: ctx.engine.detect_type(body)))

    if save is not None and ctx.persist:
        persist(body, mime, save, ctx)

    return Image(body=body, mime=mime)


def persist(body: bytes, content_type: str, save: SaveTarget, ctx: OperationContext) -> None:
    if ctx.storage is None:
        raise StorageFailureError(
            f"Unable to upload {save.key!r} to {save.bucket!r}: no storage is configured"
        )
    try:
        result = _run_with_deadline(
            lambda: ctx.storage.upload(save.bucket, save.key, body, content_type),
            ctx.storage_timeout,
            "Upload",
            ctx.executor,
        )
    except OperationTimeoutError:
        raise
    except Exception as exc:
        logger.error(f"Unable to upload {save.key!r} to {save.bucket!r}: {exc}")
        raise StorageFailureError(f"Unable to upload {save.key!r} to {save.bucket!r}: {exc}") from exc
    if inspect.isawaitable(result):
        # a storage client must finish the upload before returning
        if inspect.iscoroutine(result):
            result.close()
        logger.error(f"Storage returned an awaitable for {save.key!r}, nothing was uploaded")
        raise StorageFailureError(
            f"Unable to upload {save.key!r} to {save.bucket!r}: storage client did not complete the upload"
        )
    logger.info(f"Successfully uploaded {save.key!r} to {save.bucket!r}")
