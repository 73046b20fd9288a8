"""
Blocking bridge between synchronous operations and the async storage client.

All storage coroutines run on one dedicated event loop thread, so a single
aioboto3 client is shared by every caller. Callers always block until the
coroutine has finished, whether or not their own thread runs an event loop.
"""

from __future__ import annotations

import asyncio
import atexit
import functools
import threading
from typing import Any, Callable, Coroutine, Optional


class _StorageLoop:
    """Event loop running forever on a daemon thread, started on first use."""

    def __init__(self, name: str = "imgops-storage-loop"):
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    def _serve(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            self._loop = None

    def start(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._thread is None or not self._thread.is_alive():
                self._ready.clear()
                self._thread = threading.Thread(target=self._serve, name=self._name, daemon=True)
                self._thread.start()
        self._ready.wait()
        return self._loop

    def run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """Run ``coro`` on the loop thread and wait for its result."""
        loop = self.start()
        if _running_loop() is loop:
            coro.close()
            raise RuntimeError("Blocking storage call made from the storage loop itself")
        future = asyncio.run_coroutine_threadsafe(coro, loop)
        return future.result(timeout=timeout)

    def stop(self) -> None:
        loop, thread = self._loop, self._thread
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None and thread.is_alive():
            thread.join(timeout=2.0)
        self._thread = None


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


_storage_loop = _StorageLoop()
atexit.register(_storage_loop.stop)


def _bg_run(coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
    return _storage_loop.run(coro, timeout=timeout)


def blocking(async_fn: Callable[..., Coroutine[Any, Any, Any]]):
    """
    Turn an async method into a blocking one.

    The coroutine always runs to completion on the storage loop before the
    wrapper returns, so callers inside a foreign running loop (an async web
    handler, for instance) never receive an un-awaited coroutine.
    """

    @functools.wraps(async_fn)
    def wrapper(self, *args, **kwargs):
        return _bg_run(async_fn(self, *args, **kwargs))

    return wrapper
