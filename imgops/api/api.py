"""
Entry point used by the HTTP/CLI layer to run image operations.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from imgops.api.storage_api import StorageApi
from imgops.domain.types.image import Image
from imgops.domain.types.options import ImageOptions
from imgops.io.env import Settings
from imgops.io.exceptions import InvalidArgumentError
from imgops.ops.engine.base import ImageEngine
from imgops.ops.engine.pillow import PillowEngine
from imgops.ops.pipeline import OperationContext, StorageClient
from imgops.ops.transforms.registry import OperationRegistry, build_registry

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

OptionsLike = Union[ImageOptions, Mapping[str, Any], None]


def parse_options(options: OptionsLike) -> ImageOptions:
    """Validate raw caller options (query params, JSON body, ...)."""
    if isinstance(options, ImageOptions):
        return options
    try:
        return ImageOptions.model_validate(dict(options or {}))
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidArgumentError(f"Invalid params: {errors}") from exc


class Api:
    """
    Runs named image operations against an engine and an optional storage.

    The registry and the collaborators are built once and shared by every
    call; calls themselves keep no state and may run concurrently.
    """

    def __init__(
        self,
        engine: Optional[ImageEngine] = None,
        storage: Optional[StorageClient] = None,
        settings: Optional[Settings] = None,
        registry: Optional[OperationRegistry] = None,
    ):
        self.settings = settings or Settings()
        self.engine = engine or PillowEngine(
            quality=self.settings.default_quality,
            compression=self.settings.default_compression,
        )
        self.storage = storage
        self.registry = registry or build_registry()
        self.executor = None
        if self.settings.engine_timeout or self.settings.storage_timeout:
            self.executor = ThreadPoolExecutor(
                max_workers=self.settings.deadline_workers, thread_name_prefix="imgops-deadline"
            )
        self.context = OperationContext(
            engine=self.engine,
            storage=self.storage,
            engine_timeout=self.settings.engine_timeout,
            storage_timeout=self.settings.storage_timeout,
            persist=self.settings.persist,
            executor=self.executor,
        )
        logging.getLogger("imgops").setLevel(self.settings.log_level_value)

    @property
    def operations(self):
        return self.registry.names

    def run(self, name: str, buf: bytes, options: OptionsLike = None) -> Image:
        """
        Run operation ``name`` on ``buf``.

        :param name: Operation name, e.g. ``"resize"``.
        :type name: str
        :param buf: Encoded input image. It is never modified.
        :type buf: bytes
        :param options: :class:`ImageOptions` or a raw mapping of options.
        :return: Transformed image and its MIME type.
        :rtype: :class:`Image`
        :raises ImageOpsError: on invalid input, engine, storage or timeout failures.
        """
        operation = self.registry[name]
        return operation.run(buf, parse_options(options), self.context)

    def __getattr__(self, name: str):
        registry = self.__dict__.get("registry")
        if registry is None or name not in registry:
            raise AttributeError(f"{self.__class__.__name__!r} object has no attribute {name!r}")

        def _operation(buf: bytes, options: OptionsLike = None) -> Image:
            return self.run(name, buf, options)

        _operation.__name__ = name
        return _operation

    @classmethod
    def from_env(cls, with_storage: bool = True) -> "Api":
        """Create an Api from environment variables (and a ``.env`` file)."""
        from dotenv import load_dotenv

        load_dotenv()
        settings = Settings()
        storage = StorageApi() if with_storage and settings.persist else None
        return cls(storage=storage, settings=settings)
