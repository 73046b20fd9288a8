"""
Registry of named image operations (resize, crop, rotate, convert, ...).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Mapping

from imgops.domain.types.image import Image
from imgops.domain.types.options import ImageOptions
from imgops.io.exceptions import InvalidArgumentError
from imgops.ops.pipeline import OperationContext
from imgops.ops.transforms import operations

logger = logging.getLogger(__name__)

OperationFn = Callable[[bytes, ImageOptions, OperationContext], Image]


@dataclass(frozen=True)
class Operation:
    """A named, independently validated image transformation."""

    name: str
    fn: OperationFn

    def run(self, buf: bytes, opts: ImageOptions, ctx: OperationContext) -> Image:
        logger.debug(f"Running operation {self.name!r} on {len(buf)} bytes")
        return self.fn(buf, opts, ctx)


class OperationRegistry(Mapping[str, Operation]):
    """Read-only mapping of operation name to :class:`Operation`."""

    def __init__(self, operations: Mapping[str, OperationFn]):
        self._operations: Dict[str, Operation] = {
            name: Operation(name, fn) for name, fn in operations.items()
        }

    def __getitem__(self, name: str) -> Operation:
        try:
            return self._operations[name]
        except KeyError:
            raise InvalidArgumentError(f"Unsupported operation: {name}") from None

    def get(self, name: str, default=None):
        return self._operations.get(name, default)

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[str]:
        return iter(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    @property
    def names(self) -> List[str]:
        return list(self._operations)


TRANSFORMS: Dict[str, OperationFn] = {
    "info": operations.info,
    "resize": operations.resize,
    "enlarge": operations.enlarge,
    "extract": operations.extract,
    "crop": operations.crop,
    "rotate": operations.rotate,
    "flip": operations.flip,
    "flop": operations.flop,
    "thumbnail": operations.thumbnail,
    "zoom": operations.zoom,
    "convert": operations.convert,
    "watermark": operations.watermark,
}


def build_registry() -> OperationRegistry:
    return OperationRegistry(TRANSFORMS)
