from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

K = TypeVar("K")
V = TypeVar("V")


def empty_dict_factory_of(_: type[K], __: type[V]) -> Callable[[], dict[K, V]]:
    def _factory() -> dict[K, V]:
        return {}

    return _factory
