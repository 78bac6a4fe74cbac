"""Cartesian products of named value lists."""

from __future__ import annotations

from itertools import product
from typing import Any, Mapping, Sequence


def cartesian_product(map_of_lists: Mapping[str, Sequence[Any]]) -> list[dict[str, Any]]:
    """Return every combination of one value per key.

    An empty mapping, or any empty list, yields no combinations.
    """
    names = list(map_of_lists)
    lists = [list(map_of_lists[name]) for name in names]
    if not lists or any(not values for values in lists):
        return []
    return [dict(zip(names, combo)) for combo in product(*lists)]