"""Helpers for comparing sequences with mappings."""

from __future__ import annotations

from typing import Any, Hashable, Iterable, Mapping, TypeVar

K = TypeVar("K", bound=Hashable)


def slice_to_map_keys(items: Iterable[K], default: Any = None) -> dict[K, Any]:
    """Build a dict whose keys are the given items, each mapped to ``default``."""
    return dict.fromkeys(items, default)


def diff_slice_subset(
    items: Iterable[K], mapping: Mapping[K, Any]
) -> tuple[list[K], bool]:
    """Return the items missing from ``mapping`` and whether none were missing."""
    diff = [item for item in items if item not in mapping]
    return diff, not diff