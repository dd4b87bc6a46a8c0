"""Selection of store objects that still need dimensions."""

from typing import Iterable, List, Set

from .models import ObjectRecord

PATH_SEPARATOR = "/"


def is_directory_marker(identifier: str) -> bool:
    """Return True for placeholder keys that stand for a folder."""
    return identifier.endswith(PATH_SEPARATOR)


def diff_unprocessed(
    store_objects: Iterable[ObjectRecord], cached_keys: Iterable[str]
) -> List[ObjectRecord]:
    """
    Return the objects with no cache entry, excluding directory markers.

    The result keeps the store's listing order and contains each
    identifier at most once, so identical inputs give identical output.
    """
    cached: Set[str] = set(cached_keys)
    seen: Set[str] = set()
    selected: List[ObjectRecord] = []

    for record in store_objects:
        key = record.identifier
        if key in cached or key in seen or is_directory_marker(key):
            continue
        seen.add(key)
        selected.append(record)

    return selected
