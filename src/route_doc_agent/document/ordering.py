"""Order-preserving insertion into mappings and lists."""

from typing import Any, Callable

VERB_ORDER = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

OPERATION_FIELD_ORDER = ("tags", "summary", "description", "parameters", "requestBody", "responses", "security")


def insert_ordered(mapping: dict, key: str, value: Any, sort_key: Callable[[str], Any]) -> dict:
    """Return a copy of ``mapping`` with ``key`` placed before the first larger key.

    Existing keys keep their relative order, so an unsorted mapping is never
    reshuffled; on a sorted mapping this is a sorted insert. Existing keys
    whose rank is None are skipped when looking for the position.
    """
    if key in mapping:
        updated = dict(mapping)
        updated[key] = value
        return updated
    new_rank = sort_key(key)
    updated = {}
    placed = False
    for existing, existing_value in mapping.items():
        rank = sort_key(existing)
        if not placed and rank is not None and rank > new_rank:
            updated[key] = value
            placed = True
        updated[existing] = existing_value
    if not placed:
        updated[key] = value
    return updated


def insert_sorted_item(items: list, item: Any, sort_key: Callable[[Any], Any]) -> None:
    """Insert ``item`` into ``items`` before the first larger element, in place."""
    new_rank = sort_key(item)
    for index, existing in enumerate(items):
        if sort_key(existing) > new_rank:
            items.insert(index, item)
            return
    items.append(item)


def verb_rank(key: str) -> int | None:
    """Position of an HTTP verb in a path item; None for other path item keys."""
    return VERB_ORDER.index(key) if key in VERB_ORDER else None


def field_rank(name: str) -> int | None:
    """Position in the operation field order; None for fields outside it."""
    if name in OPERATION_FIELD_ORDER:
        return OPERATION_FIELD_ORDER.index(name)
    return None
