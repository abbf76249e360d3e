"""Recursive helpers over untyped JSON trees.

A tree is any value produced by `json.loads`: strings, numbers, booleans,
None, lists, and dicts. These helpers walk it explicitly so unit tests can
feed synthetic payloads.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterator, cast

# RFC 4122 versions 1-5, any case.
UUID_RE = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)


def is_uuid(value: Any) -> bool:
    """Return True when value is a string holding exactly one UUID."""
    return isinstance(value, str) and UUID_RE.fullmatch(value.strip()) is not None


def walk(tree: Any) -> Iterator[tuple[str | None, Any]]:
    """Yield `(key, value)` for every node, depth first.

    The key is the dict key the value was stored under, or None for list items
    and the root.
    """
    stack: list[tuple[str | None, Any]] = [(None, tree)]
    while stack:
        key, node = stack.pop()
        yield key, node
        if isinstance(node, dict):
            items = list(cast(dict[Any, Any], node).items())
            for k, v in reversed(items):
                stack.append((str(k), v))
        elif isinstance(node, list):
            for v in reversed(cast(list[Any], node)):
                stack.append((None, v))


def find_values(
    tree: Any, predicate: Callable[[str | None, Any], bool]
) -> list[Any]:
    """Return values whose (key, value) pair satisfies predicate, in walk order."""
    return [value for key, value in walk(tree) if predicate(key, value)]


def collect_uuids(tree: Any) -> list[str]:
    """Return every UUID-shaped string in the tree, de-duplicated, first seen first."""
    return dedupe(v.strip() for v in find_values(tree, lambda _k, v: is_uuid(v)))


def values_for_keys(tree: Any, keys: tuple[str, ...]) -> list[Any]:
    """Return values stored under any of `keys`, at any depth."""
    wanted = set(keys)
    return find_values(tree, lambda k, _v: k in wanted)


def dig(tree: Any, *path: str | int) -> Any:
    """Follow a fixed path of dict keys / list indexes; None when it breaks."""
    node = tree
    for step in path:
        if isinstance(step, int):
            if not isinstance(node, list) or not -len(node) <= step < len(node):
                return None
            node = cast(list[Any], node)[step]
        else:
            if not isinstance(node, dict):
                return None
            node = cast(dict[str, Any], node).get(step)
    return node


def dedupe(values: Any) -> list[Any]:
    """De-duplicate an iterable while preserving first-seen order."""
    seen: set[Any] = set()
    out: list[Any] = []
    for v in values:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out
