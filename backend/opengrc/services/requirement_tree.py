"""Parent/children index over flat requirement rows.

Requirements are stored flat with a ``parent_id`` back-reference. Every
tree operation here works on an index built from those rows, so nothing
ever holds an embedded recursive structure.
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import Any, Protocol


class _Node(Protocol):
    id: int
    parent_id: int | None
    code: str
    sort_order: int


def sibling_key(node: _Node) -> tuple[int, str]:
    return (node.sort_order or 0, node.code)


def children_index(nodes: Iterable[_Node]) -> dict[int | None, list[_Node]]:
    """Map parent id -> ordered children. Orphans (parent not in the set) become roots."""
    nodes = list(nodes)
    ids = {n.id for n in nodes}
    index: dict[int | None, list[_Node]] = defaultdict(list)
    for n in nodes:
        parent = n.parent_id if n.parent_id in ids else None
        index[parent].append(n)
    for siblings in index.values():
        siblings.sort(key=sibling_key)
    return index


def descendants(root_id: int, index: dict[int | None, list[_Node]]) -> list[int]:
    """Ids reachable from root_id through the index, root included."""
    seen: list[int] = []
    visited: set[int] = set()
    stack = [root_id]
    while stack:
        current = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        seen.append(current)
        stack.extend(child.id for child in index.get(current, []))
    return seen


def would_create_cycle(node_id: int, new_parent_id: int | None, index: dict[int | None, list[_Node]]) -> bool:
    if new_parent_id is None:
        return False
    return new_parent_id in descendants(node_id, index)


def build_tree(nodes: Iterable[_Node], to_dict) -> list[dict[str, Any]]:
    """Nest rows under their parents; ``to_dict`` turns one row into a plain dict."""
    index = children_index(nodes)

    def _walk(parent_id: int | None, visited: frozenset[int]) -> list[dict[str, Any]]:
        out = []
        for child in index.get(parent_id, []):
            if child.id in visited:
                continue
            item = to_dict(child)
            item["children"] = _walk(child.id, visited | {child.id})
            out.append(item)
        return out

    return _walk(None, frozenset())
