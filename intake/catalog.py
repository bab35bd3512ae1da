"""Reference catalogs: body-location tree and symptom lists per location.

Both are immutable reference data. ``JsonCatalog`` serves them from the JSON
files under ``data/``; tests build it straight from Python lists.

Tree file format::

    [{"id": "head", "name": "Head", "sort_order": 1,
      "children": [{"id": "eye", "name": "Eye"}, ...]}, ...]

Symptom file format::

    [{"location_id": "eye", "symptoms": [{"id": "eye_pain", "name": "Eye pain"}, ...]}, ...]
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from intake.errors import CatalogUnavailable


@dataclass(frozen=True)
class CatalogNode:
    id: str
    parent_id: Optional[str]
    name: str
    level: int
    has_children: bool
    sort_order: int = 0


@dataclass(frozen=True)
class CatalogItem:
    id: str
    name: str
    sort_order: int = 0


class TreeCatalog:
    """Interface: ordered children of a node (``None`` = root)."""

    def children_of(self, parent_id: Optional[str]) -> List[CatalogNode]:
        raise NotImplementedError

    def max_depth(self) -> int:
        raise NotImplementedError


class FlatCatalog:
    """Interface: ordered items valid for a context (e.g. a location leaf)."""

    def items_for(self, context_id: str) -> List[CatalogItem]:
        raise NotImplementedError


def _node_sort_key(n: CatalogNode):
    return (n.sort_order, n.id)


def _item_sort_key(i: CatalogItem):
    return (i.sort_order, i.id)


class JsonCatalog(TreeCatalog, FlatCatalog):
    """In-memory catalog built from the nested tree and the symptom lists."""

    def __init__(
        self,
        tree: Iterable[Dict[str, Any]] = (),
        items_by_context: Optional[Dict[str, Iterable[Dict[str, Any]]]] = None,
    ) -> None:
        self._children: Dict[Optional[str], List[CatalogNode]] = {None: []}
        self._depth = 0
        for pos, raw in enumerate(tree or []):
            self._add_node(raw, None, 1, pos)
        for k in list(self._children):
            self._children[k].sort(key=_node_sort_key)

        self._items: Dict[str, List[CatalogItem]] = {}
        for ctx, raw_items in (items_by_context or {}).items():
            items = [
                CatalogItem(
                    id=str(it["id"]),
                    name=str(it.get("name") or it["id"]),
                    sort_order=int(it.get("sort_order", pos)),
                )
                for pos, it in enumerate(raw_items or [])
            ]
            items.sort(key=_item_sort_key)
            self._items[str(ctx)] = items

    def _add_node(self, raw: Dict[str, Any], parent_id: Optional[str], level: int, pos: int) -> None:
        kids = raw.get("children") or []
        node = CatalogNode(
            id=str(raw["id"]),
            parent_id=parent_id,
            name=str(raw.get("name") or raw["id"]),
            level=level,
            has_children=bool(kids),
            sort_order=int(raw.get("sort_order", pos)),
        )
        self._children.setdefault(parent_id, []).append(node)
        self._depth = max(self._depth, level)
        for child_pos, child in enumerate(kids):
            self._add_node(child, node.id, level + 1, child_pos)

    @classmethod
    def from_files(cls, tree_path: str, symptoms_path: str) -> "JsonCatalog":
        try:
            with open(tree_path, "r", encoding="utf-8") as f:
                tree = json.load(f)
            with open(symptoms_path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, ValueError) as e:
            raise CatalogUnavailable(f"catalog data could not be loaded: {e}") from e
        items = {str(r["location_id"]): r.get("symptoms") or [] for r in rows}
        return cls(tree=tree, items_by_context=items)

    def children_of(self, parent_id: Optional[str]) -> List[CatalogNode]:
        return list(self._children.get(parent_id, []))

    def max_depth(self) -> int:
        return self._depth

    def items_for(self, context_id: str) -> List[CatalogItem]:
        return list(self._items.get(context_id, []))
