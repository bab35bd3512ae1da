"""Drill-down selection over a hierarchical catalog, one level per turn.

The user answers with the 1-based index of a menu row; ``0`` goes up one
level. Reaching a node without children completes the traversal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from intake import prompts as P
from intake.catalog import CatalogNode, TreeCatalog
from intake.input_helpers import parse_int
from intake.render import render_tree_menu
from intake.state import PathStep


@dataclass
class NavOutcome:
    """Result of one navigation turn.

    ``path`` is the breadcrumb to store for the next turn (empty once a leaf
    is reached). ``leaf`` and ``trail`` are only set on completion.
    """

    reply: str
    path: List[PathStep] = field(default_factory=list)
    leaf: Optional[CatalogNode] = None
    trail: List[PathStep] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.leaf is not None


class TreeNavigator:
    def __init__(self, catalog: TreeCatalog) -> None:
        self.catalog = catalog

    def _parent_id(self, path: List[PathStep]) -> Optional[str]:
        return path[-1].id if path else None

    def render(self, path: List[PathStep], notice: str = "") -> str:
        """Menu for the level below the last breadcrumb element."""
        children = self.catalog.children_of(self._parent_id(path))
        return render_tree_menu(children, path, notice)

    def handle(self, raw_text: str, path: List[PathStep]) -> NavOutcome:
        path = list(path)
        children = self.catalog.children_of(self._parent_id(path))
        choice = parse_int(raw_text)

        if choice == 0:
            if path:
                path.pop()
            return NavOutcome(reply=self.render(path), path=path)

        if choice is None or not (1 <= choice <= len(children)):
            notice = P.NOTICE_INVALID_NUMBER if children else ""
            return NavOutcome(reply=render_tree_menu(children, path, notice), path=path)

        node = children[choice - 1]
        path.append(PathStep(id=node.id, name=node.name, level=node.level))
        if node.has_children:
            return NavOutcome(reply=self.render(path), path=path)

        # leaf: traversal done, breadcrumb handed back and cleared
        return NavOutcome(reply="", path=[], leaf=node, trail=path)
