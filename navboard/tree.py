import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .models import Category, CategoryGroup, ChildGroup, GroupedMenu, LinkItem

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "active"


@dataclass
class CategoryTree:
    """Two-level category hierarchy. Only accepted categories appear in the lookups."""

    parents: List[Category] = field(default_factory=list)
    children: Dict[str, List[Category]] = field(default_factory=dict)
    by_id: Dict[str, Category] = field(default_factory=dict)
    by_name: Dict[str, Category] = field(default_factory=dict)

    def lookup(self, name: Optional[str]) -> Optional[Category]:
        if not name:
            return None
        return self.by_name.get(_name_key(name))


def _name_key(name: str) -> str:
    return name.strip().lower()


def _order_key(category: Category) -> float:
    return category.order if category.order is not None else 0


def build_tree(categories: Iterable[Category]) -> CategoryTree:
    active = [c for c in categories if c.status == ACTIVE_STATUS]
    roots = {c.id: c for c in active if not c.parent_id}

    tree = CategoryTree()
    tree.parents = sorted(roots.values(), key=_order_key)

    for category in active:
        if not category.parent_id:
            continue
        if category.parent_id not in roots:
            # parent is unknown, inactive, or itself a child: never nest deeper than two levels
            logger.warning(
                "Ignoring category %r (%s): parent %s is not an active top-level category",
                category.name,
                category.id,
                category.parent_id,
            )
            continue
        tree.children.setdefault(category.parent_id, []).append(category)

    for parent_id, children in tree.children.items():
        tree.children[parent_id] = sorted(children, key=_order_key)

    accepted = {c.id for c in tree.parents}
    accepted.update(c.id for group in tree.children.values() for c in group)
    # input order, so a later category with the same name replaces an earlier one
    for category in active:
        if category.id not in accepted:
            continue
        tree.by_id[category.id] = category
        key = _name_key(category.name)
        if key in tree.by_name:
            logger.warning("Duplicate category name %r; keeping the last", category.name)
        tree.by_name[key] = category

    return tree


def assign_items(items: Iterable[LinkItem], tree: CategoryTree) -> GroupedMenu:
    """
    Slot each item under (parent, optional child), or into the unmatched bucket.

    An item naming a child category goes under that child. An item naming a
    parent goes under the parent, or under one of its children when its
    subcategory names that child. Every parent is present in the result.
    """
    direct: Dict[str, List[LinkItem]] = {p.id: [] for p in tree.parents}
    nested: Dict[str, List[LinkItem]] = {
        c.id: [] for group in tree.children.values() for c in group
    }
    unmatched: List[LinkItem] = []

    for item in items:
        match = tree.lookup(item.category)
        if match is None:
            unmatched.append(item)
            continue

        if match.parent_id:
            nested[match.id].append(item)
            continue

        sub = tree.lookup(item.subcategory)
        if sub is not None and sub.parent_id == match.id:
            nested[sub.id].append(item)
        else:
            direct[match.id].append(item)

    parents = [
        CategoryGroup(
            parent=parent,
            items=direct[parent.id],
            children=[
                ChildGroup(category=child, items=nested[child.id])
                for child in tree.children.get(parent.id, [])
            ],
        )
        for parent in tree.parents
    ]
    return GroupedMenu(parents=parents, unmatched_items=unmatched)
