from typing import Dict, Iterable, List, Optional, Sequence

from .models import Category, FlatBucket, LinkItem, ViewerMenu
from .tree import assign_items, build_tree


def filter_for_role(items: Iterable[LinkItem], viewer_role: str) -> List[LinkItem]:
    return [item for item in items if viewer_role in item.roles]


def sort_by_recent(items: Iterable[LinkItem]) -> List[LinkItem]:
    # sorted() is stable, so equal timestamps keep their input order
    return sorted(items, key=lambda item: item.last_edited_time, reverse=True)


def order_buckets(names: Sequence[str], preferred_order: Sequence[str]) -> List[str]:
    """Names listed in preferred_order first, in that order; the rest in first-seen order."""
    present = set(names)
    head = [name for name in dict.fromkeys(preferred_order) if name in present]
    preferred = set(head)
    return head + [name for name in dict.fromkeys(names) if name not in preferred]


def group_flat(
    items: Iterable[LinkItem],
    preferred_order: Sequence[str] = (),
) -> List[FlatBucket]:
    buckets: Dict[str, List[LinkItem]] = {}
    for item in items:
        buckets.setdefault(item.category, []).append(item)

    return [
        FlatBucket(name=name, items=sort_by_recent(buckets[name]))
        for name in order_buckets(list(buckets), preferred_order)
    ]


def group_for_viewer(
    items: Iterable[LinkItem],
    viewer_role: str,
    preferred_order: Sequence[str] = (),
    categories: Optional[Iterable[Category]] = None,
) -> ViewerMenu:
    """
    Role-filtered, recency-sorted view of the items.

    Uses the category hierarchy when category metadata yields at least one
    top-level category, otherwise falls back to flat buckets keyed by the
    item's category name.
    """
    visible = sort_by_recent(filter_for_role(items, viewer_role))

    tree = build_tree(categories or [])
    if tree.parents:
        grouped = assign_items(visible, tree)
        return ViewerMenu(
            role=viewer_role,
            mode="hierarchical",
            groups=grouped.parents,
            unmatched_items=grouped.unmatched_items,
        )

    return ViewerMenu(
        role=viewer_role,
        mode="flat",
        buckets=group_flat(visible, preferred_order),
    )
