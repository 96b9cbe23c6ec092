from __future__ import annotations
from typing import Dict, Iterable, List, Sequence

from .models import CategoryNode
from .normalize import tokenize


UNIVERSAL_ROOT_NAME = "Default Category"
CATEGORY_ACCEPT_THRESHOLD = 0.3


def build_category_forest(raw_categories: Iterable[Dict]) -> List[CategoryNode]:
    """Flatten Magento's category list into hierarchical nodes.

    Inactive categories and the level-1 "Default Category" root are dropped;
    path labels run root to leaf without that root, so ``level`` equals the
    number of path labels.
    """
    items = [c for c in raw_categories if c]
    by_id: Dict[int, Dict] = {}
    for c in items:
        try:
            by_id[int(c.get("id"))] = c
        except (TypeError, ValueError):
            continue

    default_id = None
    for c in items:
        if int(c.get("level") or 0) == 1 and c.get("name") == UNIVERSAL_ROOT_NAME:
            default_id = int(c["id"])
            break

    def path_names(cat: Dict) -> List[str]:
        names: List[str] = []
        for part in str(cat.get("path") or "").split("/"):
            try:
                pid = int(part)
            except ValueError:
                continue
            if pid <= 0 or pid == default_id:
                continue
            ref = by_id.get(pid)
            # Level 0 is Magento's hidden root catalog
            if not ref or int(ref.get("level") or 0) == 0:
                continue
            if ref.get("name"):
                names.append(str(ref["name"]))
        return names

    rows = []
    for c in items:
        if not c.get("is_active", True):
            continue
        cid = int(c.get("id") or 0)
        if cid == default_id or int(c.get("level") or 0) == 0:
            continue
        path = path_names(c)
        if not path:
            continue
        rows.append((len(path), int(c.get("position") or 0), c, path))

    rows.sort(key=lambda r: (r[0], r[1]))
    forest: List[CategoryNode] = []
    for depth, _pos, c, path in rows:
        forest.append(
            CategoryNode(
                id=str(c["id"]),
                label=path[-1],
                level=depth,
                parent_id=str(c.get("parent_id") or ""),
                path_labels=tuple(path),
            )
        )
    return forest


def match_categories(product_type: str, forest: Sequence[CategoryNode]) -> List[str]:
    """Rank categories by token overlap with a free-text product type, best first."""
    parts = tokenize(product_type)
    if not parts:
        return []
    scored = []
    for node in forest:
        cat_parts = tokenize(node.full_path_label)
        if not cat_parts:
            continue
        overlap = 0
        for part in parts:
            if any(cp in part or part in cp for cp in cat_parts):
                overlap += 1
        if overlap > 0:
            scored.append((overlap / max(len(parts), len(cat_parts)), node.id))
    scored.sort(key=lambda s: s[0], reverse=True)
    return [cid for score, cid in scored if score > CATEGORY_ACCEPT_THRESHOLD]


def search_categories(forest: Sequence[CategoryNode], term: str = "") -> List[CategoryNode]:
    ordered = sorted(forest, key=lambda n: (n.level, n.full_path_label.lower()))
    needle = (term or "").strip().lower()
    if not needle:
        return ordered
    return [n for n in ordered if needle in n.full_path_label.lower()]


def labels_for(forest: Sequence[CategoryNode], ids: Iterable[str]) -> List[str]:
    by_id = {n.id: n for n in forest}
    return [by_id[i].full_path_label if i in by_id else i for i in ids]
