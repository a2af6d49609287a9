"""Read-time foreign-key population.

Articles gain ``category`` and ``author``; comments gain ``author`` and,
once assembled into a tree, ``replies``. A missing or null reference
always yields an explicit ``None`` under the key, never an absent key.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from vibebase.models import Article, Category, Comment, User

if TYPE_CHECKING:
    from collections.abc import Iterable

    from vibebase.models import Document


class Lookup(Protocol):
    def get(self, doc_id: str, /) -> Document | None: ...


def _get(lookup: Lookup, doc_id: str | None) -> Document | None:
    return lookup.get(doc_id) if doc_id else None


def embed_category(doc: Document | None) -> dict[str, Any] | None:
    return None if doc is None else Category.from_document(doc).to_dict()


def embed_user(doc: Document | None) -> dict[str, Any] | None:
    return None if doc is None else User.from_document(doc).to_dict()


def populate_article(doc: Document, categories: Lookup, users: Lookup) -> dict[str, Any]:
    view = Article.from_document(doc).to_dict()
    view["category"] = embed_category(_get(categories, view["categoryId"]))
    view["author"] = embed_user(_get(users, view["authorId"]))
    return view


def populate_articles(docs: Iterable[Document], categories: Lookup, users: Lookup) -> list[dict[str, Any]]:
    return [populate_article(d, categories, users) for d in docs]


def populate_comment(doc: Document, users: Lookup) -> dict[str, Any]:
    view = Comment.from_document(doc).to_dict()
    view["author"] = embed_user(_get(users, view["authorId"]))
    return view


def comment_sort_key(comment: dict[str, Any]) -> tuple[int, str]:
    """created_at ascending, id ascending on ties."""
    return (int(comment.get("created_at") or 0), str(comment["id"]))


def build_comment_tree(comments: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Assemble flat populated comments into a forest.

    Every comment gets a ``replies`` list of its direct children in
    comment_sort_key order. Comments whose parent is not among ``comments``
    (or whose ancestry loops) become roots.
    """
    ordered = sorted(comments, key=comment_sort_key)
    by_id: dict[str, dict[str, Any]] = {}
    for c in ordered:
        c["replies"] = []
        by_id[c["id"]] = c

    def _on_cycle(start: dict[str, Any]) -> bool:
        seen: set[str] = set()
        node = by_id.get(start.get("parentId") or "")
        while node is not None and node["id"] not in seen:
            if node["id"] == start["id"]:
                return True
            seen.add(node["id"])
            node = by_id.get(node.get("parentId") or "")
        return False

    roots: list[dict[str, Any]] = []
    for c in ordered:
        parent = by_id.get(c.get("parentId") or "")
        if parent is None or _on_cycle(c):
            roots.append(c)
        else:
            parent["replies"].append(c)
    return roots


def comment_tree(docs: Iterable[Document], users: Lookup) -> list[dict[str, Any]]:
    return build_comment_tree(populate_comment(d, users) for d in docs)
