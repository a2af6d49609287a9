from __future__ import annotations

from typing import Any

import pytest

from vibebase import service
from vibebase.models import Document
from vibebase.reader import CONTENT_TYPES, CollectionStore
from vibebase.schema import declarations_for


@pytest.fixture
def store(tmp_path) -> CollectionStore:
    return CollectionStore(tmp_path)


@pytest.fixture
def add_doc(store):
    """Append a raw document with a fixed timestamp, bypassing validation."""

    def _add(
        collection: str,
        doc_id: str,
        *,
        created_at: int = 1_000,
        content: str = "",
        declare: bool = True,
        **metadata: Any,
    ) -> Document:
        meta: dict[str, Any] = {**metadata, "_collection": collection}
        if declare and declarations_for(collection):
            meta["_foreignKeys"] = declarations_for(collection)
        doc = Document(
            id=doc_id,
            content=content,
            content_type=CONTENT_TYPES[collection],
            metadata=meta,
            created_at=created_at,
            last_accessed_at=created_at,
        )
        store.append(collection, doc)
        return doc

    return _add


@pytest.fixture
def seeded(store) -> dict[str, str]:
    """One category, two users, one published article with a reply thread."""
    category = service.create_category(
        store, {"name": "Tech", "description": "Technology", "icon": "💻", "code": "tech"}
    )
    alice = service.create_user(store, {"name": "Alice", "email": "alice@example.com", "role": "editor"})
    bob = service.create_user(store, {"name": "Bob", "email": "bob@example.com", "role": "reader"})
    article = service.create_article(store, {
        "title": "Hello",
        "content": "First post",
        "categoryId": category["id"],
        "authorId": alice["id"],
        "status": "published",
        "tags": ["intro"],
    })
    c1 = service.create_comment(store, {"newsId": article["id"], "authorId": bob["id"], "content": "Nice"})
    c2 = service.create_comment(store, {
        "newsId": article["id"],
        "authorId": alice["id"],
        "content": "Thanks",
        "parentId": c1["id"],
    })
    return {
        "category": category["id"],
        "alice": alice["id"],
        "bob": bob["id"],
        "article": article["id"],
        "c1": c1["id"],
        "c2": c2["id"],
    }
