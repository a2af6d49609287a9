"""Data models for the JSONL document store.

Document is the universal record shape shared by every collection. The
typed views (Category, User, Article, Comment) are projections of a
Document's metadata bag; they are never persisted themselves.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

ROLES: tuple[str, ...] = ("admin", "editor", "reader", "guest")
STATUSES: tuple[str, ...] = ("draft", "published")

# Keys Document knows about; anything else in a line is carried through untouched.
_KNOWN_KEYS = frozenset({
    "id", "content", "content_type", "parent_id", "children", "depth",
    "metadata", "tags", "created_at", "last_accessed_at", "access_count",
    "importance", "decay_rate", "entity_ids", "relation_ids",
})


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def new_doc_id(prefix: str) -> str:
    """Generate a compact document ID: <prefix>_<8 hex chars>."""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def as_int(value: Any, default: int) -> int:
    """Integer value of a metadata field, or ``default`` when it is not numeric."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return default
    try:
        return int(value)
    except (ValueError, OverflowError):
        return default


@dataclass
class Document:
    """A single line of a collection's documents.jsonl."""

    id: str
    content: str = ""
    content_type: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    created_at: int = 0
    last_accessed_at: int = 0
    parent_id: str | None = None
    children: list[str] = field(default_factory=list)
    depth: int = 0
    access_count: int = 0
    importance: float = 0.5
    decay_rate: float = 0.01
    entity_ids: list[str] = field(default_factory=list)
    relation_ids: list[str] = field(default_factory=list)

    # Unknown keys (embedding, ...) preserved for round-tripping
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Document:
        return cls(
            id=str(d["id"]),
            content=d.get("content") or "",
            content_type=d.get("content_type") or "",
            metadata=dict(d.get("metadata") or {}),
            tags=list(d.get("tags") or []),
            created_at=int(d.get("created_at") or 0),
            last_accessed_at=int(d.get("last_accessed_at") or 0),
            parent_id=d.get("parent_id"),
            children=list(d.get("children") or []),
            depth=int(d.get("depth") or 0),
            access_count=int(d.get("access_count") or 0),
            importance=float(d.get("importance", 0.5) or 0.0),
            decay_rate=float(d.get("decay_rate", 0.01) or 0.0),
            entity_ids=list(d.get("entity_ids") or []),
            relation_ids=list(d.get("relation_ids") or []),
            extra={k: v for k, v in d.items() if k not in _KNOWN_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "content_type": self.content_type,
        }
        if self.parent_id:
            d["parent_id"] = self.parent_id
        d.update({
            "children": list(self.children),
            "depth": self.depth,
            "metadata": dict(self.metadata),
            "tags": list(self.tags),
            "created_at": self.created_at,
            "last_accessed_at": self.last_accessed_at,
            "access_count": self.access_count,
            "importance": self.importance,
            "decay_rate": self.decay_rate,
            "entity_ids": list(self.entity_ids),
            "relation_ids": list(self.relation_ids),
        })
        d.update(self.extra)
        return d

    def meta(self, key: str, default: Any = None) -> Any:
        """Metadata lookup treating explicit null like a missing key."""
        value = self.metadata.get(key)
        return default if value is None else value

    def touch(self) -> None:
        self.last_accessed_at = now_ms()


# ---------------------------------------------------------------------------
# Typed views
# ---------------------------------------------------------------------------


@dataclass
class Category:
    id: str
    name: str = ""
    description: str = ""
    icon: str = ""
    slug: str = ""
    article_count: int | None = None   # computed, never stored

    @classmethod
    def from_document(cls, doc: Document, article_count: int | None = None) -> Category:
        return cls(
            id=doc.id,
            name=doc.meta("name", ""),
            description=doc.meta("description", ""),
            icon=doc.meta("icon", ""),
            slug=doc.meta("slug", ""),
            article_count=article_count,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "slug": self.slug,
        }
        if self.article_count is not None:
            d["articleCount"] = self.article_count
        return d


@dataclass
class User:
    id: str
    name: str = ""
    email: str = ""
    avatar: str = ""
    role: str = "guest"

    @classmethod
    def from_document(cls, doc: Document) -> User:
        return cls(
            id=doc.id,
            name=doc.meta("name", ""),
            email=doc.meta("email", ""),
            avatar=doc.meta("avatar", ""),
            role=doc.meta("role", "guest"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
            "role": self.role,
        }


def split_article_content(title: str, content: str) -> str:
    """Strip the ``title\\n\\n`` prefix articles are stored with."""
    prefix = f"{title}\n\n"
    if title and content.startswith(prefix):
        return content[len(prefix):]
    return content


def join_article_content(title: str, body: str) -> str:
    return f"{title}\n\n{body}"


@dataclass
class Article:
    id: str
    title: str = ""
    content: str = ""
    category_id: str | None = None
    author_id: str | None = None
    status: str = "draft"
    published_at: int = 0
    view_count: int = 0
    like_count: int = 0
    tags: list[str] = field(default_factory=list)
    created_at: int = 0
    importance: float = 0.5

    @classmethod
    def from_document(cls, doc: Document) -> Article:
        title = doc.meta("title", "")
        return cls(
            id=doc.id,
            title=title,
            content=split_article_content(title, doc.content),
            category_id=doc.meta("categoryId"),
            author_id=doc.meta("authorId"),
            status=doc.meta("status", "draft"),
            published_at=as_int(doc.meta("publishedAt"), doc.created_at),
            view_count=as_int(doc.meta("viewCount"), 0),
            like_count=as_int(doc.meta("likeCount"), 0),
            tags=list(doc.tags),
            created_at=doc.created_at,
            importance=doc.importance,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "categoryId": self.category_id,
            "authorId": self.author_id,
            "status": self.status,
            "publishedAt": self.published_at,
            "viewCount": self.view_count,
            "likeCount": self.like_count,
            "tags": list(self.tags),
            "created_at": self.created_at,
            "importance": self.importance,
        }


@dataclass
class Comment:
    id: str
    content: str = ""
    news_id: str = ""
    author_id: str | None = None
    parent_id: str | None = None
    like_count: int = 0
    created_at: int = 0
    depth: int = 0
    children: list[str] = field(default_factory=list)

    @classmethod
    def from_document(cls, doc: Document) -> Comment:
        return cls(
            id=doc.id,
            content=doc.content,
            news_id=doc.meta("newsId", ""),
            author_id=doc.meta("authorId"),
            parent_id=doc.meta("parentId"),
            like_count=as_int(doc.meta("likeCount"), 0),
            created_at=doc.created_at,
            depth=doc.depth,
            children=list(doc.children),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "newsId": self.news_id,
            "authorId": self.author_id,
            "parentId": self.parent_id,
            "likeCount": self.like_count,
            "created_at": self.created_at,
            "depth": self.depth,
            "children": list(self.children),
        }
