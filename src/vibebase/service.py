"""News-system operations: categories, users, articles, comments.

Every operation takes the store root (a path or a CollectionStore),
re-reads the collections it needs and writes through CollectionStore.
Nothing is cached between calls.

    list_categories(root)                      create_category(root, data)
    update_category(root, id, data)            delete_category(root, id)
    list_users(root)                           create_user / update_user / delete_user
    list_articles(root, limit=, offset=, ...)  get_article(root, id)
    create_article / update_article / delete_article
    list_comments(root, news_id)               create_comment / update_comment / delete_comment
    get_stats(root)                            plan_delete(root, collection, id)
    check_integrity(root)

Failures raise the VibeBaseError subclasses from vibebase.errors.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from vibebase import integrity
from vibebase.errors import ConflictError, NotFoundError, ValidationError
from vibebase.models import (
    ROLES,
    STATUSES,
    Category,
    Document,
    User,
    as_int,
    join_article_content,
    new_doc_id,
    now_ms,
    split_article_content,
)
from vibebase.populate import comment_tree, populate_article, populate_articles, populate_comment
from vibebase.reader import COLLECTIONS, Collection, CollectionStore
from vibebase.schema import declarations_for
from vibebase.stats import article_counts, news_stats

_CODE_RE = re.compile(r"^[a-z0-9_-]+$")
_USER_CODE_RE = re.compile(r"[^a-z0-9]")
_AVATAR_URL = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"
_ROLE_IMPORTANCE = {"admin": 1.0, "editor": 0.8, "reader": 0.5, "guest": 0.3}
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _store(root: CollectionStore | Path | str) -> CollectionStore:
    return root if isinstance(root, CollectionStore) else CollectionStore(root)


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------


def _text(data: dict[str, Any], key: str) -> str | None:
    """Stripped string value of ``key``; None when absent or blank."""
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"{key} must be a string"
        raise ValidationError(msg, field=key)
    value = value.strip()
    return value or None


def _required(data: dict[str, Any], *keys: str) -> list[str]:
    values: list[str] = []
    for key in keys:
        value = _text(data, key)
        if value is None:
            msg = f"{key} is required"
            raise ValidationError(msg, field=key)
        values.append(value)
    return values


def _count(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        msg = f"{key} must be a non-negative integer"
        raise ValidationError(msg, field=key)
    return value


def _tags(data: dict[str, Any]) -> list[str] | None:
    value = data.get("tags")
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        msg = "tags must be a list of strings"
        raise ValidationError(msg, field="tags")
    return list(value)


def _role(value: str | None) -> str | None:
    if value is not None and value not in ROLES:
        msg = f"Invalid role. Must be one of: {', '.join(ROLES)}"
        raise ValidationError(msg, field="role", value=value)
    return value


def _status(value: str | None) -> str | None:
    if value is not None and value not in STATUSES:
        msg = f"Invalid status. Must be one of: {', '.join(STATUSES)}"
        raise ValidationError(msg, field="status", value=value)
    return value


def _base36(n: int) -> str:
    digits = []
    while True:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
        if n == 0:
            return "".join(reversed(digits))


def _get_or_404(store: CollectionStore, collection: str, doc_id: str) -> tuple[Collection, Document]:
    coll = store.load(collection)
    doc = coll.get(doc_id)
    if doc is None:
        raise NotFoundError(collection, doc_id)
    return coll, doc


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def list_categories(root: CollectionStore | Path | str) -> list[dict[str, Any]]:
    store = _store(root)
    counts = article_counts(store.load("news"))
    return [
        Category.from_document(doc, counts.get(doc.id, 0)).to_dict()
        for doc in store.load("categories")
    ]


def create_category(root: CollectionStore | Path | str, data: dict[str, Any]) -> dict[str, Any]:
    """Create ``cat_<code>``. ``code`` must match [a-z0-9_-]+; slug defaults to code."""
    name, description, icon = _required(data, "name", "description", "icon")
    code = _text(data, "code")
    if code is None:
        msg = "Category code is required"
        raise ValidationError(msg, field="code")
    if not _CODE_RE.match(code):
        msg = "Category code must only contain lowercase letters, numbers, underscores and hyphens"
        raise ValidationError(msg, field="code", value=code)

    store = _store(root)
    cat_id = f"cat_{code}"
    if cat_id in store.load("categories"):
        msg = f"Category with ID '{cat_id}' already exists"
        raise ConflictError(msg, id=cat_id)

    now = now_ms()
    doc = Document(
        id=cat_id,
        content=f"{name} - {description}",
        content_type="category",
        metadata={
            "name": name,
            "description": description,
            "icon": icon,
            "slug": _text(data, "slug") or code,
            "_collection": "categories",
        },
        tags=["category"],
        created_at=now,
        last_accessed_at=now,
        importance=0.9,
    )
    store.append("categories", doc)
    return Category.from_document(doc, article_count=0).to_dict()


def update_category(
    root: CollectionStore | Path | str,
    cat_id: str,
    data: dict[str, Any],
) -> dict[str, Any]:
    store = _store(root)
    coll, doc = _get_or_404(store, "categories", cat_id)
    for key in ("name", "description", "icon", "slug"):
        value = _text(data, key)
        if value is not None:
            doc.metadata[key] = value
    doc.content = f"{doc.meta('name', '')} - {doc.meta('description', '')}"
    doc.touch()
    store.write("categories", coll.documents)
    counts = article_counts(store.load("news"))
    return Category.from_document(doc, counts.get(doc.id, 0)).to_dict()


def delete_category(root: CollectionStore | Path | str, cat_id: str) -> dict[str, Any]:
    """Fails ReferentialIntegrityError while any article references the category."""
    return integrity.delete(_store(root), "categories", cat_id).to_dict()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def list_users(root: CollectionStore | Path | str) -> list[dict[str, Any]]:
    return [User.from_document(doc).to_dict() for doc in _store(root).load("users")]


def _email_taken(users: Collection, email: str, exclude: str | None = None) -> bool:
    wanted = email.casefold()
    return any(
        u.id != exclude and str(u.meta("email", "")).casefold() == wanted
        for u in users
    )


def create_user(root: CollectionStore | Path | str, data: dict[str, Any]) -> dict[str, Any]:
    name, email = _required(data, "name", "email")
    role = _text(data, "role")
    if role is None:
        msg = "role is required"
        raise ValidationError(msg, field="role")
    _role(role)

    store = _store(root)
    users = store.load("users")
    if _email_taken(users, email):
        msg = f"User with email '{email}' already exists"
        raise ConflictError(msg, field="email", value=email)

    now = now_ms()
    code = _USER_CODE_RE.sub("_", name.lower())[:20]
    user_id = f"user_{code}_{_base36(now)}"
    suffix = 1
    while user_id in users:
        suffix += 1
        user_id = f"user_{code}_{_base36(now)}_{suffix}"

    doc = Document(
        id=user_id,
        content=f"{role} {name}",
        content_type="user",
        metadata={
            "name": name,
            "email": email,
            "avatar": _text(data, "avatar") or _AVATAR_URL.format(seed=code),
            "role": role,
            "_collection": "users",
        },
        tags=["user", role],
        created_at=now,
        last_accessed_at=now,
        importance=_ROLE_IMPORTANCE[role],
    )
    store.append("users", doc)
    return User.from_document(doc).to_dict()


def update_user(
    root: CollectionStore | Path | str,
    user_id: str,
    data: dict[str, Any],
) -> dict[str, Any]:
    role = _role(_text(data, "role"))
    store = _store(root)
    coll, doc = _get_or_404(store, "users", user_id)

    email = _text(data, "email")
    if email is not None and _email_taken(coll, email, exclude=user_id):
        msg = f"User with email '{email}' already exists"
        raise ConflictError(msg, field="email", value=email)

    for key in ("name", "avatar"):
        value = _text(data, key)
        if value is not None:
            doc.metadata[key] = value
    if email is not None:
        doc.metadata["email"] = email
    if role is not None:
        doc.metadata["role"] = role
        doc.tags = ["user", role]
        doc.importance = _ROLE_IMPORTANCE[role]
    doc.content = f"{doc.meta('role', 'guest')} {doc.meta('name', '')}"
    doc.touch()
    store.write("users", coll.documents)
    return User.from_document(doc).to_dict()


def delete_user(root: CollectionStore | Path | str, user_id: str) -> dict[str, Any]:
    """Nulls authorId on the user's articles and comments (set_null)."""
    return integrity.delete(_store(root), "users", user_id).to_dict()


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


def _publish_order(doc: Document) -> tuple[int, str]:
    return (-as_int(doc.meta("publishedAt"), doc.created_at), doc.id)


def list_articles(
    root: CollectionStore | Path | str,
    limit: int = 100,
    offset: int = 0,
    category_id: str | None = None,
    author_id: str | None = None,
    status: str | None = None,
    search: str | None = None,
) -> dict[str, Any]:
    """Filtered, newest-first page of populated articles plus the filtered total."""
    store = _store(root)
    news = store.load("news")
    categories = store.load("categories")
    users = store.load("users")

    docs = list(news)
    if category_id:
        docs = [d for d in docs if d.metadata.get("categoryId") == category_id]
    if author_id:
        docs = [d for d in docs if d.metadata.get("authorId") == author_id]
    if status:
        docs = [d for d in docs if d.meta("status", "draft") == status]
    if search:
        needle = search.lower()
        docs = [
            d for d in docs
            if needle in d.content.lower() or needle in str(d.meta("title", "")).lower()
        ]

    docs.sort(key=_publish_order)
    offset = max(0, offset)
    page = docs[offset:offset + max(0, limit)]
    return {
        "articles": populate_articles(page, categories, users),
        "total": len(docs),
    }


def get_article(root: CollectionStore | Path | str, article_id: str) -> dict[str, Any]:
    store = _store(root)
    _, doc = _get_or_404(store, "news", article_id)
    return populate_article(doc, store.load("categories"), store.load("users"))


def create_article(root: CollectionStore | Path | str, data: dict[str, Any]) -> dict[str, Any]:
    title, body = _required(data, "title", "content")
    category_id, author_id = _required(data, "categoryId", "authorId")
    status = _status(_text(data, "status")) or "draft"
    tags = _tags(data) or []

    store = _store(root)
    now = now_ms()
    metadata: dict[str, Any] = {
        "title": title,
        "categoryId": category_id,
        "authorId": author_id,
        "status": status,
    }
    if status == "published":
        metadata["publishedAt"] = now
    metadata.update({
        "viewCount": 0,
        "likeCount": 0,
        "_collection": "news",
        "_foreignKeys": declarations_for("news"),
    })
    loaded = integrity.validate_references(store, "news", metadata)

    doc = Document(
        id=new_doc_id("news"),
        content=join_article_content(title, body),
        content_type="news",
        metadata=metadata,
        tags=["news", *tags],
        created_at=now,
        last_accessed_at=now,
        importance=0.8 if status == "published" else 0.5,
    )
    store.append("news", doc)
    return populate_article(doc, loaded["categories"], loaded["users"])


def update_article(
    root: CollectionStore | Path | str,
    article_id: str,
    data: dict[str, Any],
) -> dict[str, Any]:
    title = _text(data, "title")
    body = _text(data, "content")
    status = _status(_text(data, "status"))
    tags = _tags(data)
    view_count = _count(data, "viewCount")
    like_count = _count(data, "likeCount")
    refs: dict[str, str] = {}
    for key in ("categoryId", "authorId"):
        value = _text(data, key)
        if value is not None:
            refs[key] = value

    store = _store(root)
    coll, doc = _get_or_404(store, "news", article_id)
    if refs:
        integrity.validate_references(store, "news", refs, fields=list(refs))

    old_title = doc.meta("title", "")
    old_body = split_article_content(old_title, doc.content)
    if title is not None:
        doc.metadata["title"] = title
    if title is not None or body is not None:
        doc.content = join_article_content(doc.meta("title", ""), body if body is not None else old_body)
    doc.metadata.update(refs)
    if status is not None:
        doc.metadata["status"] = status
        if status == "published" and not doc.metadata.get("publishedAt"):
            doc.metadata["publishedAt"] = now_ms()
    if tags is not None:
        doc.tags = ["news", *tags]
    if view_count is not None:
        doc.metadata["viewCount"] = view_count
    if like_count is not None:
        doc.metadata["likeCount"] = like_count
    doc.touch()
    store.write("news", coll.documents)
    return populate_article(doc, store.load("categories"), store.load("users"))


def delete_article(root: CollectionStore | Path | str, article_id: str) -> dict[str, Any]:
    """Cascades to the article's comments and, through parentId, their replies."""
    return integrity.delete(_store(root), "news", article_id).to_dict()


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def list_comments(root: CollectionStore | Path | str, news_id: str) -> list[dict[str, Any]]:
    """Comment forest for one article: roots ordered by created_at, ``replies`` nested."""
    store = _store(root)
    docs = [d for d in store.load("comments") if d.metadata.get("newsId") == news_id]
    return comment_tree(docs, store.load("users"))


def create_comment(root: CollectionStore | Path | str, data: dict[str, Any]) -> dict[str, Any]:
    (content,) = _required(data, "content")
    news_id, author_id = _required(data, "newsId", "authorId")
    parent_id = _text(data, "parentId")

    store = _store(root)
    metadata: dict[str, Any] = {
        "newsId": news_id,
        "authorId": author_id,
        "parentId": parent_id,
        "likeCount": 0,
        "_collection": "comments",
        "_foreignKeys": declarations_for("comments"),
    }
    loaded = integrity.validate_references(store, "comments", metadata)

    depth = 0
    if parent_id is not None:
        parent = loaded["comments"].get(parent_id)
        if parent is not None and parent.metadata.get("newsId") != news_id:
            msg = f"Parent comment '{parent_id}' belongs to a different article"
            raise ValidationError(msg, field="parentId", value=parent_id)
        depth = (parent.depth + 1) if parent is not None else 0

    now = now_ms()
    doc = Document(
        id=new_doc_id("comment"),
        content=content,
        content_type="comment",
        parent_id=parent_id,
        depth=depth,
        metadata=metadata,
        tags=["comment", "reply"] if parent_id else ["comment"],
        created_at=now,
        last_accessed_at=now,
    )
    store.append("comments", doc)
    view = populate_comment(doc, loaded["users"])
    view["replies"] = []
    return view


def update_comment(
    root: CollectionStore | Path | str,
    comment_id: str,
    data: dict[str, Any],
) -> dict[str, Any]:
    content = _text(data, "content")
    like_count = _count(data, "likeCount")
    store = _store(root)
    coll, doc = _get_or_404(store, "comments", comment_id)
    if content is not None:
        doc.content = content
    if like_count is not None:
        doc.metadata["likeCount"] = like_count
    doc.touch()
    store.write("comments", coll.documents)
    return populate_comment(doc, store.load("users"))


def delete_comment(root: CollectionStore | Path | str, comment_id: str) -> dict[str, Any]:
    """Cascades to every reply below the comment."""
    return integrity.delete(_store(root), "comments", comment_id).to_dict()


# ---------------------------------------------------------------------------
# Stats / maintenance
# ---------------------------------------------------------------------------


def get_stats(root: CollectionStore | Path | str) -> dict[str, int]:
    store = _store(root)
    c = store.load_many(COLLECTIONS)
    return news_stats(c["categories"], c["users"], c["news"], c["comments"])


def plan_delete(root: CollectionStore | Path | str, collection: str, doc_id: str) -> dict[str, Any]:
    """What delete would remove, null or be blocked by. Writes nothing."""
    plan, _ = integrity.plan_delete(_store(root), collection, doc_id)
    return plan.to_dict()


def check_integrity(root: CollectionStore | Path | str) -> list[dict[str, Any]]:
    return integrity.dangling_references(_store(root))


DELETERS = {
    "categories": delete_category,
    "users": delete_user,
    "news": delete_article,
    "comments": delete_comment,
}
