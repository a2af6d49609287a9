"""File-based document store: JSONL collections with foreign-key semantics.

Layout:
    <store>/
        documents.jsonl               # legacy shared file: memories + entries tagged _collection
        graph/entities.jsonl          # knowledge-graph entities (read-only views)
        graph/relations.jsonl
        categories/documents.jsonl
        users/documents.jsonl
        news/documents.jsonl
        comments/documents.jsonl

Foreign keys (declared per document under metadata._foreignKeys):
    news.categoryId     -> categories   restrict
    news.authorId       -> users        set_null
    comments.newsId     -> news         cascade
    comments.authorId   -> users        set_null
    comments.parentId   -> comments     cascade

Writes: single-document creation appends one line; update/delete rewrite
the whole collection file (tmp + rename). There is no cross-file locking:
the store assumes a single writer.
"""

from vibebase.config import VBConfig, init_config, load_config
from vibebase.errors import (
    ConflictError,
    ForeignKeyViolation,
    NotFoundError,
    ReferentialIntegrityError,
    StorageError,
    ValidationError,
    VibeBaseError,
)
from vibebase.models import Document
from vibebase.reader import Collection, CollectionStore

__all__ = [
    "Collection",
    "CollectionStore",
    "ConflictError",
    "Document",
    "ForeignKeyViolation",
    "NotFoundError",
    "ReferentialIntegrityError",
    "StorageError",
    "VBConfig",
    "ValidationError",
    "VibeBaseError",
    "init_config",
    "load_config",
]
