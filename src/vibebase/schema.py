"""Foreign-key registry.

Each referencing document carries its own declarations under
``metadata._foreignKeys``:

    {"categoryId": {"targetCollection": "categories", "onDelete": "restrict"}, ...}

They are stamped at creation time from POLICY below and never rewritten.
Documents written before declarations existed (or by other tools) have
none; for those the static POLICY entry for their collection applies.
The registry only describes; integrity.py enforces.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from vibebase.models import Document

logger = logging.getLogger("vibebase.schema")

OnDelete = Literal["cascade", "set_null", "restrict"]
ON_DELETE_POLICIES: tuple[str, ...] = ("cascade", "set_null", "restrict")


@dataclass(frozen=True)
class ForeignKey:
    """``collection.field`` references ``target``; ``on_delete`` applies when the target goes."""

    collection: str
    field: str
    target: str
    on_delete: OnDelete

    def declaration(self) -> dict[str, str]:
        return {"targetCollection": self.target, "onDelete": self.on_delete}


POLICY: tuple[ForeignKey, ...] = (
    ForeignKey("news", "categoryId", "categories", "restrict"),
    ForeignKey("news", "authorId", "users", "set_null"),
    ForeignKey("comments", "newsId", "news", "cascade"),
    ForeignKey("comments", "authorId", "users", "set_null"),
    ForeignKey("comments", "parentId", "comments", "cascade"),
)


def static_foreign_keys(collection: str) -> list[ForeignKey]:
    return [fk for fk in POLICY if fk.collection == collection]


def declarations_for(collection: str) -> dict[str, dict[str, str]]:
    """The ``_foreignKeys`` mapping to stamp on a new document of ``collection``."""
    return {fk.field: fk.declaration() for fk in static_foreign_keys(collection)}


def _parse_declarations(collection: str, doc_id: str, raw: dict[str, Any]) -> list[ForeignKey]:
    fks: list[ForeignKey] = []
    for field_name, decl in raw.items():
        if not isinstance(decl, dict):
            logger.warning("%s/%s: ignoring malformed foreign key %s", collection, doc_id, field_name)
            continue
        target = decl.get("targetCollection")
        policy = decl.get("onDelete")
        if not isinstance(target, str) or policy not in ON_DELETE_POLICIES:
            logger.warning("%s/%s: ignoring malformed foreign key %s", collection, doc_id, field_name)
            continue
        fks.append(ForeignKey(collection, field_name, target, policy))
    return fks


def foreign_keys(collection: str, doc: Document) -> list[ForeignKey]:
    """Declared (field, target, on_delete) triples for one document.

    Per-document declarations take precedence; documents without any fall
    back to the static policy for their collection.
    """
    raw = doc.metadata.get("_foreignKeys")
    if isinstance(raw, dict) and raw:
        return _parse_declarations(collection, doc.id, raw)
    return static_foreign_keys(collection)


def references_to(collection: str, doc: Document, target: str, target_id: str) -> list[ForeignKey]:
    """Foreign keys of ``doc`` that currently point at ``target/target_id``."""
    return [
        fk for fk in foreign_keys(collection, doc)
        if fk.target == target and doc.metadata.get(fk.field) == target_id
    ]
