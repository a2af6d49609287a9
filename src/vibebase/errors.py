"""Error taxonomy for store operations.

Every failure an operation can report derives from VibeBaseError and
carries a ``kind`` (stable machine-readable name), a human-readable
message and ``details``: the offending identifiers (field, value, target
collection, ...). ``to_dict()`` is what the web layer and the CLI render.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("vibebase.errors")


class VibeBaseError(Exception):
    kind = "error"
    http_status = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "details": dict(self.details)}


class ValidationError(VibeBaseError):
    """Required field missing or malformed. Raised before any storage access."""

    kind = "validation"
    http_status = 400

    def __init__(self, message: str, field: str | None = None, **details: Any) -> None:
        super().__init__(message, field=field, **details)
        self.field = field


class ForeignKeyViolation(VibeBaseError):
    """A referenced id does not exist in its target collection."""

    kind = "foreign_key"
    http_status = 400

    def __init__(self, field: str, value: str, target_collection: str) -> None:
        msg = (
            f"Foreign key constraint violation: {field} '{value}' "
            f"not found in {target_collection}"
        )
        super().__init__(msg, field=field, value=value, target_collection=target_collection)
        self.field = field
        self.value = value
        self.target_collection = target_collection


class ConflictError(VibeBaseError):
    kind = "conflict"
    http_status = 409


class NotFoundError(VibeBaseError):
    kind = "not_found"
    http_status = 404

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"{collection}: '{doc_id}' not found", collection=collection, id=doc_id)
        self.collection = collection
        self.doc_id = doc_id


class ReferentialIntegrityError(VibeBaseError):
    """Delete blocked by a ``restrict`` reference somewhere in the cascade closure."""

    kind = "referential_integrity"
    http_status = 409

    def __init__(
        self,
        collection: str,
        doc_id: str,
        blocking_collection: str,
        blocking_ids: list[str],
        field: str,
    ) -> None:
        msg = (
            f"Cannot delete {collection} '{doc_id}': referenced by "
            f"{blocking_collection} ({', '.join(blocking_ids)}) via {field} (restrict constraint)"
        )
        super().__init__(
            msg,
            collection=collection,
            id=doc_id,
            blocking_collection=blocking_collection,
            blocking_ids=list(blocking_ids),
            field=field,
        )
        self.collection = collection
        self.doc_id = doc_id
        self.blocking_collection = blocking_collection
        self.blocking_ids = list(blocking_ids)


class StorageError(VibeBaseError):
    """Underlying read/write failure (disk, permissions)."""

    kind = "storage"
    http_status = 500

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, path=path)
        self.path = path


def run_operation(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> dict[str, Any]:
    """Call an operation and fold any VibeBaseError into a structured result."""
    try:
        return {"ok": True, "result": fn(*args, **kwargs)}
    except VibeBaseError as exc:
        logger.info("%s failed: %s", getattr(fn, "__name__", fn), exc.message)
        return {"ok": False, "error": exc.to_dict()}
