"""Referential integrity over JSONL collections.

Create path: validate_references() checks every non-null foreign key of a
new document against a fresh load of its target collection.

Delete path is two-phase:
    1. plan_delete() walks the reference graph from the target outwards,
       collecting cascade deletions, set_null fields and restrict blockers
       for the whole closure. Nothing is written.
    2. delete() refuses the plan if any blocker was found, otherwise
       applies every null and deletion in memory and writes each affected
       collection exactly once.

A restrict reference blocks even when the referrer is itself scheduled for
deletion by another cascade; the outcome never depends on scan order.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from vibebase.errors import ForeignKeyViolation, NotFoundError, ReferentialIntegrityError
from vibebase.reader import COLLECTIONS
from vibebase.schema import foreign_keys, references_to, static_foreign_keys

if TYPE_CHECKING:
    from vibebase.reader import Collection, CollectionStore

logger = logging.getLogger("vibebase.integrity")


@dataclass
class Blocker:
    collection: str        # referencing collection
    ids: list[str]
    field: str
    target: str            # collection being deleted from
    target_id: str


@dataclass
class DeletePlan:
    collection: str
    id: str
    deletions: dict[str, list[str]] = field(default_factory=dict)
    nulls: list[tuple[str, str, str]] = field(default_factory=list)   # (collection, id, field)
    blockers: list[Blocker] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return bool(self.blockers)

    def is_deleted(self, collection: str, doc_id: str) -> bool:
        return doc_id in self.deletions.get(collection, ())

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection": self.collection,
            "id": self.id,
            "deleted": {c: list(ids) for c, ids in self.deletions.items()},
            "nulled": [{"collection": c, "id": i, "field": f} for c, i, f in self.nulls],
            "blocked": [
                {
                    "collection": b.collection,
                    "ids": list(b.ids),
                    "field": b.field,
                    "target": b.target,
                    "targetId": b.target_id,
                }
                for b in self.blockers
            ],
        }


# ---------------------------------------------------------------------------
# Create path
# ---------------------------------------------------------------------------


def validate_references(
    store: CollectionStore,
    collection: str,
    metadata: dict[str, Any],
    fields: list[str] | None = None,
) -> dict[str, Collection]:
    """Raise ForeignKeyViolation for the first unresolved foreign key.

    ``fields`` restricts the check (partial updates). Returns the target
    collections loaded for the check so callers can reuse them within the
    same request.
    """
    loaded: dict[str, Collection] = {}
    for fk in static_foreign_keys(collection):
        if fields is not None and fk.field not in fields:
            continue
        value = metadata.get(fk.field)
        if value is None:
            continue
        if fk.target not in loaded:
            loaded[fk.target] = store.load(fk.target)
        if value not in loaded[fk.target]:
            raise ForeignKeyViolation(fk.field, str(value), fk.target)
    return loaded


# ---------------------------------------------------------------------------
# Delete path
# ---------------------------------------------------------------------------


def plan_delete(
    store: CollectionStore,
    collection: str,
    doc_id: str,
) -> tuple[DeletePlan, dict[str, Collection]]:
    """Phase 1: compute the full cascade closure without mutating anything."""
    names = list(dict.fromkeys((*COLLECTIONS, collection)))
    collections = store.load_many(names)
    if doc_id not in collections[collection]:
        raise NotFoundError(collection, doc_id)

    plan = DeletePlan(collection=collection, id=doc_id)
    plan.deletions[collection] = [doc_id]
    pending_nulls: list[tuple[str, str, str]] = []
    queue: deque[tuple[str, str]] = deque([(collection, doc_id)])

    while queue:
        target, target_id = queue.popleft()
        for ref_collection, coll in collections.items():
            restricted: dict[str, list[str]] = {}
            for doc in coll:
                refs = references_to(ref_collection, doc, target, target_id)
                if not refs:
                    continue
                for fk in refs:
                    if fk.on_delete == "restrict":
                        restricted.setdefault(fk.field, []).append(doc.id)
                if plan.is_deleted(ref_collection, doc.id):
                    continue
                for fk in refs:
                    if fk.on_delete == "cascade":
                        plan.deletions.setdefault(ref_collection, []).append(doc.id)
                        queue.append((ref_collection, doc.id))
                        break
                    if fk.on_delete == "set_null":
                        pending_nulls.append((ref_collection, doc.id, fk.field))
            for field_name, ids in restricted.items():
                plan.blockers.append(Blocker(ref_collection, ids, field_name, target, target_id))

    # Referrers that end up deleted need no nulling.
    plan.nulls = [n for n in pending_nulls if not plan.is_deleted(n[0], n[1])]
    logger.info(
        "delete plan %s/%s: %d deletions, %d nulls, %d blockers",
        collection,
        doc_id,
        sum(len(v) for v in plan.deletions.values()),
        len(plan.nulls),
        len(plan.blockers),
    )
    return plan, collections


def _raise_blocked(plan: DeletePlan) -> None:
    b = plan.blockers[0]
    raise ReferentialIntegrityError(b.target, b.target_id, b.collection, b.ids, b.field)


def delete(store: CollectionStore, collection: str, doc_id: str) -> DeletePlan:
    """Delete ``collection/doc_id`` applying every declared on-delete policy.

    Raises NotFoundError if the id is absent and ReferentialIntegrityError
    if a restrict reference exists anywhere in the closure; in both cases
    nothing is written.
    """
    plan, collections = plan_delete(store, collection, doc_id)
    if plan.blocked:
        _raise_blocked(plan)

    affected: set[str] = set()
    for ref_collection, ref_id, field_name in plan.nulls:
        doc = collections[ref_collection].get(ref_id)
        if doc is None:
            continue
        doc.metadata[field_name] = None
        doc.touch()
        affected.add(ref_collection)

    for name, ids in plan.deletions.items():
        coll = collections[name]
        coll.remove(ids)
        gone = set(ids)
        for doc in coll:
            if gone.intersection(doc.children):
                doc.children = [c for c in doc.children if c not in gone]
        affected.add(name)

    store.write_many({name: collections[name].documents for name in _names_in_order(affected)})
    return plan


def _names_in_order(names: set[str]) -> list[str]:
    """Known collections first, in their canonical order, then any others sorted."""
    known = [n for n in COLLECTIONS if n in names]
    return known + sorted(names - set(COLLECTIONS))


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


def dangling_references(store: CollectionStore) -> list[dict[str, Any]]:
    """Every non-null foreign key whose target no longer exists."""
    collections = store.load_many(COLLECTIONS)
    found: list[dict[str, Any]] = []
    for name, coll in list(collections.items()):
        for doc in coll:
            for fk in foreign_keys(name, doc):
                value = doc.metadata.get(fk.field)
                if value is None:
                    continue
                target = collections.get(fk.target)
                if target is None:
                    target = collections[fk.target] = store.load(fk.target)
                if value not in target:
                    found.append({
                        "collection": name,
                        "id": doc.id,
                        "field": fk.field,
                        "value": value,
                        "target": fk.target,
                        "onDelete": fk.on_delete,
                    })
    return found
