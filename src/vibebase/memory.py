"""Read-only views over the base AIDB memory store.

Layout:
    <root>/
        documents.jsonl          # memory nodes (also holds legacy tagged collection entries)
        hnsw.index               # vector index (presence only)
        graph/
            entities.jsonl
            relations.jsonl
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from vibebase import stats
from vibebase.errors import NotFoundError, ValidationError
from vibebase.reader import CollectionStore, read_jsonl

logger = logging.getLogger("vibebase.memory")

_DOCUMENTS = "documents.jsonl"
_HNSW = "hnsw.index"
_GRAPH_DIR = "graph"
_PREVIEW_DIMS = 10


def _entities_path(root: Path) -> Path:
    return root / _GRAPH_DIR / "entities.jsonl"


def _relations_path(root: Path) -> Path:
    return root / _GRAPH_DIR / "relations.jsonl"


def is_valid_store(path: Path | str) -> bool:
    root = Path(path)
    if not root.is_dir():
        return False
    return any((root / p).exists() for p in (_DOCUMENTS, _HNSW, _GRAPH_DIR))


def require_store(path: Path | str) -> Path:
    if not is_valid_store(path):
        msg = f"Not a valid AIDB database: {path}"
        raise ValidationError(msg, field="path", value=str(path))
    return Path(path)


def database_info(path: Path | str) -> dict[str, Any] | None:
    """Counts and index presence, or None when ``path`` is not a store."""
    root = Path(path)
    if not is_valid_store(root):
        return None
    documents = root / _DOCUMENTS
    last_modified = 0
    if documents.exists():
        last_modified = int(documents.stat().st_mtime * 1000)
    return {
        "path": str(root),
        "name": root.name,
        "memoryCount": len(read_jsonl(documents)),
        "entityCount": len(read_jsonl(_entities_path(root))),
        "relationCount": len(read_jsonl(_relations_path(root))),
        "hasHnswIndex": (root / _HNSW).exists(),
        "lastModified": last_modified,
    }


def list_databases(parent: Path | str) -> list[dict[str, Any]]:
    """The parent itself (if a store) followed by every store directly beneath it."""
    root = Path(parent)
    if not root.exists():
        msg = f"Invalid path: {parent}"
        raise ValidationError(msg, field="path", value=str(parent))
    found: list[dict[str, Any]] = []
    info = database_info(root)
    if info:
        found.append(info)
    try:
        children = sorted(p for p in root.iterdir() if p.is_dir())
    except OSError:
        logger.exception("failed to scan directory: %s", root)
        return found
    for child in children:
        info = database_info(child)
        if info:
            found.append(info)
    return found


def _summarize_embedding(row: dict[str, Any]) -> dict[str, Any]:
    embedding = row.get("embedding")
    dims = len(embedding) if isinstance(embedding, list) else 0
    return {
        **row,
        "embedding": f"[{dims} dims]" if dims else None,
        "embeddingDimension": dims,
    }


def _page(rows: list[Any], limit: int, offset: int) -> list[Any]:
    offset = max(0, offset)
    return rows[offset:offset + max(0, limit)]


def list_memories(
    path: Path | str,
    limit: int = 100,
    offset: int = 0,
    search: str = "",
    tag: str | None = None,
    content_type: str | None = None,
) -> dict[str, Any]:
    root = require_store(path)
    docs = CollectionStore(root).read_legacy()
    if search:
        needle = search.lower()
        docs = [d for d in docs if needle in d.content.lower() or needle in d.id.lower()]
    if tag:
        docs = [d for d in docs if tag in d.tags]
    if content_type:
        docs = [d for d in docs if d.content_type == content_type]
    return {
        "memories": [_summarize_embedding(d.to_dict()) for d in _page(docs, limit, offset)],
        "total": len(docs),
        "offset": offset,
        "limit": limit,
    }


def get_memory(path: Path | str, memory_id: str) -> dict[str, Any]:
    root = require_store(path)
    for doc in CollectionStore(root).read_legacy():
        if doc.id == memory_id:
            row = doc.to_dict()
            embedding = row.get("embedding")
            embedding = embedding if isinstance(embedding, list) else []
            return {
                **row,
                "embeddingDimension": len(embedding),
                "embeddingPreview": embedding[:_PREVIEW_DIMS],
            }
    raise NotFoundError("memories", memory_id)


def list_entities(
    path: Path | str,
    limit: int = 100,
    offset: int = 0,
    entity_type: str | None = None,
) -> dict[str, Any]:
    root = require_store(path)
    entities = read_jsonl(_entities_path(root))
    if entity_type:
        entities = [e for e in entities if e.get("entity_type") == entity_type]
    return {"entities": _page(entities, limit, offset), "total": len(entities), "offset": offset, "limit": limit}


def list_relations(
    path: Path | str,
    limit: int = 100,
    offset: int = 0,
    relation_type: str | None = None,
) -> dict[str, Any]:
    root = require_store(path)
    relations = read_jsonl(_relations_path(root))
    if relation_type:
        relations = [r for r in relations if r.get("relation_type") == relation_type]
    return {"relations": _page(relations, limit, offset), "total": len(relations), "offset": offset, "limit": limit}


def graph_view(path: Path | str, max_nodes: int = 100) -> dict[str, Any]:
    root = require_store(path)
    return stats.graph_view(
        read_jsonl(_entities_path(root)),
        read_jsonl(_relations_path(root)),
        max_nodes=max_nodes,
    )


def tags(path: Path | str) -> list[dict[str, Any]]:
    return stats.tag_frequencies(CollectionStore(require_store(path)).read_legacy())


def content_types(path: Path | str) -> list[dict[str, Any]]:
    docs = CollectionStore(require_store(path)).read_legacy()
    return stats.type_frequencies(d.content_type for d in docs)


def entity_types(path: Path | str) -> list[dict[str, Any]]:
    entities = read_jsonl(_entities_path(require_store(path)))
    return stats.type_frequencies(str(e.get("entity_type", "")) for e in entities)


def importance_distribution(path: Path | str) -> list[dict[str, Any]]:
    docs = CollectionStore(require_store(path)).read_legacy()
    return stats.importance_histogram(d.importance for d in docs)
