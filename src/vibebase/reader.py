"""Read and write collection documents.jsonl files.

CollectionStore is the public API:
    store = CollectionStore("/path/to/db")
    news = store.load("news")                 # Collection, ordered, indexed by id
    store.append("news", doc)                 # single-line O_APPEND fast path
    store.write("news", news.documents)       # full rewrite (update/delete)

Layout:
    <root>/
        documents.jsonl              # legacy shared file (read fallback)
        categories/documents.jsonl
        users/documents.jsonl
        news/documents.jsonl
        comments/documents.jsonl

A collection is the merge of its dedicated file and the legacy entries
tagged ``metadata._collection == <name>``. Dedicated entries win on id
collisions. Full rewrites land in the dedicated file and purge the
collection's entries from the legacy file, so a deleted id can never
resurface from the fallback source.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from vibebase.errors import StorageError
from vibebase.models import Document

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger("vibebase.reader")

COLLECTIONS: tuple[str, ...] = ("categories", "users", "news", "comments")
CONTENT_TYPES: dict[str, str] = {
    "categories": "category",
    "users": "user",
    "news": "news",
    "comments": "comment",
}
_DEFAULT_FILE = "documents.jsonl"


def read_jsonl(path: Path) -> list[dict[str, Any]]:
    """Read one JSON object per line. Missing file -> []. Bad lines are logged and skipped."""
    if not path.exists():
        return []
    rows: list[dict[str, Any]] = []
    try:
        with path.open(encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("skipping malformed line %s:%d", path, lineno)
                    continue
                if not isinstance(obj, dict):
                    logger.warning("skipping non-object line %s:%d", path, lineno)
                    continue
                rows.append(obj)
    except OSError as exc:
        msg = f"Failed to read {path}: {exc}"
        raise StorageError(msg, path=str(path)) from exc
    return rows


def _encode(doc: Document) -> str:
    return json.dumps(doc.to_dict(), ensure_ascii=False) + "\n"


def _atomic_write_text(path: Path, text: str) -> None:
    """Write to a unique sibling tmp file then rename over the target."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        tmp = Path(tmp_name)
        try:
            os.fchmod(fd, 0o644)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            tmp.replace(path)
        finally:
            # no-op once the rename succeeded
            tmp.unlink(missing_ok=True)
    except OSError as exc:
        msg = f"Failed to write {path}: {exc}"
        raise StorageError(msg, path=str(path)) from exc


class Collection:
    """An ordered collection with an id -> position index.

    Lookups are O(1); removal keeps order and rebuilds the index.
    """

    def __init__(self, name: str, documents: Iterable[Document] = ()) -> None:
        self.name = name
        self.documents: list[Document] = []
        self._index: dict[str, int] = {}
        for doc in documents:
            if doc.id in self._index:
                logger.warning("%s: duplicate id %s ignored", name, doc.id)
                continue
            self._index[doc.id] = len(self.documents)
            self.documents.append(doc)

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._index

    def get(self, doc_id: str | None) -> Document | None:
        if doc_id is None:
            return None
        pos = self._index.get(doc_id)
        return None if pos is None else self.documents[pos]

    def ids(self) -> list[str]:
        return [d.id for d in self.documents]

    def remove(self, doc_ids: Iterable[str]) -> list[Document]:
        """Drop the given ids, returning the removed documents in collection order."""
        drop = set(doc_ids)
        removed = [d for d in self.documents if d.id in drop]
        if removed:
            self.documents = [d for d in self.documents if d.id not in drop]
            self._index = {d.id: i for i, d in enumerate(self.documents)}
        return removed


class CollectionStore:
    """JSONL-backed collection store rooted at one directory."""

    def __init__(
        self,
        root: Path | str,
        collection_file: str = _DEFAULT_FILE,
        legacy_file: str = _DEFAULT_FILE,
    ) -> None:
        self.root = Path(root)
        self.collection_file = collection_file
        self.legacy_file = legacy_file

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def collection_path(self, name: str) -> Path:
        return self.root / name / self.collection_file

    @property
    def legacy_path(self) -> Path:
        return self.root / self.legacy_file

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _rows_to_docs(self, rows: list[dict[str, Any]], source: Path) -> list[Document]:
        docs: list[Document] = []
        for row in rows:
            if "id" not in row:
                logger.warning("skipping row without id in %s", source)
                continue
            try:
                docs.append(Document.from_dict(row))
            except (TypeError, ValueError):
                logger.warning("skipping unreadable document %r in %s", row.get("id"), source)
        return docs

    def read_legacy(self) -> list[Document]:
        """All documents of the shared legacy file, whatever their collection."""
        return self._rows_to_docs(read_jsonl(self.legacy_path), self.legacy_path)

    def load(self, name: str) -> Collection:
        """Merge dedicated file and tagged legacy entries. Dedicated wins."""
        path = self.collection_path(name)
        docs = self._rows_to_docs(read_jsonl(path), path)
        seen = {d.id for d in docs}
        for doc in self.read_legacy():
            if doc.metadata.get("_collection") == name and doc.id not in seen:
                docs.append(doc)
                seen.add(doc.id)
        return Collection(name, docs)

    def load_many(self, names: Iterable[str]) -> dict[str, Collection]:
        return {name: self.load(name) for name in names}

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def append(self, name: str, doc: Document) -> None:
        """Append one document line without rewriting the collection."""
        path = self.collection_path(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # O_APPEND: one write() per line
            with path.open("a", encoding="utf-8") as f:
                f.write(_encode(doc))
        except OSError as exc:
            msg = f"Failed to append to {path}: {exc}"
            raise StorageError(msg, path=str(path)) from exc
        logger.info("%s: appended %s", name, doc.id)

    def write(self, name: str, documents: Iterable[Document]) -> None:
        """Replace the persisted collection with exactly ``documents``."""
        self.write_many({name: list(documents)})

    def write_many(self, collections: dict[str, list[Document]]) -> None:
        """Rewrite each collection file once, then purge their legacy entries once."""
        for name, documents in collections.items():
            path = self.collection_path(name)
            _atomic_write_text(path, "".join(_encode(d) for d in documents))
            logger.info("%s: wrote %d documents to %s", name, len(documents), path)
        self._purge_legacy(set(collections))

    def _purge_legacy(self, names: set[str]) -> None:
        """Drop entries tagged for ``names`` from the legacy file, keeping every other line verbatim."""
        path = self.legacy_path
        if not names or not path.exists():
            return
        try:
            lines = path.read_text(encoding="utf-8").splitlines(keepends=True)
        except OSError as exc:
            msg = f"Failed to read {path}: {exc}"
            raise StorageError(msg, path=str(path)) from exc

        kept: list[str] = []
        dropped = 0
        for line in lines:
            stripped = line.strip()
            if stripped:
                try:
                    obj = json.loads(stripped)
                except json.JSONDecodeError:
                    obj = None
                meta = obj.get("metadata") if isinstance(obj, dict) else None
                if isinstance(meta, dict) and meta.get("_collection") in names:
                    dropped += 1
                    continue
            kept.append(line if line.endswith("\n") else line + "\n")

        if dropped:
            _atomic_write_text(path, "".join(kept))
            logger.info("legacy: purged %d entries for %s", dropped, ", ".join(sorted(names)))
