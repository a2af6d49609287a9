"""Aggregate projections for dashboards: counts, distributions, graph view."""

from __future__ import annotations

import math
from collections import Counter
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from vibebase.models import Document
    from vibebase.reader import Collection

_BUCKETS = 10


def news_stats(
    categories: Collection,
    users: Collection,
    news: Collection,
    comments: Collection,
) -> dict[str, int]:
    published = sum(1 for d in news if d.metadata.get("status") == "published")
    return {
        "categoryCount": len(categories),
        "userCount": len(users),
        "articleCount": len(news),
        "commentCount": len(comments),
        "publishedCount": published,
        "draftCount": len(news) - published,
    }


def article_counts(news: Iterable[Document]) -> dict[str, int]:
    """categoryId -> number of articles referencing it."""
    return dict(Counter(d.metadata["categoryId"] for d in news if d.metadata.get("categoryId")))


def tag_frequencies(docs: Iterable[Document]) -> list[dict[str, Any]]:
    """Tag counts, most frequent first; ties keep first-seen order."""
    counts = Counter(tag for d in docs for tag in d.tags)
    return [{"tag": tag, "count": n} for tag, n in counts.most_common()]


def type_frequencies(values: Iterable[str]) -> list[dict[str, Any]]:
    counts = Counter(values)
    return [{"type": t, "count": n} for t, n in counts.most_common()]


def importance_bucket(importance: float) -> int:
    """Bucket i holds [i/10, (i+1)/10); the last bucket is closed at 1.0."""
    if math.isnan(importance):
        return 0
    return max(0, min(_BUCKETS - 1, math.floor(importance * _BUCKETS)))


def importance_histogram(values: Iterable[float]) -> list[dict[str, Any]]:
    buckets = [0] * _BUCKETS
    for v in values:
        buckets[importance_bucket(float(v))] += 1
    return [
        {"range": f"{i / _BUCKETS:.1f}-{(i + 1) / _BUCKETS:.1f}", "count": n}
        for i, n in enumerate(buckets)
    ]


def graph_view(
    entities: list[dict[str, Any]],
    relations: list[dict[str, Any]],
    max_nodes: int = 100,
) -> dict[str, Any]:
    """Nodes for the first ``max_nodes`` entities, edges only between visible nodes."""
    visible = entities[:max_nodes]
    ids = {e.get("id") for e in visible}
    nodes = [
        {
            "id": e.get("id"),
            "label": e.get("name", ""),
            "group": e.get("entity_type", ""),
            "title": f"{e.get('name', '')} ({e.get('entity_type', '')})",
        }
        for e in visible
    ]
    edges = [
        {
            "id": r.get("id"),
            "from": r.get("source"),
            "to": r.get("target"),
            "label": r.get("relation_type", ""),
            "arrows": "to;from" if r.get("bidirectional") else "to",
        }
        for r in relations
        if r.get("source") in ids and r.get("target") in ids
    ]
    return {
        "nodes": nodes,
        "edges": edges,
        "totalEntities": len(entities),
        "totalRelations": len(relations),
    }
