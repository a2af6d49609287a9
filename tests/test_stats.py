import pytest

from vibebase.models import Document
from vibebase.stats import (
    graph_view,
    importance_bucket,
    importance_histogram,
    tag_frequencies,
    type_frequencies,
)


@pytest.mark.parametrize(
    ("importance", "bucket"),
    [(0.0, 0), (0.1, 1), (0.05, 0), (0.95, 9), (1.0, 9), (-0.2, 0), (3.0, 9), (float("nan"), 0)],
)
def test_importance_bucket(importance, bucket):
    assert importance_bucket(importance) == bucket


def test_importance_histogram():
    hist = importance_histogram([0.0, 0.1, 0.95, 1.0])
    assert len(hist) == 10
    assert hist[0] == {"range": "0.0-0.1", "count": 1}
    assert hist[1]["count"] == 1
    assert hist[9] == {"range": "0.9-1.0", "count": 2}
    assert sum(b["count"] for b in hist) == 4


def test_tag_frequencies_most_common_first():
    docs = [
        Document(id="a", tags=["x", "y"]),
        Document(id="b", tags=["y"]),
        Document(id="c", tags=["z", "y", "x"]),
    ]
    assert tag_frequencies(docs) == [
        {"tag": "y", "count": 3},
        {"tag": "x", "count": 2},
        {"tag": "z", "count": 1},
    ]


def test_type_frequencies():
    assert type_frequencies(["note", "fact", "note"]) == [
        {"type": "note", "count": 2},
        {"type": "fact", "count": 1},
    ]


def test_graph_view_limits_nodes_and_edges():
    entities = [
        {"id": "e1", "name": "Ada", "entity_type": "person"},
        {"id": "e2", "name": "Py", "entity_type": "language"},
        {"id": "e3", "name": "Hidden", "entity_type": "thing"},
    ]
    relations = [
        {"id": "r1", "source": "e1", "target": "e2", "relation_type": "uses", "bidirectional": True},
        {"id": "r2", "source": "e1", "target": "e3", "relation_type": "owns"},
    ]
    view = graph_view(entities, relations, max_nodes=2)
    assert [n["id"] for n in view["nodes"]] == ["e1", "e2"]
    assert view["nodes"][0]["title"] == "Ada (person)"
    assert view["edges"] == [
        {"id": "r1", "from": "e1", "to": "e2", "label": "uses", "arrows": "to;from"},
    ]
    assert view["totalEntities"] == 3
    assert view["totalRelations"] == 2
