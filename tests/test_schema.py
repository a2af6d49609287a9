from vibebase.models import Document
from vibebase.schema import (
    ForeignKey,
    declarations_for,
    foreign_keys,
    references_to,
    static_foreign_keys,
)


def test_static_policy():
    assert {(fk.field, fk.target, fk.on_delete) for fk in static_foreign_keys("news")} == {
        ("categoryId", "categories", "restrict"),
        ("authorId", "users", "set_null"),
    }
    assert {(fk.field, fk.target, fk.on_delete) for fk in static_foreign_keys("comments")} == {
        ("newsId", "news", "cascade"),
        ("authorId", "users", "set_null"),
        ("parentId", "comments", "cascade"),
    }
    assert static_foreign_keys("users") == []
    assert static_foreign_keys("categories") == []


def test_declarations_for_news():
    assert declarations_for("news") == {
        "categoryId": {"targetCollection": "categories", "onDelete": "restrict"},
        "authorId": {"targetCollection": "users", "onDelete": "set_null"},
    }
    assert declarations_for("users") == {}


def test_per_document_declarations_take_precedence():
    doc = Document(id="c1", metadata={
        "quoteId": "c0",
        "_foreignKeys": {"quoteId": {"targetCollection": "comments", "onDelete": "restrict"}},
    })
    assert foreign_keys("comments", doc) == [ForeignKey("comments", "quoteId", "comments", "restrict")]


def test_undeclared_document_falls_back_to_policy():
    doc = Document(id="n1", metadata={"categoryId": "cat_a"})
    assert foreign_keys("news", doc) == static_foreign_keys("news")


def test_malformed_declarations_are_skipped(caplog):
    doc = Document(id="n1", metadata={"_foreignKeys": {
        "categoryId": {"targetCollection": "categories", "onDelete": "explode"},
        "authorId": "users",
        "editorId": {"targetCollection": "users", "onDelete": "set_null"},
    }})
    assert [fk.field for fk in foreign_keys("news", doc)] == ["editorId"]
    assert "malformed foreign key" in caplog.text


def test_references_to_matches_value_and_target():
    doc = Document(id="c2", metadata={"newsId": "n1", "parentId": "c1", "authorId": "u1"})
    assert [fk.field for fk in references_to("comments", doc, "comments", "c1")] == ["parentId"]
    assert [fk.field for fk in references_to("comments", doc, "users", "u1")] == ["authorId"]
    assert references_to("comments", doc, "news", "n2") == []
