import pytest

from vibebase import service
from vibebase.errors import (
    ConflictError,
    ForeignKeyViolation,
    NotFoundError,
    ValidationError,
    run_operation,
)

# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


def test_create_category(store):
    cat = service.create_category(store, {
        "name": " Science ",
        "description": "Research",
        "icon": "🔬",
        "code": "science",
    })
    assert cat == {
        "id": "cat_science",
        "name": "Science",
        "description": "Research",
        "icon": "🔬",
        "slug": "science",
        "articleCount": 0,
    }
    doc = store.load("categories").get("cat_science")
    assert doc.content == "Science - Research"
    assert doc.content_type == "category"
    assert doc.metadata["_collection"] == "categories"


@pytest.mark.parametrize("code", ["Bad", "with space", "ü", "a.b"])
def test_category_code_must_be_slug(store, code):
    with pytest.raises(ValidationError) as exc_info:
        service.create_category(store, {"name": "n", "description": "d", "icon": "i", "code": code})
    assert exc_info.value.field == "code"


def test_category_requires_fields(store):
    with pytest.raises(ValidationError) as exc_info:
        service.create_category(store, {"name": "n", "description": "d", "code": "x"})
    assert exc_info.value.field == "icon"
    with pytest.raises(ValidationError):
        service.create_category(store, {"name": "n", "description": "d", "icon": "i"})
    with pytest.raises(ValidationError):
        service.create_category(store, {"name": 5, "description": "d", "icon": "i", "code": "x"})
    assert not store.collection_path("categories").exists()


def test_duplicate_category_conflicts(store, seeded):
    with pytest.raises(ConflictError):
        service.create_category(store, {"name": "T", "description": "d", "icon": "i", "code": "tech"})


def test_list_categories_counts_articles(store, seeded):
    (cat,) = service.list_categories(store)
    assert cat["id"] == seeded["category"]
    assert cat["articleCount"] == 1


def test_update_category(store, seeded):
    cat = service.update_category(store, seeded["category"], {"name": "Technology", "icon": "  "})
    assert cat["name"] == "Technology"
    assert cat["icon"] == "💻"
    assert cat["articleCount"] == 1
    assert store.load("categories").get(seeded["category"]).content == "Technology - Technology"


def test_update_missing_category(store):
    with pytest.raises(NotFoundError):
        service.update_category(store, "cat_nope", {"name": "x"})


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def test_create_user(store):
    user = service.create_user(store, {"name": "Zoë Q", "email": "z@example.com", "role": "admin"})
    assert user["id"].startswith("user_zo__q_")
    assert user["role"] == "admin"
    assert "dicebear" in user["avatar"]
    doc = store.load("users").get(user["id"])
    assert doc.tags == ["user", "admin"]
    assert doc.importance == 1.0


def test_invalid_role(store):
    with pytest.raises(ValidationError) as exc_info:
        service.create_user(store, {"name": "A", "email": "a@x", "role": "owner"})
    assert exc_info.value.field == "role"


def test_duplicate_email_ignores_case(store, seeded):
    with pytest.raises(ConflictError):
        service.create_user(store, {"name": "Other", "email": "ALICE@example.com", "role": "guest"})


def test_same_name_same_millisecond_gets_distinct_ids(store, monkeypatch):
    monkeypatch.setattr(service, "now_ms", lambda: 1_700_000_000_000)
    a = service.create_user(store, {"name": "Sam", "email": "a@x", "role": "guest"})
    b = service.create_user(store, {"name": "Sam", "email": "b@x", "role": "guest"})
    assert a["id"] != b["id"]
    assert b["id"] == f"{a['id']}_2"


def test_update_user_role(store, seeded):
    user = service.update_user(store, seeded["bob"], {"role": "editor"})
    assert user["role"] == "editor"
    doc = store.load("users").get(seeded["bob"])
    assert doc.tags == ["user", "editor"]
    with pytest.raises(ConflictError):
        service.update_user(store, seeded["bob"], {"email": "alice@example.com"})
    service.update_user(store, seeded["bob"], {"email": "BOB@example.com"})


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


def test_create_article_view(store, seeded):
    article = service.get_article(store, seeded["article"])
    assert article["title"] == "Hello"
    assert article["content"] == "First post"
    assert article["status"] == "published"
    assert article["tags"] == ["news", "intro"]
    assert article["category"]["id"] == seeded["category"]
    assert article["author"]["id"] == seeded["alice"]
    doc = store.load("news").get(seeded["article"])
    assert doc.content == "Hello\n\nFirst post"
    assert doc.metadata["_foreignKeys"]["categoryId"]["onDelete"] == "restrict"
    assert doc.importance == 0.8


def test_draft_article_has_no_published_at(store, seeded):
    article = service.create_article(store, {
        "title": "Draft",
        "content": "wip",
        "categoryId": seeded["category"],
        "authorId": seeded["bob"],
    })
    doc = store.load("news").get(article["id"])
    assert article["status"] == "draft"
    assert "publishedAt" not in doc.metadata
    assert article["publishedAt"] == doc.created_at
    assert doc.importance == 0.5


def test_invalid_status(store, seeded):
    with pytest.raises(ValidationError):
        service.create_article(store, {
            "title": "x",
            "content": "y",
            "categoryId": seeded["category"],
            "authorId": seeded["bob"],
            "status": "archived",
        })


@pytest.fixture
def articles(add_doc):
    add_doc("categories", "cat_x", name="X")
    add_doc("categories", "cat_y", name="Y")
    add_doc("users", "u1", name="U1")
    add_doc("news", "n_old", content="Old\n\nalpha", title="Old", categoryId="cat_x", authorId="u1",
            status="published", publishedAt=100)
    add_doc("news", "n_new", content="New\n\nbeta", title="New", categoryId="cat_x", authorId="u1",
            status="published", publishedAt=300)
    add_doc("news", "n_aaa", content="Tie\n\ngamma", title="Tie", categoryId="cat_y", authorId="u1",
            status="published", publishedAt=300)
    add_doc("news", "n_draft", created_at=200, content="Draft\n\nAlpha", title="Draft", categoryId="cat_y",
            authorId=None, status="draft")


def test_list_articles_newest_first_ties_by_id(store, articles):
    result = service.list_articles(store)
    assert [a["id"] for a in result["articles"]] == ["n_aaa", "n_new", "n_draft", "n_old"]
    assert result["total"] == 4


def test_list_articles_filters(store, articles):
    assert service.list_articles(store, status="draft")["total"] == 1
    assert service.list_articles(store, category_id="cat_x")["total"] == 2
    assert service.list_articles(store, author_id="u1")["total"] == 3
    found = service.list_articles(store, search="ALPHA")
    assert sorted(a["id"] for a in found["articles"]) == ["n_draft", "n_old"]
    assert service.list_articles(store, search="tie")["total"] == 1


def test_list_articles_pagination(store, articles):
    page = service.list_articles(store, limit=2, offset=1)
    assert [a["id"] for a in page["articles"]] == ["n_new", "n_draft"]
    assert page["total"] == 4
    assert service.list_articles(store, offset=10)["articles"] == []


def test_update_article(store, seeded):
    article = service.update_article(store, seeded["article"], {"title": "Hi", "likeCount": 3})
    assert article["title"] == "Hi"
    assert article["content"] == "First post"
    assert article["likeCount"] == 3
    assert store.load("news").get(seeded["article"]).content == "Hi\n\nFirst post"

    article = service.update_article(store, seeded["article"], {"content": "Second", "tags": ["x"]})
    assert article["content"] == "Second"
    assert article["tags"] == ["news", "x"]


def test_update_article_publishes_once(store, seeded):
    draft = service.create_article(store, {
        "title": "D",
        "content": "c",
        "categoryId": seeded["category"],
        "authorId": seeded["bob"],
    })
    service.update_article(store, draft["id"], {"status": "published"})
    first = store.load("news").get(draft["id"]).metadata["publishedAt"]
    service.update_article(store, draft["id"], {"status": "draft"})
    service.update_article(store, draft["id"], {"status": "published"})
    assert store.load("news").get(draft["id"]).metadata["publishedAt"] == first


def test_update_article_checks_new_references(store, seeded):
    before = store.collection_path("news").read_bytes()
    with pytest.raises(ForeignKeyViolation):
        service.update_article(store, seeded["article"], {"categoryId": "cat_gone"})
    with pytest.raises(ValidationError):
        service.update_article(store, seeded["article"], {"viewCount": -1})
    assert store.collection_path("news").read_bytes() == before


def test_get_missing_article(store):
    with pytest.raises(NotFoundError):
        service.get_article(store, "news_nope")


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def test_comment_thread(store, seeded):
    (root,) = service.list_comments(store, seeded["article"])
    assert root["id"] == seeded["c1"]
    assert root["depth"] == 0
    assert root["author"]["name"] == "Bob"
    (reply,) = root["replies"]
    assert reply["id"] == seeded["c2"]
    assert reply["depth"] == 1
    assert reply["parentId"] == seeded["c1"]
    assert store.load("comments").get(seeded["c2"]).tags == ["comment", "reply"]


def test_create_comment_returns_empty_replies(store, seeded):
    comment = service.create_comment(store, {
        "newsId": seeded["article"],
        "authorId": seeded["bob"],
        "content": "deeper",
        "parentId": seeded["c2"],
    })
    assert comment["replies"] == []
    assert comment["depth"] == 2
    assert comment["author"]["id"] == seeded["bob"]


def test_reply_must_belong_to_same_article(store, seeded):
    other = service.create_article(store, {
        "title": "Other",
        "content": "x",
        "categoryId": seeded["category"],
        "authorId": seeded["alice"],
    })
    with pytest.raises(ValidationError) as exc_info:
        service.create_comment(store, {
            "newsId": other["id"],
            "authorId": seeded["bob"],
            "content": "wrong thread",
            "parentId": seeded["c1"],
        })
    assert exc_info.value.field == "parentId"


def test_comment_requires_content(store, seeded):
    with pytest.raises(ValidationError) as exc_info:
        service.create_comment(store, {"newsId": seeded["article"], "authorId": seeded["bob"], "content": " "})
    assert exc_info.value.field == "content"


def test_update_comment(store, seeded):
    comment = service.update_comment(store, seeded["c1"], {"content": "Edited", "likeCount": 2})
    assert comment["content"] == "Edited"
    assert comment["likeCount"] == 2
    assert comment["author"]["id"] == seeded["bob"]


def test_list_comments_other_article_is_empty(store, seeded):
    assert service.list_comments(store, "news_other") == []


# ---------------------------------------------------------------------------
# Stats / run_operation
# ---------------------------------------------------------------------------


def test_stats(store, seeded):
    assert service.get_stats(store) == {
        "categoryCount": 1,
        "userCount": 2,
        "articleCount": 1,
        "commentCount": 2,
        "publishedCount": 1,
        "draftCount": 0,
    }


def test_stats_on_empty_store(tmp_path):
    assert service.get_stats(tmp_path)["articleCount"] == 0


def test_run_operation(store, seeded):
    ok = run_operation(service.get_stats, store)
    assert ok["ok"] is True
    assert ok["result"]["userCount"] == 2

    failed = run_operation(service.delete_category, store, seeded["category"])
    assert failed["ok"] is False
    assert failed["error"]["kind"] == "referential_integrity"
    assert failed["error"]["details"]["blocking_ids"] == [seeded["article"]]


def test_non_numeric_metadata_falls_back_to_defaults(store, seeded, add_doc):
    add_doc(
        "news",
        "news_legacy",
        created_at=1_234,
        content="Legacy\n\nold",
        title="Legacy",
        categoryId=seeded["category"],
        authorId=seeded["alice"],
        status="published",
        publishedAt="2024-01-01T00:00:00Z",
        viewCount="many",
        likeCount=None,
    )
    add_doc("comments", "comment_legacy", newsId="news_legacy", authorId=None, parentId=None, likeCount="lots")

    outcome = run_operation(service.list_articles, store)
    assert outcome["ok"], outcome
    result = outcome["result"]
    assert result["total"] == 2
    assert [a["id"] for a in result["articles"]] == [seeded["article"], "news_legacy"]

    legacy = service.get_article(store, "news_legacy")
    assert legacy["publishedAt"] == 1_234
    assert legacy["viewCount"] == 0
    assert legacy["likeCount"] == 0
    (comment,) = service.list_comments(store, "news_legacy")
    assert comment["likeCount"] == 0


def test_comment_cannot_be_its_own_parent(store, seeded, monkeypatch):
    monkeypatch.setattr(service, "new_doc_id", lambda prefix: f"{prefix}_self")
    with pytest.raises(ForeignKeyViolation) as exc_info:
        service.create_comment(store, {
            "newsId": seeded["article"],
            "authorId": seeded["bob"],
            "content": "me",
            "parentId": "comment_self",
        })
    assert exc_info.value.field == "parentId"
    assert "comment_self" not in store.load("comments")
