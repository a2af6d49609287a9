import pytest

from vibebase.config import init_config, load_config


def test_defaults_without_file(tmp_path):
    cfg = load_config(tmp_path)
    assert cfg.root == tmp_path
    assert cfg.name == tmp_path.name
    assert cfg.store_root == tmp_path.resolve()
    assert cfg.server.port == 3456
    assert cfg.logging.level == "INFO"


def test_init_then_load(tmp_path):
    path = init_config(tmp_path, name="blog")
    assert path.name == "vibebase.toml"
    cfg = load_config(tmp_path)
    assert cfg.name == "blog"
    assert cfg.server.host == "127.0.0.1"
    with pytest.raises(FileExistsError):
        init_config(tmp_path)


def test_custom_store_root_and_search_upward(tmp_path):
    (tmp_path / "vibebase.toml").write_text(
        'name = "x"\n[store]\nroot = "data"\ncollection_file = "docs.jsonl"\n'
        '[server]\nport = 9000\n[logging]\nlevel = "debug"\n'
    )
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    cfg = load_config(nested)
    assert cfg.root == tmp_path
    assert cfg.store_root == (tmp_path / "data").resolve()
    assert cfg.server.port == 9000
    assert cfg.logging.level == "DEBUG"
    assert cfg.store().collection_path("news") == cfg.store_root / "news" / "docs.jsonl"


def test_ensure_dirs(tmp_path):
    cfg = load_config(tmp_path)
    cfg.ensure_dirs()
    for name in ("categories", "users", "news", "comments"):
        assert (tmp_path / name).is_dir()
