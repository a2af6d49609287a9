"""VBConfig: project-local config for a VibeBase document store.

Default layout (all relative to the directory holding vibebase.toml):

    vibebase.toml             # project config
    documents.jsonl           # legacy shared file (memories + tagged entries)
    categories/documents.jsonl
    users/documents.jsonl
    news/documents.jsonl
    comments/documents.jsonl

vibebase.toml example:

    [store]
    root = "."                       # store root, relative to this file
    # collection_file = "documents.jsonl"
    # legacy_file = "documents.jsonl"

    [server]
    host = "127.0.0.1"
    port = 3456

    [logging]
    level = "INFO"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from vibebase.reader import COLLECTIONS, CollectionStore

_CONFIG_FILENAME = "vibebase.toml"
_DEFAULT_FILE = "documents.jsonl"


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3456


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class VBConfig:
    """Resolved configuration for a store."""

    root: Path                      # directory that contains vibebase.toml
    name: str = ""
    store_root: Path = field(default_factory=Path)
    collection_file: str = _DEFAULT_FILE
    legacy_file: str = _DEFAULT_FILE
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def store(self, root: Path | str | None = None) -> CollectionStore:
        """A CollectionStore at ``root`` (default: the configured store root)."""
        return CollectionStore(
            Path(root) if root else self.store_root,
            collection_file=self.collection_file,
            legacy_file=self.legacy_file,
        )

    def ensure_dirs(self) -> None:
        """Create the store root and one directory per collection."""
        for name in COLLECTIONS:
            (self.store_root / name).mkdir(parents=True, exist_ok=True)


def load_config(root: Path | str | None = None) -> VBConfig:
    """Load vibebase.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    store_section = raw.get("store", {})
    srv_section = raw.get("server", {})
    log_section = raw.get("logging", {})

    return VBConfig(
        root=root_path,
        name=raw.get("name", root_path.name),
        store_root=(root_path / store_section.get("root", ".")).resolve(),
        collection_file=store_section.get("collection_file", _DEFAULT_FILE),
        legacy_file=store_section.get("legacy_file", _DEFAULT_FILE),
        server=ServerConfig(
            host=srv_section.get("host", "127.0.0.1"),
            port=int(srv_section.get("port", 3456)),
        ),
        logging=LoggingConfig(
            level=str(log_section.get("level", "INFO")).upper(),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for vibebase.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default vibebase.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"vibebase.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
name = "{project_name}"

[store]
root = "."
# collection_file = "documents.jsonl"   # per-collection file name
# legacy_file = "documents.jsonl"       # shared fallback file at the store root

[server]
host = "127.0.0.1"
port = 3456

[logging]
level = "INFO"
"""
    root.mkdir(parents=True, exist_ok=True)
    config_path.write_text(content)
    return config_path
