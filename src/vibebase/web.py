"""JSON HTTP API for the VibeBase viewer.

Routes (store root via ``path`` in the query string or JSON body,
defaulting to the configured store root):

    GET    /api/health
    POST   /api/validate                  {path}
    GET    /api/stats | /api/databases
    GET    /api/memories[/<id>] | /api/entities | /api/relations | /api/graph
    GET    /api/tags | /api/content-types | /api/entity-types | /api/importance-distribution
    GET    /api/news/stats
    GET    /api/news/{categories,users,articles}      POST same
    PUT    /api/news/{categories,users,articles,comments}/<id>
    DELETE /api/news/{categories,users,articles,comments}/<id>
    GET    /api/news/articles/<id>
    GET    /api/news/comments?newsId=...              POST /api/news/comments

Failures are ``{"error": {"kind", "message", "details"}}`` with the
status code of the error kind.
"""

from __future__ import annotations

import json
import logging
import re
import socketserver
import urllib.parse
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import TYPE_CHECKING, Any

from vibebase import memory, service
from vibebase.errors import ValidationError, VibeBaseError
from vibebase.models import now_ms
from vibebase.reader import CollectionStore

if TYPE_CHECKING:
    from collections.abc import Callable

    from vibebase.config import VBConfig

logger = logging.getLogger("vibebase.web")


# ─── Request context ──────────────────────────────────────────────────────────


@dataclass
class _Request:
    cfg: VBConfig
    params: dict[str, str]
    body: dict[str, Any]
    args: tuple[str, ...] = ()

    @property
    def root(self) -> Path:
        raw = self.body.get("path") or self.params.get("path")
        return Path(raw) if raw else self.cfg.store_root

    def store(self) -> CollectionStore:
        root = self.root
        if not root.is_dir():
            msg = f"Invalid database path: {root}"
            raise ValidationError(msg, field="path", value=str(root))
        return self.cfg.store(root)

    def int_param(self, key: str, default: int) -> int:
        try:
            value = int(self.params.get(key, ""))
        except ValueError:
            return default
        return value if value > 0 else default

    def fields(self) -> dict[str, Any]:
        return {k: v for k, v in self.body.items() if k != "path"}


_Result = tuple[int, Any]


# ─── Legacy memory store ──────────────────────────────────────────────────────


def _health(req: _Request) -> _Result:
    return 200, {"status": "ok", "timestamp": now_ms()}


def _validate(req: _Request) -> _Result:
    raw = req.body.get("path")
    if not raw:
        msg = "Path is required"
        raise ValidationError(msg, field="path")
    info = memory.database_info(raw)
    if info:
        return 200, {"valid": True, "info": info}
    return 200, {"valid": False, "error": "Not a valid AIDB database"}


def _stats(req: _Request) -> _Result:
    return 200, memory.database_info(memory.require_store(req.root))


def _databases(req: _Request) -> _Result:
    return 200, {"databases": memory.list_databases(req.root)}


def _memories(req: _Request) -> _Result:
    return 200, memory.list_memories(
        req.root,
        limit=req.int_param("limit", 100),
        offset=req.int_param("offset", 0),
        search=req.params.get("search", ""),
        tag=req.params.get("tag") or None,
        content_type=req.params.get("contentType") or None,
    )


def _memory(req: _Request) -> _Result:
    return 200, memory.get_memory(req.root, req.args[0])


def _entities(req: _Request) -> _Result:
    return 200, memory.list_entities(
        req.root,
        limit=req.int_param("limit", 100),
        offset=req.int_param("offset", 0),
        entity_type=req.params.get("entityType") or None,
    )


def _relations(req: _Request) -> _Result:
    return 200, memory.list_relations(
        req.root,
        limit=req.int_param("limit", 100),
        offset=req.int_param("offset", 0),
        relation_type=req.params.get("relationType") or None,
    )


def _graph(req: _Request) -> _Result:
    return 200, memory.graph_view(req.root, max_nodes=req.int_param("maxNodes", 100))


def _tags(req: _Request) -> _Result:
    return 200, {"tags": memory.tags(req.root)}


def _content_types(req: _Request) -> _Result:
    return 200, {"types": memory.content_types(req.root)}


def _entity_types(req: _Request) -> _Result:
    return 200, {"types": memory.entity_types(req.root)}


def _importance(req: _Request) -> _Result:
    return 200, {"distribution": memory.importance_distribution(req.root)}


# ─── News system ──────────────────────────────────────────────────────────────


def _news_stats(req: _Request) -> _Result:
    return 200, service.get_stats(req.store())


def _categories(req: _Request) -> _Result:
    return 200, {"categories": service.list_categories(req.store())}


def _create_category(req: _Request) -> _Result:
    return 201, {"success": True, "category": service.create_category(req.store(), req.fields())}


def _update_category(req: _Request) -> _Result:
    category = service.update_category(req.store(), req.args[0], req.fields())
    return 200, {"success": True, "category": category}


def _users(req: _Request) -> _Result:
    return 200, {"users": service.list_users(req.store())}


def _create_user(req: _Request) -> _Result:
    return 201, {"success": True, "user": service.create_user(req.store(), req.fields())}


def _update_user(req: _Request) -> _Result:
    return 200, {"success": True, "user": service.update_user(req.store(), req.args[0], req.fields())}


def _articles(req: _Request) -> _Result:
    return 200, service.list_articles(
        req.store(),
        limit=req.int_param("limit", 100),
        offset=req.int_param("offset", 0),
        category_id=req.params.get("categoryId") or None,
        author_id=req.params.get("authorId") or None,
        status=req.params.get("status") or None,
        search=req.params.get("search") or None,
    )


def _article(req: _Request) -> _Result:
    return 200, service.get_article(req.store(), req.args[0])


def _create_article(req: _Request) -> _Result:
    return 201, service.create_article(req.store(), req.fields())


def _update_article(req: _Request) -> _Result:
    article = service.update_article(req.store(), req.args[0], req.fields())
    return 200, {"success": True, "article": article}


def _comments(req: _Request) -> _Result:
    news_id = req.params.get("newsId")
    if not news_id:
        msg = "newsId is required"
        raise ValidationError(msg, field="newsId")
    return 200, {"comments": service.list_comments(req.store(), news_id)}


def _create_comment(req: _Request) -> _Result:
    return 201, service.create_comment(req.store(), req.fields())


def _update_comment(req: _Request) -> _Result:
    comment = service.update_comment(req.store(), req.args[0], req.fields())
    return 200, {"success": True, "comment": comment}


def _deleter(collection: str) -> Callable[[_Request], _Result]:
    def _delete(req: _Request) -> _Result:
        plan = service.DELETERS[collection](req.store(), req.args[0])
        return 200, {"success": True, **plan}
    return _delete


_ID = r"([^/]+)"

_ROUTES: list[tuple[str, re.Pattern[str], Callable[[_Request], _Result]]] = [
    (method, re.compile(f"^{pattern}$"), fn)
    for method, pattern, fn in [
        ("GET", "/api/health", _health),
        ("POST", "/api/validate", _validate),
        ("GET", "/api/stats", _stats),
        ("GET", "/api/databases", _databases),
        ("GET", "/api/memories", _memories),
        ("GET", f"/api/memories/{_ID}", _memory),
        ("GET", "/api/entities", _entities),
        ("GET", "/api/relations", _relations),
        ("GET", "/api/graph", _graph),
        ("GET", "/api/tags", _tags),
        ("GET", "/api/content-types", _content_types),
        ("GET", "/api/entity-types", _entity_types),
        ("GET", "/api/importance-distribution", _importance),
        ("GET", "/api/news/stats", _news_stats),
        ("GET", "/api/news/categories", _categories),
        ("POST", "/api/news/categories", _create_category),
        ("PUT", f"/api/news/categories/{_ID}", _update_category),
        ("DELETE", f"/api/news/categories/{_ID}", _deleter("categories")),
        ("GET", "/api/news/users", _users),
        ("POST", "/api/news/users", _create_user),
        ("PUT", f"/api/news/users/{_ID}", _update_user),
        ("DELETE", f"/api/news/users/{_ID}", _deleter("users")),
        ("GET", "/api/news/articles", _articles),
        ("POST", "/api/news/articles", _create_article),
        ("GET", f"/api/news/articles/{_ID}", _article),
        ("PUT", f"/api/news/articles/{_ID}", _update_article),
        ("DELETE", f"/api/news/articles/{_ID}", _deleter("news")),
        ("GET", "/api/news/comments", _comments),
        ("POST", "/api/news/comments", _create_comment),
        ("PUT", f"/api/news/comments/{_ID}", _update_comment),
        ("DELETE", f"/api/news/comments/{_ID}", _deleter("comments")),
    ]
]


# ─── HTTP plumbing ────────────────────────────────────────────────────────────


class _Handler(BaseHTTPRequestHandler):
    cfg: VBConfig

    def do_GET(self) -> None:
        self._dispatch("GET")

    def do_POST(self) -> None:
        self._dispatch("POST")

    def do_PUT(self) -> None:
        self._dispatch("PUT")

    def do_DELETE(self) -> None:
        self._dispatch("DELETE")

    def do_OPTIONS(self) -> None:
        self.send_response(204)
        self._cors()
        self.end_headers()

    def _read_body(self) -> dict[str, Any]:
        length = int(self.headers.get("Content-Length", 0))
        if not length:
            return {}
        raw = self.rfile.read(length).decode(errors="replace")
        try:
            body = json.loads(raw)
        except json.JSONDecodeError as exc:
            msg = f"Invalid JSON body: {exc.msg}"
            raise ValidationError(msg) from exc
        if not isinstance(body, dict):
            msg = "JSON body must be an object"
            raise ValidationError(msg)
        return body

    def _dispatch(self, method: str) -> None:
        parsed = urllib.parse.urlparse(self.path)
        params = {k: v[0] for k, v in urllib.parse.parse_qs(parsed.query).items()}
        path = parsed.path.rstrip("/") or "/"

        matched_path = False
        for route_method, pattern, fn in _ROUTES:
            m = pattern.match(path)
            if m is None:
                continue
            matched_path = True
            if route_method != method:
                continue
            args = tuple(urllib.parse.unquote(g) for g in m.groups())
            try:
                body = self._read_body() if method in ("POST", "PUT") else {}
                status, payload = fn(_Request(self.cfg, params, body, args))
            except VibeBaseError as exc:
                if exc.http_status >= 500:
                    logger.error("%s %s: %s", method, path, exc.message)
                self._json({"error": exc.to_dict()}, exc.http_status)
            except Exception:
                logger.exception("%s %s failed", method, path)
                self._json({"error": {"kind": "internal", "message": "Internal server error", "details": {}}}, 500)
            else:
                self._json(payload, status)
            return

        if matched_path:
            self._json({"error": {"kind": "method_not_allowed", "message": f"{method} not allowed", "details": {}}}, 405)
        else:
            self._json({"error": {"kind": "not_found", "message": f"No route: {path}", "details": {}}}, 404)

    def _cors(self) -> None:
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST, PUT, DELETE, OPTIONS")
        self.send_header("Access-Control-Allow-Headers", "Content-Type")

    def _json(self, payload: Any, status: int = 200) -> None:
        encoded = json.dumps(payload, ensure_ascii=False).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self._cors()
        self.end_headers()
        self.wfile.write(encoded)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        pass  # suppress per-request logging


class _ThreadingHTTPServer(socketserver.ThreadingMixIn, HTTPServer):
    daemon_threads = True


def make_handler(cfg: VBConfig) -> type[_Handler]:
    class _Bound(_Handler):
        pass
    _Bound.cfg = cfg
    return _Bound


def make_server(cfg: VBConfig, host: str, port: int) -> HTTPServer:
    return _ThreadingHTTPServer((host, port), make_handler(cfg))


def serve(cfg: VBConfig, host: str, port: int) -> None:
    """Start the API server (blocking until Ctrl+C)."""
    server = make_server(cfg, host, port)
    print(f"vibebase web  →  http://{host}:{port}/api  (Ctrl+C to stop)")
    logger.info("serving store %s on %s:%d", cfg.store_root, host, port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
