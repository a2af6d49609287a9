"""vibebase CLI — JSONL document store with foreign-key enforcement.

Commands:
    vibebase init [NAME]               create vibebase.toml + collection dirs
    vibebase web                       start the JSON API server
    vibebase stats                     collection counts and memory-store info
    vibebase ls COLLECTION             list categories / users / news / comments
    vibebase rm COLLECTION ID          delete with restrict / set_null / cascade
    vibebase check                     report dangling foreign keys
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import click

from vibebase import memory, service
from vibebase.config import VBConfig, init_config, load_config
from vibebase.errors import run_operation
from vibebase.reader import COLLECTIONS

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg(ctx: click.Context) -> VBConfig:
    cfg = ctx.obj.get("cfg") if ctx.obj else None
    if cfg is None:
        try:
            cfg = load_config(ctx.obj.get("root") if ctx.obj else None)
        except Exception as exc:
            raise click.ClickException(str(exc)) from exc
    return cfg


def _run(fn: Any, *args: Any, **kwargs: Any) -> Any:
    """Run an operation; structured failures become a ClickException."""
    outcome = run_operation(fn, *args, **kwargs)
    if not outcome["ok"]:
        err = outcome["error"]
        raise click.ClickException(f"{err['kind']}: {err['message']}")
    return outcome["result"]


def _setup_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format="%(asctime)s %(name)s %(message)s")


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="vibebase")
@click.option("--root", default=None, help="Project root (default: search upward for vibebase.toml)")
@click.option("--log-level", default=None, help="Override [logging].level")
@click.pass_context
def cli(ctx: click.Context, root: str | None, log_level: str | None) -> None:
    """vibebase — JSONL document store viewer."""
    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    if ctx.invoked_subcommand != "init":
        cfg = _load_cfg(ctx)
        ctx.obj["cfg"] = cfg
        _setup_logging(log_level or cfg.logging.level)


# ---------------------------------------------------------------------------
# vibebase init
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(name: str | None, root: str) -> None:
    """Create vibebase.toml and the collection directories."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, name=name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("vibebase.toml already exists — skipping init")

    cfg = load_config(root_path)
    cfg.ensure_dirs()
    click.echo(f"Store root : {cfg.store_root}")
    for coll in COLLECTIONS:
        click.echo(f"  {coll}/{cfg.collection_file}")


# ---------------------------------------------------------------------------
# vibebase web
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", "-b", default=None, help="Bind address (default: [server].host)")
@click.option("--port", "-p", default=None, type=int, help="Port (default: [server].port)")
@click.pass_context
def web(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the JSON API server.

    \b
    vibebase web                  # http://127.0.0.1:3456/api
    vibebase web --port 8080
    vibebase web --host 0.0.0.0   # expose on LAN
    """
    cfg = _load_cfg(ctx)
    from vibebase.web import serve as _web_serve

    _web_serve(cfg, host=host or cfg.server.host, port=port or cfg.server.port)


# ---------------------------------------------------------------------------
# vibebase stats
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show news-system counts and memory-store info."""
    from rich.console import Console
    from rich.table import Table

    cfg = _load_cfg(ctx)
    console = Console()

    table = Table(title=f"vibebase — {cfg.name}", show_header=True, header_style="bold")
    table.add_column("Metric", style="dim", no_wrap=True)
    table.add_column("Value", justify="right")

    table.add_row("Store", str(cfg.store_root))
    for key, value in _run(service.get_stats, cfg.store()).items():
        table.add_row(key, str(value))

    info = memory.database_info(cfg.store_root)
    table.add_row("", "")
    if info is None:
        table.add_row("Memory store", "[dim]none[/dim]")
    else:
        table.add_row("Memories", str(info["memoryCount"]))
        table.add_row("Entities", str(info["entityCount"]))
        table.add_row("Relations", str(info["relationCount"]))
        table.add_row("HNSW index", "yes" if info["hasHnswIndex"] else "[yellow]no[/yellow]")

    console.print(table)


# ---------------------------------------------------------------------------
# vibebase ls
# ---------------------------------------------------------------------------


_PAGE_SIZE = 500


def _all_articles(store: Any) -> list[dict[str, Any]]:
    articles: list[dict[str, Any]] = []
    while True:
        page = service.list_articles(store, limit=_PAGE_SIZE, offset=len(articles))
        articles.extend(page["articles"])
        if not page["articles"] or len(articles) >= page["total"]:
            return articles


_LISTERS: dict[str, Any] = {
    "categories": lambda store: service.list_categories(store),
    "users": lambda store: service.list_users(store),
    "news": _all_articles,
}

_COLUMNS: dict[str, list[str]] = {
    "categories": ["id", "name", "slug", "articleCount"],
    "users": ["id", "name", "email", "role"],
    "news": ["id", "title", "status", "categoryId", "authorId"],
    "comments": ["id", "authorId", "parentId", "content"],
}


def _flatten(tree: list[dict[str, Any]]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for node in tree:
        out.append(node)
        out.extend(_flatten(node.get("replies", [])))
    return out


@cli.command("ls")
@click.argument("collection", type=click.Choice(COLLECTIONS))
@click.option("--news-id", default=None, help="Article whose comments to list (comments only)")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_context
def ls_cmd(ctx: click.Context, collection: str, news_id: str | None, as_json: bool) -> None:
    """List a collection as typed views."""
    cfg = _load_cfg(ctx)
    store = cfg.store()
    if collection == "comments":
        if not news_id:
            raise click.UsageError("--news-id is required for comments")
        tree = _run(service.list_comments, store, news_id)
        rows = _flatten(tree)
        data: Any = tree
    else:
        rows = _run(_LISTERS[collection], store)
        data = rows

    if as_json:
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    table = Table(title=collection, show_header=True, header_style="bold")
    for col in _COLUMNS[collection]:
        table.add_column(col)
    for row in rows:
        cells = []
        for col in _COLUMNS[collection]:
            value = row.get(col)
            text = "" if value is None else str(value)
            if collection == "comments" and col == "id":
                text = "  " * int(row.get("depth") or 0) + text
            cells.append(escape(text[:60]))
        table.add_row(*cells)
    Console().print(table)


# ---------------------------------------------------------------------------
# vibebase rm
# ---------------------------------------------------------------------------


@cli.command("rm")
@click.argument("collection", type=click.Choice(COLLECTIONS))
@click.argument("doc_id")
@click.option("--dry-run", is_flag=True, help="Show what would change without writing")
@click.pass_context
def rm_cmd(ctx: click.Context, collection: str, doc_id: str, dry_run: bool) -> None:
    """Delete a document, applying restrict / set_null / cascade policies."""
    cfg = _load_cfg(ctx)
    store = cfg.store()
    if dry_run:
        plan = _run(service.plan_delete, store, collection, doc_id)
    else:
        plan = _run(service.DELETERS[collection], store, doc_id)

    for name, ids in plan["deleted"].items():
        for i in ids:
            click.echo(f"{'would delete' if dry_run else 'deleted'}  {name}/{i}")
    for n in plan["nulled"]:
        click.echo(f"{'would null' if dry_run else 'nulled'}   {n['collection']}/{n['id']}.{n['field']}")
    for b in plan["blocked"]:
        click.echo(f"blocked by {b['collection']}.{b['field']}: {', '.join(b['ids'])}")


# ---------------------------------------------------------------------------
# vibebase check
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Report foreign keys whose target no longer exists. Exit 1 if any."""
    cfg = _load_cfg(ctx)
    dangling = _run(service.check_integrity, cfg.store())
    if not dangling:
        click.echo("OK — no dangling references")
        return
    for d in dangling:
        click.echo(
            f"{d['collection']}/{d['id']}.{d['field']} -> {d['target']}/{d['value']} missing ({d['onDelete']})"
        )
    ctx.exit(1)


if __name__ == "__main__":
    cli()
