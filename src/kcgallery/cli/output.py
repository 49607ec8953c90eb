"""Rendering helpers for CLI results (Rich tables or JSON)."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import orjson
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from kcgallery.services.cache_store import CacheTableStats
from kcgallery.services.search_history import HistoryEntry
from kcgallery.shared.constants import CLIDefaults
from kcgallery.shared.models import CommentRecord, CreatorLink, CreatorRecord, PostRecord

console = Console()
err_console = Console(stderr=True)


def _to_jsonable(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, (list, tuple)):
        return [_to_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {key: _to_jsonable(value) for key, value in data.items()}
    return data


def print_json(command: str, data: Any, *, success: bool = True, errors: list[str] | None = None) -> None:
    """Print a JSON envelope ``{success, command, data, errors}``."""
    payload: dict[str, Any] = {"success": success, "command": command, "data": _to_jsonable(data)}
    if errors:
        payload["errors"] = errors
    console.print_json(orjson.dumps(payload).decode("utf-8"))


def _format_epoch(value: int) -> str:
    if not value:
        return "-"
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d")


def _truncate(text: str, width: int = CLIDefaults.TITLE_WIDTH) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[: width - 1] + "…"


def creators_table(creators: Sequence[CreatorRecord], title: str = "Creators") -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Service", style="blue")
    table.add_column("Name", style="green")
    table.add_column("Favorited", justify="right")
    table.add_column("Updated")
    for creator in creators:
        table.add_row(
            creator.id,
            creator.service,
            creator.name or "-",
            str(creator.favorited),
            _format_epoch(creator.updated),
        )
    return table


def posts_table(posts: Sequence[PostRecord], title: str = "Posts") -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Creator", style="blue")
    table.add_column("Title", style="green")
    table.add_column("Media", justify="right")
    table.add_column("Published")
    for post in posts:
        table.add_row(
            post.id,
            f"{post.service}/{post.user}",
            _truncate(post.title or "(untitled)"),
            str(len(post.media)),
            (post.published or "-")[:10],
        )
    return table


def post_table(post: PostRecord) -> Table:
    table = Table(title=post.title or "(untitled)", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("ID", post.id)
    table.add_row("Creator", f"{post.service}/{post.user}")
    table.add_row("Published", post.published or "-")
    table.add_row("Tags", ", ".join(post.tags) or "-")
    for item in post.media:
        table.add_row("File", item.path)
    if post.content:
        table.add_row("Content", _truncate(post.content, 400))
    return table


def links_table(links: Sequence[CreatorLink], title: str = "Linked Accounts") -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Service", style="blue")
    table.add_column("Name", style="green")
    for link in links:
        table.add_row(link.id, link.service, link.name or "-")
    return table


def comments_table(comments: Sequence[CommentRecord], title: str = "Comments") -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Author", style="green")
    table.add_column("Published")
    table.add_column("Comment")
    for comment in comments:
        table.add_row(
            comment.commenter_name,
            (comment.published or "-")[:10],
            _truncate(comment.content, 120),
        )
    return table


def cache_stats_table(stats: dict[str, CacheTableStats]) -> Table:
    table = Table(title="Cache Statistics", show_header=True, header_style="bold magenta")
    table.add_column("Table", style="cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Capacity", justify="right")
    table.add_column("TTL (h)", justify="right")
    table.add_column("Hit Rate", justify="right")
    table.add_column("Evictions", justify="right")
    for name, item in stats.items():
        table.add_row(
            name,
            str(item.size),
            str(item.max_entries),
            f"{item.ttl / 3600:.1f}",
            f"{item.hit_ratio:.1%}",
            str(item.evictions),
        )
    return table


def history_table(entries: Sequence[HistoryEntry]) -> Table:
    table = Table(title="Search History", show_header=True, header_style="bold magenta")
    table.add_column("Query", style="green")
    table.add_column("Service", style="blue")
    table.add_column("When")
    for entry in entries:
        when = datetime.fromtimestamp(entry.searched_at, tz=timezone.utc)
        table.add_row(entry.query, entry.service_id or "all", when.strftime("%Y-%m-%d %H:%M"))
    return table


__all__ = [
    "cache_stats_table",
    "console",
    "creators_table",
    "err_console",
    "history_table",
    "post_table",
    "posts_table",
    "print_json",
]
