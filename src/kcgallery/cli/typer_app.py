"""
KC Gallery Typer CLI Application

Command-line front end over the catalog client. Every command builds the
client from the DI container, restores the persisted cache, runs one
operation and flushes the cache again on the way out.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Optional, TypeVar

import typer

from kcgallery.cli.context import CliContext, LogLevel, get_cli_context, set_cli_context
from kcgallery.cli.output import (
    cache_stats_table,
    comments_table,
    console,
    creators_table,
    err_console,
    history_table,
    links_table,
    post_table,
    posts_table,
    print_json,
)
from kcgallery.config import load_settings, set_config
from kcgallery.containers import Container
from kcgallery.services import CatalogClient
from kcgallery.shared.constants import Application, CLICommands, CLIDefaults, CLIHelp
from kcgallery.shared.error_messages import retrying_message, user_message
from kcgallery.shared.errors import FetchError, KCGalleryError
from kcgallery.shared.logging import setup_structured_logger
from kcgallery.shared.models import ContentSource

R = TypeVar("R")

__version__ = Application.VERSION


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(CLIHelp.VERSION_TEXT.format(version=__version__))
        raise typer.Exit


app = typer.Typer(
    name=CLIHelp.APP_NAME,
    help=CLIHelp.APP_DESCRIPTION,
    rich_markup_mode=CLIHelp.APP_STYLE,
    no_args_is_help=True,
)


@app.callback()
def main(
    json_output: bool = typer.Option(False, "--json", help="Output results as JSON"),
    log_level: Optional[LogLevel] = typer.Option(
        None,
        "--log-level",
        case_sensitive=False,
        help="Console log level (defaults to the configured level)",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a TOML configuration file",
        exists=True,
        dir_okay=False,
    ),
    source: Optional[ContentSource] = typer.Option(
        None,
        "--source",
        "-s",
        case_sensitive=False,
        help="Source for the latest posts listing",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Set up the global CLI context."""
    set_cli_context(
        CliContext(
            json_output=json_output,
            log_level=log_level,
            config_path=config_path,
            source=source,
        ),
    )


# ----------------------------------------------------------------------
# Plumbing
# ----------------------------------------------------------------------


def _create_container(context: CliContext) -> Container:
    settings = load_settings(context.config_path)
    set_config(settings)

    level = context.log_level.value if context.log_level else settings.logging.level
    setup_structured_logger(
        level=level,
        log_file=settings.logging.file,
        use_rich_console=not settings.logging.json_output,
    )
    return Container()


def _on_retry(context: CliContext) -> Callable[[FetchError], None] | None:
    if context.json_output:
        return None

    def notify(error: FetchError) -> None:
        err_console.print(f"[yellow]{retrying_message(error)}[/yellow]")

    return notify


async def _with_client(
    context: CliContext,
    handler: Callable[[CatalogClient], Awaitable[R]],
) -> R:
    container = _create_container(context)
    client: CatalogClient = container.catalog_client()
    await client.restore()
    try:
        return await handler(client)
    finally:
        await client.close()
        container.transport().close()


def _execute(command: str, handler: Callable[[CatalogClient], Awaitable[Any]]) -> Any:
    """Run ``handler`` against a fresh client, mapping errors to exit codes."""
    context = get_cli_context()
    try:
        return asyncio.run(_with_client(context, handler))
    except KCGalleryError as e:
        message = user_message(e)
        if context.json_output:
            print_json(command, None, success=False, errors=[message])
        else:
            err_console.print(f"[red]Error:[/red] {message}")
        raise typer.Exit(CLIDefaults.EXIT_ERROR) from e


def _check_pages(pages: int) -> None:
    if not 1 <= pages <= CLIDefaults.MAX_PAGES:
        msg = f"--pages must be between 1 and {CLIDefaults.MAX_PAGES}"
        raise typer.BadParameter(msg)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


@app.command(CLICommands.CREATOR, help=CLIHelp.CREATOR)
def creator_command(
    service: str = typer.Argument(..., help="Service ID, e.g. patreon or fansly"),
    creator_id: str = typer.Argument(..., help="Creator ID within the service"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the cache"),
) -> None:
    context = get_cli_context()

    async def handler(client: CatalogClient) -> None:
        creator = await client.get_creator(
            service,
            creator_id,
            use_cache=not no_cache,
            on_retry=_on_retry(context),
        )
        if context.json_output:
            print_json(CLICommands.CREATOR, creator)
        else:
            console.print(creators_table([creator], title="Creator"))

    _execute(CLICommands.CREATOR, handler)


@app.command(CLICommands.POST, help=CLIHelp.POST)
def post_command(
    service: str = typer.Argument(..., help="Service ID"),
    creator_id: str = typer.Argument(..., help="Creator ID"),
    post_id: str = typer.Argument(..., help="Post ID"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the cache"),
) -> None:
    context = get_cli_context()

    async def handler(client: CatalogClient) -> None:
        post = await client.get_post(
            service,
            creator_id,
            post_id,
            use_cache=not no_cache,
            on_retry=_on_retry(context),
        )
        if context.json_output:
            print_json(CLICommands.POST, post)
        else:
            console.print(post_table(post))

    _execute(CLICommands.POST, handler)


@app.command(CLICommands.LINKS, help=CLIHelp.LINKS)
def links_command(
    service: str = typer.Argument(..., help="Service ID"),
    creator_id: str = typer.Argument(..., help="Creator ID"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the cache"),
) -> None:
    context = get_cli_context()

    async def handler(client: CatalogClient) -> None:
        links = await client.get_creator_links(
            service,
            creator_id,
            use_cache=not no_cache,
            on_retry=_on_retry(context),
        )
        if context.json_output:
            print_json(CLICommands.LINKS, links)
        elif links:
            console.print(links_table(links, title=f"Accounts linked to {service}/{creator_id}"))
        else:
            console.print("[yellow]No linked accounts[/yellow]")

    _execute(CLICommands.LINKS, handler)


@app.command(CLICommands.COMMENTS, help=CLIHelp.COMMENTS)
def comments_command(
    service: str = typer.Argument(..., help="Service ID"),
    creator_id: str = typer.Argument(..., help="Creator ID"),
    post_id: str = typer.Argument(..., help="Post ID"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the cache"),
) -> None:
    context = get_cli_context()

    async def handler(client: CatalogClient) -> None:
        comments = await client.get_comments(
            service,
            creator_id,
            post_id,
            use_cache=not no_cache,
            on_retry=_on_retry(context),
        )
        if context.json_output:
            print_json(CLICommands.COMMENTS, comments)
        elif comments:
            console.print(comments_table(comments))
        else:
            console.print("[yellow]No comments[/yellow]")

    _execute(CLICommands.COMMENTS, handler)


@app.command(CLICommands.POSTS, help=CLIHelp.POSTS)
def posts_command(
    service: str = typer.Argument(..., help="Service ID"),
    creator_id: str = typer.Argument(..., help="Creator ID"),
    pages: int = typer.Option(CLIDefaults.DEFAULT_PAGES, "--pages", "-p", help="Pages to load"),
    refresh: bool = typer.Option(False, "--refresh", help="Drop cached pages first"),
) -> None:
    _check_pages(pages)
    context = get_cli_context()

    async def handler(client: CatalogClient) -> None:
        cursor = client.creator_posts_cursor(service, creator_id)
        for page in range(pages):
            await client.load_creator_posts(
                service,
                creator_id,
                refresh=refresh and page == 0,
                on_retry=_on_retry(context),
            )
            if not cursor.has_more:
                break
        state = cursor.state
        if context.json_output:
            print_json(
                CLICommands.POSTS,
                {"posts": list(state.items), "offset": state.offset, "has_more": state.has_more},
            )
        else:
            console.print(posts_table(state.items, title=f"Posts of {service}/{creator_id}"))
            if state.has_more:
                console.print(f"[dim]More posts available past offset {state.offset}[/dim]")

    _execute(CLICommands.POSTS, handler)


@app.command(CLICommands.LATEST, help=CLIHelp.LATEST)
def latest_command(
    query: str = typer.Option("", "--query", "-q", help="Filter recent posts"),
    pages: int = typer.Option(CLIDefaults.DEFAULT_PAGES, "--pages", "-p", help="Pages to load"),
    refresh: bool = typer.Option(False, "--refresh", help="Drop cached pages first"),
) -> None:
    _check_pages(pages)
    context = get_cli_context()

    async def handler(client: CatalogClient) -> None:
        if context.source is not None:
            client.switch_source(context.source)
        cursor = client.latest_posts_cursor(query=query)
        for page in range(pages):
            await client.load_latest_posts(
                query,
                refresh=refresh and page == 0,
                on_retry=_on_retry(context),
            )
            if not cursor.has_more:
                break
        state = cursor.state
        if context.json_output:
            print_json(
                CLICommands.LATEST,
                {
                    "source": state.source.value,
                    "posts": list(state.items),
                    "offset": state.offset,
                    "has_more": state.has_more,
                },
            )
        else:
            console.print(posts_table(state.items, title=f"Latest posts ({state.source.value})"))

    _execute(CLICommands.LATEST, handler)


@app.command(CLICommands.SEARCH, help=CLIHelp.SEARCH)
def search_command(
    query: str = typer.Argument(..., help="Creator ID or name"),
    service: Optional[str] = typer.Option(
        None,
        "--service",
        help="Service to search in (required for ID lookups)",
    ),
) -> None:
    context = get_cli_context()

    async def handler(client: CatalogClient) -> None:
        results = await client.search(query, service)
        if context.json_output:
            print_json(CLICommands.SEARCH, results)
        elif results:
            console.print(creators_table(results, title=f"Results for '{query.strip()}'"))
        else:
            console.print("[yellow]No creators found[/yellow]")

    _execute(CLICommands.SEARCH, handler)


@app.command(CLICommands.CACHE, help=CLIHelp.CACHE)
def cache_command(
    stats: bool = typer.Option(False, "--stats", help="Show cache statistics"),
    clear: bool = typer.Option(False, "--clear", help="Clear all cache data"),
    purge: bool = typer.Option(False, "--purge", help="Purge expired cache entries"),
) -> None:
    """Manage the local cache. Shows statistics when no flag is given."""
    context = get_cli_context()

    async def handler(client: CatalogClient) -> None:
        if clear:
            removed = client.cache.clear()
            result: dict[str, Any] = {"cleared": removed}
            message = f"Cleared {removed} cache entries"
        elif purge:
            purged = client.cache.purge_expired()
            result = {"purged": purged}
            message = f"Purged {sum(purged.values())} expired cache entries"
        else:
            result = client.get_stats()["cache"]
            message = ""

        if context.json_output:
            print_json(CLICommands.CACHE, result)
        elif message:
            console.print(f"[green]{message}[/green]")
        else:
            console.print(cache_stats_table(client.cache.stats()))

    _execute(CLICommands.CACHE, handler)


@app.command(CLICommands.HISTORY, help=CLIHelp.HISTORY)
def history_command(
    clear: bool = typer.Option(False, "--clear", help="Forget all past searches"),
) -> None:
    context = get_cli_context()

    async def handler(client: CatalogClient) -> None:
        if client.history is None:
            entries = []
        elif clear:
            client.history.clear()
            entries = []
        else:
            entries = client.history.entries()

        if context.json_output:
            print_json(CLICommands.HISTORY, entries)
        elif clear:
            console.print("[green]Search history cleared[/green]")
        else:
            console.print(history_table(entries))

    _execute(CLICommands.HISTORY, handler)


__all__ = ["app"]
