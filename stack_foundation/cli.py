"""stack-foundation CLI - inspect and warm the local caches."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable
from collections.abc import Callable
from typing import Any
from typing import NoReturn
from typing import TypeVar

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from stack_foundation.cache.artifact import ArtifactCache
from stack_foundation.charts.cache import ChartCache
from stack_foundation.exceptions import FoundationError
from stack_foundation.settings import FoundationSettings
from stack_foundation.settings import load_settings
from stack_foundation.sources.github import GitHubBrowser

logger = logging.getLogger(__name__)

console = Console()

T = TypeVar("T")

HTTP_TIMEOUT = 30.0


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _fail(error: FoundationError) -> NoReturn:
    console.print(f"[red]Error:[/red] {error}")
    sys.exit(1)


def _settings(*, github: bool = False) -> FoundationSettings:
    """Load settings for one command; only GitHub commands look up a token."""
    try:
        settings = load_settings(resolve_token=github)
    except FoundationError as e:
        _fail(e)
    _configure_logging(settings.log_level)
    return settings


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=HTTP_TIMEOUT, follow_redirects=True)


def _run(coro_factory: Callable[[], Awaitable[T]]) -> T:
    """Run an async operation, turning library errors into exit status 1."""
    try:
        return asyncio.run(coro_factory())
    except FoundationError as e:
        _fail(e)


async def _with_browser(settings: FoundationSettings, action: Callable[[GitHubBrowser], Awaitable[T]]) -> T:
    async with _http_client() as client:
        cache = ArtifactCache(settings.artifact_dir, client)
        browser = GitHubBrowser.from_settings(settings, cache, client)
        return await action(browser)


@click.group()
def cli() -> None:
    """Content-addressed caches for remote files and helm charts."""


@cli.command("cache-dir")
def cache_dir() -> None:
    """Print the cache root."""
    settings = _settings()
    console.print(str(settings.cache_root), soft_wrap=True)


@cli.command("file")
@click.argument("repo")
@click.argument("path")
@click.option("--tag", help="Immutable tag to read the file at")
@click.option("--commit", help="Commit SHA to read the file at")
@click.option("--cat", "show", is_flag=True, help="Print the contents instead of the local path")
def file_cmd(repo: str, path: str, tag: str | None, commit: str | None, show: bool) -> None:
    """Fetch one file of REPO (owner/name) into the cache."""
    settings = _settings(github=True)

    async def action(browser: GitHubBrowser) -> Any:
        item = browser.file_at(repo, path, tag=tag, commit=commit)
        if show:
            return await item.read_contents()
        return await item.resolve_path()

    result = _run(lambda: _with_browser(settings, action))
    if show:
        click.echo(result, nl=False)
    else:
        console.print(str(result), soft_wrap=True)


@cli.command("folder")
@click.argument("repo")
@click.argument("subdir")
@click.option("--ref", required=True, help="Tag or commit to list the folder at")
def folder_cmd(repo: str, subdir: str, ref: str) -> None:
    """Fetch every file of SUBDIR in REPO into the cache."""
    settings = _settings(github=True)

    async def action(browser: GitHubBrowser) -> list[tuple[str, str]]:
        items = await browser.folder_files(repo, subdir, ref)
        paths = await asyncio.gather(*(item.resolve_path() for item in items))
        return [(item.name, str(path)) for item, path in zip(items, paths, strict=True)]

    rows = _run(lambda: _with_browser(settings, action))

    table = Table(title=f"{repo}/{subdir}@{ref}")
    table.add_column("File", style="cyan")
    table.add_column("Cached at", style="green")
    for name, path in rows:
        table.add_row(name, path)
    console.print(table)


@cli.command("tree")
@click.argument("repo")
@click.argument("ref")
def tree_cmd(repo: str, ref: str) -> None:
    """List the recursive tree of REPO at REF."""
    settings = _settings(github=True)

    async def action(browser: GitHubBrowser) -> Any:
        return await browser.repo_tree(repo, ref)

    tree = _run(lambda: _with_browser(settings, action))

    table = Table(title=f"{repo}@{ref} ({tree.sha[:12]})")
    table.add_column("Type")
    table.add_column("Path", style="cyan")
    table.add_column("Size", justify="right")
    for entry in tree.tree:
        table.add_row(entry.type, entry.path, "" if entry.size is None else str(entry.size))
    console.print(table)
    if tree.truncated:
        console.print("[yellow]Warning:[/yellow] tree listing was truncated by the server")


@cli.command("chart")
@click.argument("chart")
@click.option("--version", "version", required=True, help="Chart version to pull")
@click.option("--repo", default=None, help="Chart repository URL")
def chart_cmd(chart: str, version: str, repo: str | None) -> None:
    """Pull CHART into the chart cache and print its local directory."""
    chart_cache = ChartCache.from_settings(_settings())
    path = _run(lambda: chart_cache.chart_path(chart, version, repo))
    console.print(str(path), soft_wrap=True)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
