"""
Command-line interface for feed_central.

Uses Typer to expose the fetch client, the ingestion driver and the
listing service. Every command accepts an optional YAML config file.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .cache import EphemeralCache
from .config import AppConfig, load_config
from .core.sources import sources_for_category
from .errors import FetchExhausted, InvalidSortMode, UnknownCategory
from .fetch.fetcher import FeedFetcher
from .ingest import ingest_feeds, load_feed_sources
from .logging_utils import setup_logging
from .serving import DEFAULT_LIMIT, ListingService
from .store.memory import load_articles_json

app = typer.Typer(add_completion=False)
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", exists=True, help="YAML config file.")


def _load(config: Path | None, log_level: str | None) -> AppConfig:
    cfg = load_config(str(config) if config else None)
    if log_level:
        cfg.logging.level = log_level
    setup_logging(cfg.logging, Path.cwd() if cfg.logging.file else None)
    return cfg


@app.command()
def fetch(
    url: str = typer.Argument(..., help="Feed URL."),
    download_first: bool = typer.Option(False, "--download-first/--direct"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the payload here."),
    config: Path | None = ConfigOption,
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Fetch one feed with rate limiting and retries."""
    cfg = _load(config, log_level)
    fetcher = FeedFetcher(cfg.fetch)
    try:
        result = asyncio.run(fetcher.fetch(url, download_first=download_first))
    except FetchExhausted as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    if output is not None:
        output.write_text(result.text or "", encoding="utf-8")
        console.print(f"Saved {len(result.text or '')} characters to {output}")
    else:
        console.print(result.text, markup=False, highlight=False)


@app.command()
def ingest(
    feeds_file: Path = typer.Argument(..., exists=True, readable=True, help="YAML feed list."),
    config: Path | None = ConfigOption,
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Fetch every feed listed in FEEDS_FILE and report the outcome."""
    cfg = _load(config, log_level)
    feeds = load_feed_sources(feeds_file)
    fetcher = FeedFetcher(cfg.fetch)
    results, stats = asyncio.run(ingest_feeds(feeds, fetcher, concurrency=cfg.fetch.concurrency))

    table = Table(title="Feed ingestion")
    table.add_column("Source")
    table.add_column("Category")
    table.add_column("Attempts", justify="right")
    table.add_column("Result")
    for feed, result in results:
        outcome = f"{len(result.text)} chars" if result.text is not None else f"[red]{result.error}[/red]"
        table.add_row(feed.source, feed.category or "-", str(result.attempts), outcome)
    console.print(table)
    console.print(f"{stats.succeeded}/{stats.total} feeds fetched, {stats.failed} failed")
    if stats.failed:
        raise typer.Exit(code=1)


@app.command("list")
def list_articles(
    articles_file: Path = typer.Argument(..., exists=True, readable=True, help="JSON article export."),
    category: str | None = typer.Option(None, "--category"),
    source: str | None = typer.Option(None, "--source"),
    page: int = typer.Option(1, "--page"),
    limit: int = typer.Option(DEFAULT_LIMIT, "--limit"),
    sort: str = typer.Option("newest", "--sort", help="newest, popular, random or semiRandom."),
    config: Path | None = ConfigOption,
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Print one listing page as JSON."""
    cfg = _load(config, log_level)
    store = load_articles_json(articles_file)
    cache = EphemeralCache(cfg.cache.ttl_seconds, max_entries=cfg.cache.max_entries)
    service = ListingService(store, cfg.distribution, cache=cache)
    try:
        listing = asyncio.run(
            service.list_articles(
                category=category, source=source, page=page, limit=limit, sort=sort
            )
        )
    except InvalidSortMode as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc
    console.print_json(json.dumps(listing.to_dict()))


@app.command()
def sources(
    category: str | None = typer.Option(None, "--category"),
):
    """List known sources, optionally for one category."""
    try:
        names = sources_for_category(category)
    except UnknownCategory as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print_json(json.dumps(names))


if __name__ == "__main__":
    app()
