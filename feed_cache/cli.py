"""Command line interface for inspecting and exercising the feed cache."""

import json
import os
import time
from pathlib import Path
from typing import Optional

import click
import structlog
from dotenv import load_dotenv
from pydantic import ValidationError

from feed_cache.cache import FeedCache
from feed_cache.config import CacheConfig
from feed_cache.logging_config import configure_logging
from feed_cache.models import parse_articles
from feed_cache.storage import MemoryStorage, SQLiteConfig, SQLiteStorage
from feed_cache.utils import format_bytes, format_cache_age, generate_mock_articles

logger = structlog.get_logger(__name__)

DEFAULT_DB_PATH = "./data/feed_cache.db"


def _get_cache(ctx: click.Context) -> FeedCache:
    return ctx.obj["cache"]


@click.group()
@click.option(
    "--db-path",
    envvar="FEED_CACHE_DB_PATH",
    default=None,
    help=f"Path to SQLite cache database [default: {DEFAULT_DB_PATH}]",
    type=click.Path(dir_okay=False),
)
@click.option("--log-level", default="WARNING", help="Log level")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(ctx, db_path: Optional[str], log_level: str, json_logs: bool):
    """Feed Cache CLI"""
    load_dotenv()
    configure_logging(log_level, json_output=json_logs)

    try:
        config = CacheConfig.from_env()
    except ValueError as e:
        raise click.ClickException(f"Invalid cache configuration: {e}")

    db_path = db_path or os.getenv("FEED_CACHE_DB_PATH", DEFAULT_DB_PATH)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    logger.info("Opening feed cache", db_path=db_path, namespace=config.namespace)
    cache = FeedCache(config=config, storage=SQLiteStorage(SQLiteConfig(db_path=db_path)))
    ctx.ensure_object(dict)
    ctx.obj["cache"] = cache
    ctx.obj["db_path"] = db_path
    ctx.call_on_close(cache.dispose)


@cli.command()
@click.argument("source_id")
@click.argument("articles_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def put(ctx, source_id: str, articles_file: Path):
    """Cache the articles in ARTICLES_FILE (a JSON array) for SOURCE_ID."""
    try:
        with open(articles_file, encoding="utf-8") as f:
            raw = json.load(f)
    except ValueError as e:
        raise click.ClickException(f"Invalid JSON in {articles_file}: {e}")
    if not isinstance(raw, list):
        raise click.ClickException("Articles file must contain a JSON array")

    try:
        articles = parse_articles(raw)
    except ValidationError as e:
        raise click.ClickException(f"Invalid article data: {e}")

    cache = _get_cache(ctx)
    if not cache.set_cached_feed(source_id, [article.to_record() for article in articles]):
        raise click.ClickException(f"Feed for {source_id} was not cached")

    info = cache.get_entry_info(source_id)
    click.echo(
        f"Cached {len(articles)} articles for {source_id} "
        f"({format_bytes(info['stored_size_bytes'])} stored, "
        f"{format_bytes(info['original_size_bytes'])} original, "
        f"compressed={info['compressed']})"
    )


@cli.command()
@click.argument("source_id")
@click.option("--pretty", is_flag=True, help="Indent JSON output")
@click.pass_context
def get(ctx, source_id: str, pretty: bool):
    """Print the cached articles for SOURCE_ID."""
    cache = _get_cache(ctx)
    articles = cache.get_cached_feed(source_id)
    if articles is None:
        click.echo(f"Cache miss for {source_id}", err=True)
        ctx.exit(1)
    click.echo(json.dumps(articles, indent=2 if pretty else None, ensure_ascii=False))


@cli.command()
@click.option("--source", "source_id", default=None, help="Show details for one source")
@click.pass_context
def stats(ctx, source_id: Optional[str]):
    """Show cache statistics."""
    cache = _get_cache(ctx)

    if source_id:
        info = cache.get_entry_info(source_id)
        if info is None:
            click.echo(f"No entry for {source_id}", err=True)
            ctx.exit(1)
        click.echo(f"\nEntry: {source_id}")
        click.echo("-" * 50)
        click.echo(f"{'Written':<30} {format_cache_age(cache.get_cache_age(source_id)):>18}")
        click.echo(f"{'Articles':<30} {info['article_count']:>18}")
        click.echo(f"{'Compressed':<30} {str(info['compressed']):>18}")
        click.echo(f"{'Stored size':<30} {format_bytes(info['stored_size_bytes']):>18}")
        click.echo(f"{'Original size':<30} {format_bytes(info['original_size_bytes']):>18}")
        click.echo(f"{'Hits':<30} {info['access_count']:>18}")
        return

    data = cache.get_cache_stats()
    click.echo("\nCache Statistics:")
    click.echo("-" * 50)
    click.echo(f"{'Entries':<30} {data['total_entries']:>18}")
    click.echo(f"{'Articles':<30} {data['total_articles']:>18}")
    click.echo(f"{'Cache size':<30} {format_bytes(data['cache_size']):>18}")
    click.echo(f"{'Budget':<30} {format_bytes(cache.config.max_size_bytes):>18}")
    click.echo(f"{'Compression savings':<30} {format_bytes(data['compression_savings']):>18}")


@cli.command()
@click.confirmation_option(prompt="Remove all cached feeds?")
@click.pass_context
def clear(ctx):
    """Remove all cached feeds."""
    _get_cache(ctx).clear_cache()
    click.echo("Cache cleared successfully")


@cli.command()
@click.option("--articles", default=100, show_default=True, help="Articles per source")
@click.option("--sources", default=100, show_default=True, help="Number of sources to write")
@click.option("--budget-kb", default=500, show_default=True, help="Cache budget in KB")
def benchmark(articles: int, sources: int, budget_kb: int):
    """Measure compression and eviction on generated articles.

    Runs against an in-memory cache, never the database.
    """
    config = CacheConfig(max_size_bytes=budget_kb * 1024)
    cache = FeedCache(config=config, storage=MemoryStorage())

    sample = generate_mock_articles(articles)
    started = time.perf_counter()
    cache.set_cached_feed("benchmark-source", sample)
    write_ms = (time.perf_counter() - started) * 1000
    started = time.perf_counter()
    restored = cache.get_cached_feed("benchmark-source")
    read_ms = (time.perf_counter() - started) * 1000

    info = cache.get_entry_info("benchmark-source") or {}
    original = info.get("original_size_bytes", 0)
    stored = info.get("stored_size_bytes", 0)
    savings = (original - stored) / original * 100 if original else 0.0

    click.echo("\nCompression:")
    click.echo("-" * 50)
    click.echo(f"{'Articles':<30} {articles:>18}")
    click.echo(f"{'Original size':<30} {format_bytes(original):>18}")
    click.echo(f"{'Stored size':<30} {format_bytes(stored):>18}")
    click.echo(f"{'Space savings':<30} {savings:>17.1f}%")
    click.echo(f"{'Write time (ms)':<30} {write_ms:>18.2f}")
    click.echo(f"{'Read time (ms)':<30} {read_ms:>18.2f}")
    click.echo(f"{'Round trip intact':<30} {str(restored == sample):>18}")

    cache.clear_cache()
    for i in range(sources):
        cache.set_cached_feed(f"benchmark-source-{i}", generate_mock_articles(articles // 5 or 1))
        if i % 3 == 0:
            cache.get_cached_feed(f"benchmark-source-{i // 2}")

    data = cache.get_cache_stats()
    analytics = cache.get_cache_analytics()
    click.echo("\nEviction:")
    click.echo("-" * 50)
    click.echo(f"{'Sources written':<30} {sources:>18}")
    click.echo(f"{'Entries kept':<30} {data['total_entries']:>18}")
    click.echo(f"{'Entries evicted':<30} {analytics['total_evictions']:>18}")
    click.echo(f"{'Cache size':<30} {format_bytes(data['cache_size']):>18}")
    click.echo(f"{'Budget':<30} {format_bytes(config.max_size_bytes):>18}")
    click.echo(f"{'Hit rate':<30} {analytics['hit_rate'] * 100:>17.1f}%")
    cache.dispose()
