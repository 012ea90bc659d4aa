"""Main entry point for the feed cache package."""

from feed_cache.cli import cli

if __name__ == "__main__":
    cli()
