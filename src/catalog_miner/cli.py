"""CLI interface for the catalog miner."""

import logging
import sys
from pathlib import Path

import click

from .checkpoint import ChunkStore
from .config import (
    BASE_URL,
    CATALOG_SIZE,
    CHUNK_SIZE,
    DATA_DIR,
    FLOOR,
    FLUSH_EVERY,
    MIN_INTERVAL,
    MinerConfig,
)
from .crawler import CrawlDriver
from .exceptions import ExtractionError, StorageError, TransportError
from .models import dumps_record
from .scraper import ItemScraper


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


data_dir_option = click.option(
    '--data-dir',
    default=str(DATA_DIR),
    type=click.Path(file_okay=False, path_type=Path),
    help='Directory holding the chunk files'
)
chunk_size_option = click.option(
    '--chunk-size',
    default=CHUNK_SIZE,
    type=click.IntRange(min=1),
    help='IDs per chunk file (must match existing data)'
)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable debug logging')
def main(verbose):
    """Catalog Miner - resumable scraper for ID-addressed catalog detail pages."""
    _configure_logging(verbose)


@main.command()
@data_dir_option
@chunk_size_option
@click.option('--base-url', default=BASE_URL, help='Catalog base URL')
@click.option(
    '--start',
    type=click.IntRange(min=0),
    default=None,
    help=f'First ID to visit (default: {FLOOR + 1})'
)
@click.option(
    '--max-id',
    type=click.IntRange(min=0),
    default=None,
    help='Stop after this ID (default: run until interrupted)'
)
@click.option(
    '--interval',
    default=MIN_INTERVAL,
    type=click.FloatRange(min=0),
    help='Minimum seconds between requests'
)
@click.option(
    '--flush-every',
    default=FLUSH_EVERY,
    type=click.IntRange(min=1),
    help='Flush and report progress every N fetched IDs'
)
@click.option(
    '--catalog-size',
    default=CATALOG_SIZE,
    type=click.IntRange(min=1),
    envvar='CATALOG_MINER_CATALOG_SIZE',
    show_envvar=True,
    help='Approximate number of IDs in the catalog (progress estimate only)'
)
@click.option('--no-progress', is_flag=True, help='Disable the progress bar')
def crawl(data_dir, chunk_size, base_url, start, max_id, interval, flush_every,
          catalog_size, no_progress):
    """Crawl the catalog, skipping IDs already recorded."""
    config = MinerConfig(
        base_url=base_url,
        data_dir=data_dir,
        chunk_size=chunk_size,
        min_interval=interval,
        flush_every=flush_every,
        catalog_size=catalog_size,
        progress_bar=not no_progress,
    )
    config.refresh_catalog_size()

    try:
        with ItemScraper(config) as scraper:
            store = ChunkStore(config.data_dir, config.chunk_size)
            stats = CrawlDriver(scraper, store, config).run(start=start, max_id=max_id)
    except KeyboardInterrupt:
        click.echo("\nCrawl interrupted - progress has been saved.", err=True)
        click.echo("Run again to continue where you left off.", err=True)
        sys.exit(0)
    except StorageError as e:
        click.echo(f"Storage error, aborting: {e}", err=True)
        sys.exit(1)

    click.echo(stats.get_summary())


@main.command()
@click.argument('item_id', type=click.IntRange(min=0))
@click.option('--base-url', default=BASE_URL, help='Catalog base URL')
def fetch(item_id, base_url):
    """Scrape a single ID and print it as JSON (nothing is stored)."""
    config = MinerConfig(base_url=base_url)
    with ItemScraper(config) as scraper:
        try:
            record = scraper.fetch_item(item_id)
        except (ExtractionError, TransportError) as e:
            raise click.ClickException(f"Failed to scrape item {item_id}: {e}")
    click.echo(dumps_record(record).decode())


@main.command()
@click.argument('item_id', type=click.IntRange(min=0))
@data_dir_option
@chunk_size_option
def show(item_id, data_dir, chunk_size):
    """Print the stored record for ITEM_ID."""
    store = ChunkStore(data_dir, chunk_size)
    try:
        record = store.get(item_id)
    except KeyError:
        raise click.ClickException(f"Item {item_id} has not been recorded")
    except StorageError as e:
        raise click.ClickException(str(e))
    click.echo(dumps_record(record).decode())


@main.command()
@data_dir_option
@chunk_size_option
def stats(data_dir, chunk_size):
    """Show statistics about the stored data."""
    store = ChunkStore(data_dir, chunk_size)
    try:
        counts = store.stats()
    except StorageError as e:
        raise click.ClickException(str(e))

    click.echo("\n" + "=" * 60)
    click.echo("Catalog Miner Statistics")
    click.echo("=" * 60)
    click.echo(f"Items:      {counts['items']}")
    click.echo(f"Not found:  {counts['tombstones']}")
    click.echo(f"Recorded:   {counts['total']}")
    click.echo(f"Chunks:     {counts['chunks']}")
    click.echo("=" * 60 + "\n")


if __name__ == '__main__':
    main()
