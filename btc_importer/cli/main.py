"""Command-line interface for the block file importer."""

import sys
import json
from pathlib import Path
from typing import Optional
import click
import structlog
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from btc_importer.models.config import ImporterConfig
from btc_importer.core.errors import FrameSyncLost, InputEnumerationFailed, OversizedBlock
from btc_importer.core.frame_scanner import BlockFrameScanner
from btc_importer.core.block_parser import BlockStreamParser
from btc_importer.core.hash_computer import HashComputer
from btc_importer.core.importer import BlockImporter
from btc_importer.core.record_mapper import BLOCK_TABLE, TRANSACTION_TABLE
from btc_importer.database.manager import DatabaseManager
from btc_importer.utils.bitcoin import satoshi_to_btc, to_display_hex
from btc_importer.utils.logging import setup_logging
from btc_importer.utils.time import to_iso

logger = structlog.get_logger(__name__)


def _config_with(ctx, **overrides) -> ImporterConfig:
    """Return the loaded config with non-None command options applied."""
    config: ImporterConfig = ctx.obj['config']
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return config
    # Re-validate so option values go through the same checks as the environment
    return ImporterConfig(**{**config.model_dump(), **updates})


def _open_store(config: ImporterConfig) -> DatabaseManager:
    """Create the store manager, exiting with a message if the URL is unusable."""
    try:
        return DatabaseManager(config)
    except (ValueError, ImportError, ArgumentError) as e:
        click.echo(f"❌ Cannot open store: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option('--config-file', '-c', type=click.Path(exists=True),
              help='Path to configuration file')
@click.option('--log-level', '-l', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level')
@click.option('--log-format', type=click.Choice(['json', 'text']), default=None,
              help='Log output format')
@click.pass_context
def cli(ctx, config_file: Optional[str], log_level: Optional[str], log_format: Optional[str]):
    """Bitcoin Block File Importer CLI."""
    ctx.ensure_object(dict)

    try:
        if config_file:
            config = ImporterConfig(_env_file=config_file)
        else:
            config = ImporterConfig()

        if log_level:
            config.log_level = log_level
        if log_format:
            config.log_format = log_format

        setup_logging(config)
        ctx.obj['config'] = config

    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@cli.command(name='import')
@click.option('--dir', '-d', 'block_dir', type=click.Path(file_okay=False),
              help='Directory which contains blockchain block files')
@click.option('--db-url', help='Store URL (SQLAlchemy format)')
@click.option('--dry-run', '-n', is_flag=True,
              help='Parse and count without writing')
@click.option('--max-block-size', type=int, help='Largest accepted block in bytes')
@click.option('--magic', help='Comma separated hex magic values, e.g. f9beb4d9')
@click.option('--network', type=click.Choice(['mainnet', 'testnet3', 'testnet4', 'signet', 'regtest']),
              help='Network whose magic bytes frame the blocks')
@click.option('--prefix', 'file_prefix', help='Only read files starting with this prefix')
@click.pass_context
def import_blocks(ctx, block_dir: Optional[str], db_url: Optional[str], dry_run: bool,
                  max_block_size: Optional[int], magic: Optional[str], network: Optional[str],
                  file_prefix: Optional[str]):
    """Import blk*.dat files into the block and transaction tables."""
    try:
        config = _config_with(
            ctx,
            block_dir=block_dir,
            db_url=db_url,
            dry_run=dry_run or None,
            max_block_size=max_block_size,
            magic=magic,
            network=network,
            file_prefix=file_prefix,
        )
    except ValueError as e:
        click.echo(f"❌ Invalid options: {e}", err=True)
        sys.exit(2)

    store = None if config.dry_run else _open_store(config)
    importer = BlockImporter(config, store=store)

    try:
        if not importer.initialize():
            click.echo("❌ Failed to initialize store", err=True)
            sys.exit(1)

        mode = " (dry run)" if config.dry_run else ""
        click.echo(f"🔄 Importing from {config.block_dir}{mode}...")
        summary = importer.run()

    except InputEnumerationFailed as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\n🛑 Import interrupted by user")
        sys.exit(130)
    finally:
        importer.close()

    for report in summary.files:
        marker = "⚠️ " if report.failures else "✅"
        click.echo(
            f"{marker} {report.file_name}: "
            f"{BLOCK_TABLE} records={report.records.get(BLOCK_TABLE, 0)} "
            f"imported={report.imported.get(BLOCK_TABLE, 0)}, "
            f"{TRANSACTION_TABLE} records={report.records.get(TRANSACTION_TABLE, 0)} "
            f"imported={report.imported.get(TRANSACTION_TABLE, 0)}"
        )
        for failure in report.failures:
            click.echo(f"    {failure.kind} at offset {failure.offset}: {failure.message}")

    click.echo("=" * 40)
    click.echo(f"Files: {summary.files_processed} ({summary.files_failed} abandoned)")
    click.echo(f"Blocks: {summary.blocks} ({summary.blocks_skipped} skipped)")
    click.echo(f"{BLOCK_TABLE} records={summary.total_records(BLOCK_TABLE)}")
    click.echo(f"{TRANSACTION_TABLE} records={summary.total_records(TRANSACTION_TABLE)}")


@cli.command()
@click.option('--db-url', help='Store URL (SQLAlchemy format)')
@click.pass_context
def init_db(ctx, db_url: Optional[str]):
    """Create the block and transaction tables."""
    config = _config_with(ctx, db_url=db_url)

    click.echo("Initializing database...")

    manager = _open_store(config)
    try:
        if not manager.test_connection():
            click.echo("❌ Failed to connect to database", err=True)
            sys.exit(1)
        manager.create_tables()
        click.echo("✅ Database initialized successfully")
    finally:
        manager.close()


@cli.command()
@click.option('--db-url', help='Store URL (SQLAlchemy format)')
@click.pass_context
def test_connection(ctx, db_url: Optional[str]):
    """Test the connection to the store."""
    config = _config_with(ctx, db_url=db_url)

    manager = _open_store(config)
    try:
        click.echo("🔍 Testing database connection...")
        if manager.test_connection():
            click.echo("✅ Database connection successful")
        else:
            click.echo("❌ Database connection failed", err=True)
            sys.exit(1)
    finally:
        manager.close()


@cli.command()
@click.option('--db-url', help='Store URL (SQLAlchemy format)')
@click.pass_context
def status(ctx, db_url: Optional[str]):
    """Show row counts of the imported tables."""
    config = _config_with(ctx, db_url=db_url)

    manager = _open_store(config)
    try:
        click.echo("📊 Block Importer Status")
        click.echo("=" * 40)
        for table in (BLOCK_TABLE, TRANSACTION_TABLE):
            click.echo(f"{table}: {manager.count_rows(table):,} rows")
    except SQLAlchemyError as e:
        click.echo(f"❌ Failed to get status: {e}", err=True)
        sys.exit(1)
    finally:
        manager.close()


@cli.command()
@click.argument('block_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--limit', type=int, default=None, help='Stop after this many blocks')
@click.option('--output', '-o', type=click.File('w'), default='-',
              help='Output file (default: stdout)')
@click.pass_context
def inspect(ctx, block_file: str, limit: Optional[int], output):
    """Decode a block file and print one JSON line per block, without a store."""
    config: ImporterConfig = ctx.obj['config']
    path = Path(block_file)
    parser = BlockStreamParser()
    hashes = HashComputer()

    with open(path, "rb") as handle:
        scanner = BlockFrameScanner(
            handle,
            file_name=path.name,
            magic_values=config.magic_values,
            max_block_size=config.max_block_size,
        )
        try:
            for count, frame in enumerate(scanner.frames(), start=1):
                outcome = parser.decode(frame)
                if outcome.ok:
                    block = outcome.block
                    entry = {
                        'offset': frame.offset,
                        'hash': hashes.block_hash(block.header),
                        'previous_hash': to_display_hex(block.header.previous_block_hash),
                        'merkle_root': to_display_hex(block.header.merkle_root),
                        'time': to_iso(block.header.time),
                        'size': block.size,
                        'tx_count': block.transaction_count,
                        'output_btc': str(satoshi_to_btc(sum(
                            output.value for tx in block.transactions for output in tx.outputs
                        ))),
                    }
                else:
                    entry = {
                        'offset': frame.offset,
                        'error': outcome.failure.kind,
                        'message': outcome.failure.message,
                    }
                output.write(json.dumps(entry) + "\n")
                if limit is not None and count >= limit:
                    break
        except (FrameSyncLost, OversizedBlock) as e:
            click.echo(f"❌ Scan stopped: {e}", err=True)
            sys.exit(1)


@cli.command()
@click.pass_context
def version(ctx):
    """Show version information."""
    from btc_importer import __version__, __description__

    click.echo(f"Bitcoin Block File Importer v{__version__}")
    click.echo(__description__)


if __name__ == '__main__':
    cli()
