"""Command-line interface for the S3 backup application."""

import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from botocore.exceptions import BotoCoreError
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from . import __version__
from .config.settings import BackupConfig
from .sync.backup_manager import BackupManager
from .sync.errors import InvalidTargetError
from .sync.paths import resolve_target
from .utils.file_utils import FileHelper
from .utils.logging import setup_logging
from .utils.progress import ConsoleProgress

console = Console()

@click.command()
@click.version_option(version=__version__)
@click.argument('source', type=str)
@click.argument('destination', type=str)
@click.option('--profile', '-p',
              help='AWS profile (optional)')
@click.option('--accelerate',
              is_flag=True,
              help='Use S3 transfer acceleration (optional)')
@click.option('--force-hash',
              is_flag=True,
              help='Always compare content hashes, never trust stored timestamps')
@click.option('--dry-run', '-d',
              is_flag=True,
              help='Show what would be backed up without actually doing it')
@click.option('--config', '-c',
              type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Path to configuration file')
@click.option('--log-level',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Console log level')
@click.option('--log-file',
              type=click.Path(dir_okay=False, path_type=Path),
              help='Also write a rotating log file')
def cli(source: str, destination: str, profile: Optional[str], accelerate: bool,
        force_hash: bool, dry_run: bool, config: Optional[Path],
        log_level: Optional[str], log_file: Optional[Path]):
    """Back up SOURCE to DESTINATION (s3://bucket/key).

    A trailing slash on DESTINATION places SOURCE inside that prefix; without
    it DESTINATION names the object itself. Files whose size and timestamp or
    content hash match the stored copy are skipped.
    """
    try:
        backup_config = BackupConfig.from_yaml(config) if config else BackupConfig()
        _apply_overrides(backup_config, profile, accelerate, force_hash, dry_run, log_level, log_file)
    except (ValidationError, OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"❌ Invalid configuration: {e}", style="red bold")
        sys.exit(1)

    setup_logging(
        log_level=backup_config.logging.level,
        log_file=backup_config.logging.file,
        log_to_console=True
    )

    if backup_config.sync_options.dry_run:
        console.print("🔍 DRY RUN MODE - No files will be uploaded", style="yellow bold")

    try:
        target = resolve_target(source, destination)
        backup_manager = BackupManager(backup_config, progress=ConsoleProgress())
    except InvalidTargetError as e:
        console.print(f"❌ {e}", style="red bold")
        sys.exit(1)
    except BotoCoreError as e:
        console.print(f"❌ Unable to create AWS client: {e}", style="red bold")
        sys.exit(1)

    if not backup_manager.test_connection(target.bucket):
        console.print(f"❌ Unable to access S3 bucket {target.bucket}", style="red bold")
        sys.exit(1)

    results = backup_manager.run_target(target)
    _display_backup_results(results, backup_manager)


def main():
    """Console entry point; usage errors exit with status 1."""
    try:
        cli.main(standalone_mode=False)
    except click.exceptions.Abort:
        console.print("Aborted!", style="red")
        sys.exit(1)
    except click.ClickException as e:
        e.show()
        sys.exit(1)


def _apply_overrides(backup_config: BackupConfig, profile, accelerate, force_hash, dry_run,
                     log_level, log_file) -> None:
    """Command-line flags win over the configuration file; flags can only switch options on."""
    if profile:
        backup_config.storage.profile = profile
    if accelerate:
        backup_config.storage.accelerate = True
    if force_hash:
        backup_config.sync_options.force_hash_check = True
    if dry_run:
        backup_config.sync_options.dry_run = True
    if log_level:
        backup_config.logging.level = log_level.upper()
    if log_file:
        backup_config.logging.file = log_file


def _display_backup_results(results, backup_manager):
    """Display backup results in a nice table."""
    summary = backup_manager.get_backup_summary(results)

    table = Table(title="Backup Results")
    table.add_column("Source", style="cyan")
    table.add_column("Destination", style="magenta")
    table.add_column("Files Processed", justify="right")
    table.add_column("Files Uploaded", justify="right", style="green")
    table.add_column("Files Skipped", justify="right", style="yellow")
    table.add_column("Data Transferred", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Errors", justify="right", style="red")

    table.add_row(
        results['source'],
        results['destination'],
        str(summary['total_files_processed']),
        str(summary['total_files_uploaded']),
        str(summary['total_files_skipped']),
        FileHelper.format_file_size(summary['total_bytes_transferred']),
        f"{results.get('duration', 0):.1f}s",
        str(summary['total_errors'])
    )

    console.print(table)

    rprint(f"\n📊 [bold]Summary:[/bold]")
    if summary['dry_run']:
        rprint(f"   • Would upload: [green]{summary['total_files_uploaded']}[/green]")
    else:
        rprint(f"   • Uploaded: [green]{summary['total_files_uploaded']}[/green]")
    rprint(f"   • Unchanged: {summary['total_files_skipped']} "
           f"({summary['total_tags_updated']} with refreshed tags)")
    rprint(f"   • Ignored: {summary['total_files_ignored']}")

    # Individual file failures never change the exit code
    if summary['total_errors'] > 0:
        rprint(f"\n⚠️ [yellow]{summary['total_errors']} errors occurred:[/yellow]")
        for error in results.get('errors', []):
            console.print(f"   • {error}", style="red")


if __name__ == '__main__':
    main()
