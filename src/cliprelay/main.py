"""CLI handling for cliprelay.

This module provides the command-line interface for cliprelay, handling
argument parsing via click, logging configuration, and dispatching to the
device runner in relay or client role.

Usage:
    cliprelay --relay --state-dir PATH --store-dir PATH [--interval SECONDS] [--verbose]
    cliprelay --client --state-dir PATH --store-dir PATH [--interval SECONDS] [--verbose]
"""

import click
import sys

from cliprelay.main_options import MutuallyExclusiveOption
from cliprelay.main_logging import configure_logging


@click.command()
@click.option(
    "--relay",
    is_flag=True,
    cls=MutuallyExclusiveOption,
    not_required_if=["client"],
    help="Run as the relay, the only device that publishes new records",
)
@click.option(
    "--client",
    is_flag=True,
    cls=MutuallyExclusiveOption,
    not_required_if=["relay"],
    help="Run as a client that pulls records and queues edits and deletes",
)
@click.option(
    "--state-dir",
    required=True,
    type=click.Path(file_okay=False),
    help="Directory for identity, local records and the offline queue",
)
@click.option(
    "--store-dir",
    required=True,
    type=click.Path(file_okay=False),
    help="Directory acting as the shared store",
)
@click.option(
    "--interval",
    type=float,
    default=None,
    help="Seconds between periodic pulls",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable DEBUG-level logging",
)
def main(relay: bool, client: bool, state_dir: str, store_dir: str, interval: float | None, verbose: bool) -> None:
    """Synchronize clipboard history through a shared store."""
    if not relay and not client:
        raise click.UsageError("Either --relay or --client must be specified")
    if interval is not None and interval <= 0:
        raise click.UsageError("--interval must be positive")

    configure_logging(verbose)

    _run_role(relay, state_dir, store_dir, interval)


def _run_role(relay: bool, state_dir: str, store_dir: str, interval: float | None) -> None:
    """Run the device in the selected role.

    Args:
        relay: True for the relay role, False for a client.
        state_dir: Local state directory.
        store_dir: Shared store directory.
        interval: Poll interval override, or None for the default.
    """
    import asyncio
    from pathlib import Path
    from cliprelay.config import SyncConfig
    from cliprelay.device import DeviceRole, RoleMismatchError
    from cliprelay.errors import SyncError
    from cliprelay.runner import run_device

    config = SyncConfig()
    if interval is not None:
        config = config.with_interval(interval)
    role = DeviceRole.RELAY if relay else DeviceRole.CLIENT

    try:
        asyncio.run(run_device(role, Path(state_dir), Path(store_dir), config))
    except RoleMismatchError as e:
        raise click.UsageError(str(e)) from e
    except (SyncError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
