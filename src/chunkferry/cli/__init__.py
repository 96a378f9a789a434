"""Command-line interface for chunkferry.

This module provides the main CLI entry point and assembles all commands.

Commands:
- upload / download: Single-stream network transfer
- parallel-upload: Concurrent chunked upload
- set-rate-limit: Persist the aggregate rate limit
- digest / verify: File digests
- keygen / encrypt / decrypt: Stream encryption
- split / merge: Part files
- resolve: Conflict resolution
- save-version / revert / versions: Version snapshots
- secure-delete: Zero-fill then remove files
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from chunkferry.cli.common import handle_errors, load_state
from chunkferry.cli.files import (
    decrypt,
    digest,
    encrypt,
    keygen,
    merge,
    resolve_cmd,
    revert,
    save_version,
    secure_delete_cmd,
    split,
    verify,
    versions,
)
from chunkferry.cli.transfer import download, parallel_upload, set_rate_limit, upload
from chunkferry.transfer.log import setup_logging


@click.group()
@click.version_option(package_name="chunkferry")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (default: CHUNKFERRY_CONFIG or ~/.chunkferry/config.json).",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """chunkferry - Secure chunked file transfer."""
    with handle_errors():
        state = load_state(config_path)
    ctx.obj = state

    log_file = Path(state.config.log_file).expanduser() if state.config.log_file else None
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)


# Transfer commands
cli.add_command(upload)
cli.add_command(download)
cli.add_command(parallel_upload)
cli.add_command(set_rate_limit)

# File commands
cli.add_command(digest)
cli.add_command(verify)
cli.add_command(keygen)
cli.add_command(encrypt)
cli.add_command(decrypt)
cli.add_command(split)
cli.add_command(merge)
cli.add_command(resolve_cmd)
cli.add_command(save_version)
cli.add_command(revert)
cli.add_command(versions)
cli.add_command(secure_delete_cmd)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = ["cli", "main"]
