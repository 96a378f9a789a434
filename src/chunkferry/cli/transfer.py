"""Network transfer commands for chunkferry CLI.

Commands:
- upload: Send a file over one connection
- download: Receive a file over one connection
- parallel-upload: Send a file as concurrent chunks
- set-rate-limit: Persist the aggregate rate limit
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from chunkferry.cli.common import CLIState, handle_errors, key_options, pass_state, resolve_key
from chunkferry.core.chunking import plan_chunk_count
from chunkferry.core.config import save_config
from chunkferry.transfer.conflict import ConflictPolicy
from chunkferry.transfer.coordinator import TransferCoordinator
from chunkferry.transfer.types import TransferResult


def _coordinator(state: CLIState) -> TransferCoordinator:
    return TransferCoordinator(config=state.config)


def _report(result: TransferResult) -> None:
    if result.success:
        click.echo(f"OK {result.summary()}")
        if result.digest:
            click.echo(f"digest: {result.digest}")
        return
    click.echo(f"Error: {result.summary()}", err=True)
    sys.exit(1)


@click.command()
@click.argument("endpoint")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@key_options
@pass_state
def upload(state: CLIState, endpoint: str, path: Path, hex_key: str | None, key_file: Path | None) -> None:
    """Send PATH to ENDPOINT (host:port) over one connection."""
    with handle_errors():
        key = resolve_key(hex_key, key_file)
        result = _coordinator(state).upload(endpoint, path, key=key)
    _report(result)


@click.command()
@click.argument("endpoint")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@key_options
@click.option("--expect-digest", default=None, help="Digest the received file must match.")
@click.option(
    "--on-conflict",
    type=click.Choice([p.value for p in ConflictPolicy]),
    default=None,
    help="What to do if PATH already exists (default: from config).",
)
@pass_state
def download(
    state: CLIState,
    endpoint: str,
    path: Path,
    hex_key: str | None,
    key_file: Path | None,
    expect_digest: str | None,
    on_conflict: str | None,
) -> None:
    """Receive a stream from ENDPOINT (host:port) into PATH."""
    with handle_errors():
        key = resolve_key(hex_key, key_file)
        policy = ConflictPolicy.from_name(on_conflict) if on_conflict else None
        result = _coordinator(state).download(
            endpoint, path, key=key, expected_digest=expect_digest, policy=policy
        )
    _report(result)


@click.command("parallel-upload")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("endpoint")
@click.option("--chunks", "-n", type=click.IntRange(min=1), default=None, help="Number of chunks.")
@click.option(
    "--only",
    "only",
    type=int,
    multiple=True,
    help="Upload only this chunk index (repeatable, for retrying failures).",
)
@click.option(
    "--no-min-size",
    is_flag=True,
    help="Do not reduce the chunk count below the configured minimum chunk size.",
)
@key_options
@pass_state
def parallel_upload(
    state: CLIState,
    path: Path,
    endpoint: str,
    chunks: int | None,
    only: tuple[int, ...],
    no_min_size: bool,
    hex_key: str | None,
    key_file: Path | None,
) -> None:
    """Send PATH to ENDPOINT (host:port) as concurrent chunks."""
    with handle_errors():
        key = resolve_key(hex_key, key_file)
        count = chunks or state.config.chunk_count
        if not no_min_size and not only:
            planned = plan_chunk_count(path.stat().st_size, count, state.config.min_chunk_size)
            if planned != count:
                click.echo(f"Using {planned} chunks (minimum chunk size {state.config.min_chunk_size} bytes)")
            count = planned
        result = _coordinator(state).parallel_upload(
            path, endpoint, chunk_count=count, key=key, indices=only or None
        )
    _report(result)


@click.command("set-rate-limit")
@click.argument("bytes_per_second", type=click.IntRange(min=0))
@pass_state
def set_rate_limit(state: CLIState, bytes_per_second: int) -> None:
    """Persist the aggregate transfer rate limit (0 = unlimited)."""
    with handle_errors():
        state.config.rate_limit = bytes_per_second
        path = save_config(state.config, state.config_path)
    click.echo(f"Rate limit set to {bytes_per_second} B/s in {path}")
