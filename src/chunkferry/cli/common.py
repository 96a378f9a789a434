"""Shared helpers for chunkferry CLI commands."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import click

from chunkferry.core.config import EngineConfig, get_config_file, load_config
from chunkferry.core.crypto import load_key
from chunkferry.errors import TransferError


@dataclass
class CLIState:
    """Per-invocation state stored on the click context."""

    config_path: Path
    config: EngineConfig


pass_state = click.make_pass_decorator(CLIState)


def load_state(config_path: str | None) -> CLIState:
    path = Path(config_path).expanduser() if config_path else get_config_file()
    return CLIState(config_path=path, config=load_config(path))


def key_options(func):  # type: ignore[no-untyped-def]
    """Add --key / --key-file options to a command."""
    func = click.option(
        "--key-file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="File holding a 64-character hex key.",
    )(func)
    func = click.option(
        "--key",
        "hex_key",
        default=None,
        envvar="CHUNKFERRY_KEY",
        help="64-character hex encryption key (or CHUNKFERRY_KEY).",
    )(func)
    return func


def resolve_key(hex_key: str | None, key_file: Path | None) -> bytes | None:
    """Decode the key given on the command line, if any."""
    if hex_key and key_file:
        raise click.UsageError("Use either --key or --key-file, not both.")
    if key_file:
        return load_key(key_file.read_text())
    if hex_key:
        return load_key(hex_key)
    return None


@contextmanager
def handle_errors() -> Iterator[None]:
    """Print engine errors as 'Error: ...' and exit with status 1."""
    try:
        yield
    except (TransferError, OSError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
