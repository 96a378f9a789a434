"""Local file commands for chunkferry CLI.

Commands:
- digest / verify: Compute or check a file digest
- keygen / encrypt / decrypt: Stream encryption
- split / merge: Chunk files into .partN files and back
- resolve: Put an incoming file in place of an existing one
- save-version / revert / versions: File version snapshots
- secure-delete: Zero-fill then remove files
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from chunkferry.cli.common import CLIState, handle_errors, key_options, pass_state, resolve_key
from chunkferry.core.chunking import merge as merge_chunks
from chunkferry.core.chunking import parts_in, split_by_count, write_parts
from chunkferry.core.chunking import split as split_chunks
from chunkferry.core.crypto import decrypt_file, encrypt_file, generate_key
from chunkferry.core.integrity import DIGEST_ALGORITHMS, compute_digest, verify_digest
from chunkferry.core.tempfiles import secure_delete
from chunkferry.transfer.conflict import ConflictPolicy, resolve
from chunkferry.transfer.versions import Versioner

EXISTING_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)
ALGORITHM_OPTION = click.option(
    "--algorithm",
    "-a",
    type=click.Choice(DIGEST_ALGORITHMS, case_sensitive=False),
    default=None,
    help="Digest algorithm (default: from config).",
)


@click.command()
@click.argument("path", type=EXISTING_FILE)
@ALGORITHM_OPTION
@pass_state
def digest(state: CLIState, path: Path, algorithm: str | None) -> None:
    """Print the digest of PATH."""
    with handle_errors():
        click.echo(f"{compute_digest(path, algorithm or state.config.digest_algorithm)}  {path}")


@click.command()
@click.argument("path", type=EXISTING_FILE)
@click.argument("expected")
@ALGORITHM_OPTION
@pass_state
def verify(state: CLIState, path: Path, expected: str, algorithm: str | None) -> None:
    """Check PATH against the EXPECTED digest."""
    with handle_errors():
        ok = verify_digest(path, expected, algorithm or state.config.digest_algorithm)
    if not ok:
        click.echo(f"MISMATCH {path}", err=True)
        sys.exit(1)
    click.echo(f"OK {path}")


@click.command()
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None)
def keygen(output: Path | None) -> None:
    """Generate a random 256-bit key as hex."""
    hex_key = generate_key().hex()
    if output is None:
        click.echo(hex_key)
        return
    output.write_text(hex_key + "\n")
    output.chmod(0o600)
    click.echo(f"Key written to {output}")


@click.command()
@click.argument("src", type=EXISTING_FILE)
@click.argument("dst", type=click.Path(dir_okay=False, path_type=Path))
@key_options
def encrypt(src: Path, dst: Path, hex_key: str | None, key_file: Path | None) -> None:
    """Encrypt SRC into DST (IV || ciphertext)."""
    with handle_errors():
        key = resolve_key(hex_key, key_file)
        if key is None:
            raise click.UsageError("A key is required (--key or --key-file).")
        size = encrypt_file(src, dst, key)
    click.echo(f"Encrypted {size} bytes to {dst}")


@click.command()
@click.argument("src", type=EXISTING_FILE)
@click.argument("dst", type=click.Path(dir_okay=False, path_type=Path))
@key_options
def decrypt(src: Path, dst: Path, hex_key: str | None, key_file: Path | None) -> None:
    """Decrypt SRC into DST."""
    with handle_errors():
        key = resolve_key(hex_key, key_file)
        if key is None:
            raise click.UsageError("A key is required (--key or --key-file).")
        size = decrypt_file(src, dst, key)
    click.echo(f"Decrypted {size} bytes to {dst}")


@click.command()
@click.argument("path", type=EXISTING_FILE)
@click.option("--size", "part_size", type=click.IntRange(min=1), default=None, help="Bytes per part.")
@click.option("--count", type=click.IntRange(min=1), default=None, help="Number of parts.")
@click.option(
    "--out-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for part files (default: next to PATH).",
)
def split(path: Path, part_size: int | None, count: int | None, out_dir: Path | None) -> None:
    """Split PATH into <name>.partN files."""
    if (part_size is None) == (count is None):
        raise click.UsageError("Give exactly one of --size or --count.")
    with handle_errors():
        chunks = split_chunks(path, part_size) if part_size else split_by_count(path, count or 1)
        parts = write_parts(chunks, out_dir or path.parent)
    for part in parts:
        click.echo(f"{part.source_path} ({part.length} bytes)")


@click.command()
@click.argument("basename")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option(
    "--parts-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=Path("."),
    help="Directory holding the part files.",
)
def merge(basename: str, output: Path, parts_dir: Path) -> None:
    """Merge BASENAME.partN files from --parts-dir into OUTPUT."""
    with handle_errors():
        parts = parts_in(parts_dir, basename)
        written = merge_chunks(parts, output)
    click.echo(f"Merged {len(parts)} parts ({written} bytes) into {output}")


@click.command("resolve")
@click.argument("existing", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("incoming", type=EXISTING_FILE)
@click.option(
    "--policy",
    type=click.Choice([p.value for p in ConflictPolicy]),
    default=None,
    help="Conflict policy (default: from config).",
)
@click.option("--clobber-backup", is_flag=True, help="Allow replacing an existing .bak.")
@pass_state
def resolve_cmd(
    state: CLIState,
    existing: Path,
    incoming: Path,
    policy: str | None,
    clobber_backup: bool,
) -> None:
    """Move INCOMING into place of EXISTING."""
    with handle_errors():
        backup = resolve(
            existing,
            incoming,
            ConflictPolicy.from_name(policy or state.config.conflict_policy),
            clobber_backup=clobber_backup or state.config.clobber_backup,
        )
    if backup:
        click.echo(f"Backed up {existing} to {backup}")
    click.echo(f"Replaced {existing}")


@click.command("save-version")
@click.argument("path", type=EXISTING_FILE)
def save_version(path: Path) -> None:
    """Snapshot PATH and print the version id."""
    with handle_errors():
        click.echo(Versioner().save_version(path))


@click.command()
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.argument("version_id")
def revert(path: Path, version_id: str) -> None:
    """Restore PATH from snapshot VERSION_ID."""
    with handle_errors():
        Versioner().revert(path, version_id)
    click.echo(f"Reverted {path} to {version_id}")


@click.command()
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--prune", "keep", type=click.IntRange(min=0), default=None, help="Keep only the newest N.")
def versions(path: Path, keep: int | None) -> None:
    """List (or prune) the snapshots of PATH."""
    versioner = Versioner()
    with handle_errors():
        if keep is not None:
            for version_id in versioner.prune_versions(path, keep):
                click.echo(f"Deleted {version_id}")
        for version_id in versioner.list_versions(path):
            click.echo(version_id)


@click.command("secure-delete")
@click.argument("paths", nargs=-1, required=True, type=EXISTING_FILE)
def secure_delete_cmd(paths: tuple[Path, ...]) -> None:
    """Overwrite each of PATHS with zeros, then delete it."""
    with handle_errors():
        for path in paths:
            secure_delete(path)
            click.echo(f"Deleted {path}")
