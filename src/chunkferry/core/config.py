"""Engine configuration for chunkferry.

Configuration is a JSON file, by default ~/.chunkferry/config.json,
overridable with the CHUNKFERRY_CONFIG environment variable.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from chunkferry.core.integrity import DIGEST_ALGORITHMS
from chunkferry.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CHUNKFERRY_CONFIG"
CONFLICT_POLICIES = ("overwrite", "backup", "abort")
_INT_FIELDS = ("chunk_count", "rate_limit", "min_chunk_size", "buffer_size")
_STR_FIELDS = ("digest_algorithm", "conflict_policy")


@dataclass
class EngineConfig:
    """Tunables for the transfer engine.

    Attributes:
        chunk_count: Default parallelism for parallel uploads.
        rate_limit: Aggregate bytes/second ceiling (0 = unlimited).
        digest_algorithm: One of md5, sha1, sha256.
        conflict_policy: overwrite, backup or abort.
        clobber_backup: Allow the backup policy to replace an existing .bak.
        min_chunk_size: Smallest chunk worth its own connection.
        buffer_size: Bytes copied per read/write step.
        connect_timeout: Transport dial timeout in seconds.
        log_file: Optional path for the transfer log file.
    """

    chunk_count: int = 4
    rate_limit: int = 0
    digest_algorithm: str = "sha256"
    conflict_policy: str = "backup"
    clobber_backup: bool = False
    min_chunk_size: int = 1024 * 1024
    buffer_size: int = 64 * 1024
    connect_timeout: float = 30.0
    log_file: str | None = None

    def __post_init__(self) -> None:
        """Normalize and validate values."""
        self._check_types()
        self.digest_algorithm = self.digest_algorithm.lower()
        self.conflict_policy = self.conflict_policy.lower()

        if self.chunk_count < 1:
            raise ConfigError(f"chunk_count must be >= 1, got {self.chunk_count}")
        if self.rate_limit < 0:
            raise ConfigError(f"rate_limit must be >= 0, got {self.rate_limit}")
        if self.digest_algorithm not in DIGEST_ALGORITHMS:
            raise ConfigError(f"Unsupported digest_algorithm: {self.digest_algorithm}")
        if self.conflict_policy not in CONFLICT_POLICIES:
            raise ConfigError(f"Unknown conflict_policy: {self.conflict_policy}")
        if self.min_chunk_size < 0:
            raise ConfigError(f"min_chunk_size must be >= 0, got {self.min_chunk_size}")
        if self.buffer_size < 1:
            raise ConfigError(f"buffer_size must be >= 1, got {self.buffer_size}")
        if self.connect_timeout <= 0:
            raise ConfigError(f"connect_timeout must be > 0, got {self.connect_timeout}")

    def _check_types(self) -> None:
        for name in _INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        for name in _STR_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str):
                raise ConfigError(f"{name} must be a string, got {value!r}")
        if isinstance(self.connect_timeout, bool) or not isinstance(self.connect_timeout, (int, float)):
            raise ConfigError(f"connect_timeout must be a number, got {self.connect_timeout!r}")
        if not isinstance(self.clobber_backup, bool):
            raise ConfigError(f"clobber_backup must be true or false, got {self.clobber_backup!r}")
        if self.log_file is not None and not isinstance(self.log_file, str):
            raise ConfigError(f"log_file must be a string, got {self.log_file!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EngineConfig:
        """Build a config from a parsed JSON object, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except TypeError as e:
            raise ConfigError(f"Invalid config value: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def get_config_dir() -> Path:
    """Get the configuration directory for chunkferry.

    Returns:
        Path to ~/.chunkferry.
    """
    return Path.home() / ".chunkferry"


def get_config_file() -> Path:
    """Get the path to the config file."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return get_config_dir() / "config.json"


def load_config(path: Path | None = None) -> EngineConfig:
    """Load configuration from a JSON file.

    A missing file yields the defaults.

    Raises:
        ConfigError: If the file is not valid JSON or holds invalid values.
    """
    config_file = path or get_config_file()
    if not config_file.exists():
        return EngineConfig()

    try:
        data = json.loads(config_file.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_file}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file} must contain a JSON object")
    return EngineConfig.from_dict(data)


def save_config(config: EngineConfig, path: Path | None = None) -> Path:
    """Save configuration to a JSON file."""
    config_file = path or get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config.to_dict(), indent=2))
    return config_file
