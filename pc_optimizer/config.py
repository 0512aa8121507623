"""
Configuration management for pc_optimizer.

Supports:
- TOML config files
- Environment variables
- Command-line overrides
- Sensible defaults

Priority (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Config file
4. Defaults
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for older Python


ENV_HOME = "PC_OPTIMIZER_HOME"
ENV_BACKEND = "PC_OPTIMIZER_BACKEND"
ENV_TAG = "PC_OPTIMIZER_ENV_TAG"

# Default config file locations (searched in order)
CONFIG_SEARCH_PATHS = [
    Path.cwd() / "pc_optimizer.toml",          # Current working directory
    Path.home() / ".pc_optimizer" / "config.toml",
    Path.home() / ".config" / "pc_optimizer" / "config.toml",
]

BACKEND_MODES = ("auto", "windows", "simulated")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def default_data_dir() -> Path:
    """Data directory: $PC_OPTIMIZER_HOME or ~/.pc_optimizer."""
    home = os.environ.get(ENV_HOME)
    if home:
        return Path(home).expanduser()
    return Path.home() / ".pc_optimizer"


@dataclass
class BackendConfig:
    """Which host adapters to use."""
    mode: str = "auto"       # auto: windows on Windows, simulated elsewhere


@dataclass
class SnapshotConfig:
    """Snapshot storage and retention."""
    dir: str = ""            # empty: <data dir>/snapshots
    keep_latest: int = 10

    def resolve_dir(self, data_dir: Path) -> Path:
        if self.dir:
            return Path(self.dir).expanduser()
        return data_dir / "snapshots"


@dataclass
class BatchConfig:
    """Batch execution configuration."""
    max_workers: int = 12
    settle_delay: float = 2.0
    verify_after_batch: bool = True
    grace_seconds: float = 5.0


@dataclass
class CommandConfig:
    """External command configuration."""
    kill_grace: float = 5.0


@dataclass
class EnvironmentConfig:
    """Host identity override."""
    tag: str = ""


@dataclass
class OutputConfig:
    """Output configuration."""
    verbose: bool = False
    quiet: bool = False
    log_level: str = "INFO"


@dataclass
class Config:
    """Main configuration container."""
    backend: BackendConfig = field(default_factory=BackendConfig)
    snapshots: SnapshotConfig = field(default_factory=SnapshotConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    commands: CommandConfig = field(default_factory=CommandConfig)
    environment: EnvironmentConfig = field(default_factory=EnvironmentConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    data_dir: Path = field(default_factory=default_data_dir)

    # Source tracking
    _config_file: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load configuration from file, then apply environment variables.

        Args:
            config_path: Explicit path to config file. If None, searches default locations.

        Returns:
            Config instance with loaded values
        """
        config = cls()

        # Find config file
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_path}")
        else:
            path = cls._find_config_file()

        if path:
            config = cls._load_from_file(path)
            config._config_file = path

        return config.override_from_env()

    @classmethod
    def _find_config_file(cls) -> Optional[Path]:
        """Find config file in default locations."""
        for path in CONFIG_SEARCH_PATHS:
            if path.exists():
                return path
        return None

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load config from TOML file."""
        with open(path, "rb") as f:
            data = tomllib.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        config = cls()

        # Backend
        if "backend" in data:
            config.backend = BackendConfig(
                mode=data["backend"].get("mode", config.backend.mode),
            )

        # Snapshots
        if "snapshots" in data:
            snap = data["snapshots"]
            config.snapshots = SnapshotConfig(
                dir=snap.get("dir", config.snapshots.dir),
                keep_latest=snap.get("keep_latest", config.snapshots.keep_latest),
            )

        # Batch
        if "batch" in data:
            batch = data["batch"]
            config.batch = BatchConfig(
                max_workers=batch.get("max_workers", config.batch.max_workers),
                settle_delay=batch.get("settle_delay", config.batch.settle_delay),
                verify_after_batch=batch.get("verify_after_batch", config.batch.verify_after_batch),
                grace_seconds=batch.get("grace_seconds", config.batch.grace_seconds),
            )

        # Commands
        if "commands" in data:
            config.commands = CommandConfig(
                kill_grace=data["commands"].get("kill_grace", config.commands.kill_grace),
            )

        # Environment
        if "environment" in data:
            config.environment = EnvironmentConfig(
                tag=data["environment"].get("tag", config.environment.tag),
            )

        # Output
        if "output" in data:
            out = data["output"]
            config.output = OutputConfig(
                verbose=out.get("verbose", config.output.verbose),
                quiet=out.get("quiet", config.output.quiet),
                log_level=out.get("log_level", config.output.log_level),
            )

        return config

    def override_from_env(self) -> "Config":
        """Override config values from PC_OPTIMIZER_* environment variables."""
        if os.environ.get(ENV_HOME):
            self.data_dir = default_data_dir()
        if os.environ.get(ENV_BACKEND):
            self.backend.mode = os.environ[ENV_BACKEND].strip().lower()
        if os.environ.get(ENV_TAG):
            self.environment.tag = os.environ[ENV_TAG].strip()
        return self

    def override_from_args(self, args) -> "Config":
        """
        Override config values from argparse namespace.

        Args with value None are ignored (keeping config file values).
        """
        if getattr(args, "backend", None):
            self.backend.mode = args.backend
        if getattr(args, "data_dir", None):
            self.data_dir = Path(args.data_dir).expanduser()
        if getattr(args, "snapshot_dir", None):
            self.snapshots.dir = args.snapshot_dir
        if getattr(args, "max_workers", None):
            self.batch.max_workers = args.max_workers
        if getattr(args, "no_verify", None):
            self.batch.verify_after_batch = False

        # Output overrides
        if getattr(args, "verbose", None):
            self.output.verbose = True
            self.output.log_level = "DEBUG"
        if getattr(args, "quiet", None):
            self.output.quiet = args.quiet
            self.output.verbose = not args.quiet

        return self

    @property
    def snapshot_dir(self) -> Path:
        return self.snapshots.resolve_dir(self.data_dir)

    @property
    def state_dir(self) -> Path:
        """Where the simulated backends persist host state."""
        return self.data_dir / "simulated"

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if self.backend.mode not in BACKEND_MODES:
            errors.append(
                f"Unknown backend mode '{self.backend.mode}' (expected one of {', '.join(BACKEND_MODES)})"
            )
        if self.snapshots.keep_latest < 1:
            errors.append("snapshots.keep_latest must be at least 1")
        if self.batch.max_workers < 1:
            errors.append("batch.max_workers must be at least 1")
        if self.batch.settle_delay < 0:
            errors.append("batch.settle_delay must not be negative")
        if self.batch.grace_seconds < 0:
            errors.append("batch.grace_seconds must not be negative")
        if self.commands.kill_grace <= 0:
            errors.append("commands.kill_grace must be positive")
        if self.output.log_level.upper() not in LOG_LEVELS:
            errors.append(f"Unknown log level '{self.output.log_level}'")

        return errors

    def summary(self, include_config_path: bool = True) -> str:
        """Generate human-readable config summary."""
        lines = []

        if include_config_path:
            if self._config_file:
                lines.append(f"Config: {self._config_file}")
            else:
                lines.append("Config: (defaults)")

        lines.append(f"Backend: {self.backend.mode}")
        lines.append(f"Data: {self.data_dir}")
        lines.append(f"Snapshots: {self.snapshot_dir} (keep {self.snapshots.keep_latest})")
        lines.append(
            f"Batch: {self.batch.max_workers} workers, "
            f"verify {'on' if self.batch.verify_after_batch else 'off'} "
            f"after {self.batch.settle_delay}s"
        )
        if self.environment.tag:
            lines.append(f"Environment tag: {self.environment.tag} (override)")

        return "\n".join(lines)
