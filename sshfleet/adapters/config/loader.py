"""
Settings loader with priority: CLI > env > TOML > defaults
"""
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Any, Optional

from ...core.constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAX_WORKERS,
    DEFAULT_STATE_DIR,
    DEFAULT_USER,
    DEFAULT_VERIFY_TIMEOUT,
    ENV_PREFIX,
    FLEET_CONFIG_PATH,
    SETTINGS_PATH,
    SSH_DIR,
)
from ...core.exceptions import ValidationError

PATH_FIELDS = ("config_path", "ssh_dir", "public_key", "state_dir")


@dataclass
class FleetSettings:
    """Resolved settings"""
    config_path: Path = field(default_factory=lambda: Path(FLEET_CONFIG_PATH).expanduser())
    ssh_dir: Path = field(default_factory=lambda: Path(SSH_DIR).expanduser())
    public_key: Optional[Path] = None
    state_dir: Path = field(default_factory=lambda: Path(DEFAULT_STATE_DIR).expanduser())
    default_user: str = DEFAULT_USER
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    verify_timeout: float = DEFAULT_VERIFY_TIMEOUT
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    max_workers: int = DEFAULT_MAX_WORKERS
    history_limit: int = DEFAULT_HISTORY_LIMIT

    def validate(self) -> None:
        """Validate settings"""
        if self.max_workers < 1:
            raise ValidationError(f"Invalid max_workers: {self.max_workers}")
        for name in ("connect_timeout", "verify_timeout", "command_timeout"):
            if getattr(self, name) <= 0:
                raise ValidationError(f"Invalid {name}: {getattr(self, name)}")
        if self.history_limit < 1:
            raise ValidationError(f"Invalid history_limit: {self.history_limit}")
        if not self.default_user:
            raise ValidationError("default_user must not be empty")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FleetSettings":
        """Create from a merged configuration dictionary; unknown keys are ignored"""
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key in PATH_FIELDS:
                value = Path(str(value)).expanduser()
            elif key == "default_user":
                value = str(value)
            kwargs[key] = value
        settings = cls(**kwargs)
        settings.validate()
        return settings


class ConfigLoader:
    """Configuration loader with priority support"""

    def __init__(self, env_prefix: str = ENV_PREFIX):
        self._env_prefix = env_prefix

    def load_toml(self, path: Path) -> Dict[str, Any]:
        """Load TOML settings file; the [fleet] table if present, else the top level"""
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ValidationError(f"Failed to parse TOML configuration: {e}") from e
        return data.get("fleet", data)

    def load_env(self) -> Dict[str, Any]:
        """Load SSHFLEET_* environment variables, e.g. SSHFLEET_MAX_WORKERS"""
        config = {}
        for f in fields(FleetSettings):
            value = os.getenv(f"{self._env_prefix}{f.name.upper()}")
            if value:
                config[f.name] = self._convert_value(value)
        return config

    def _convert_value(self, value: str) -> Any:
        """Convert string value to appropriate type"""
        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configurations; later ones override earlier ones, None values
        never override.
        """
        result: Dict[str, Any] = {}
        for config in configs:
            result.update({k: v for k, v in config.items() if v is not None})
        return result

    def load(
        self,
        toml_path: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        use_env: bool = True,
    ) -> FleetSettings:
        """
        Load settings with priority: CLI > env > TOML > defaults

        Args:
            toml_path: TOML settings file; the default location is read only if it exists
            cli_overrides: CLI parameter overrides
            use_env: Whether to load from environment variables

        Returns:
            Validated settings
        """
        configs = []

        if toml_path is not None:
            configs.append(self.load_toml(Path(toml_path).expanduser()))
        else:
            default_path = Path(SETTINGS_PATH).expanduser()
            if default_path.exists():
                configs.append(self.load_toml(default_path))

        if use_env:
            configs.append(self.load_env())

        if cli_overrides:
            configs.append(cli_overrides)

        return FleetSettings.from_dict(self.merge_configs(*configs))
