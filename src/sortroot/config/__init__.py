"""Configuration management for SortRoot.

Everything SortRoot persists lives in one state directory: the YAML config
file, the move journal, and the rotating log.
"""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import Policy, SortRootConfig
from .resolver import ENV_PREFIX, overrides_from_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.sortroot/config.yaml")
JOURNAL_FILENAME = "journal.jsonl"
LOG_FILENAME = "sortroot.log"
_CONFIG_HEADER = textwrap.dedent(
    """\
    # SortRoot configuration file
    # Generated automatically; manage via `sortroot config set` or `sortroot config set-root`.
    """
)


class ConfigManager:
    """Own the YAML config file and the state files stored beside it."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            config_path: Config file location; defaults to ``~/.sortroot/config.yaml``.
            env: Environment consulted for ``SORTROOT__`` overrides.
        """
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        return self._config_path

    @property
    def state_dir(self) -> Path:
        return self._config_path.parent

    @property
    def journal_path(self) -> Path:
        return self.state_dir / JOURNAL_FILENAME

    @property
    def log_path(self) -> Path:
        return self.state_dir / LOG_FILENAME

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> SortRootConfig:
        """Resolve the effective configuration.

        Args:
            cli_overrides: Dotted-key overrides with the highest precedence.
            include_env: Whether ``SORTROOT__`` environment variables apply.
            ensure_file: Create the config file with defaults when missing.
            env_overrides: Environment mapping used instead of the process one.

        Returns:
            SortRootConfig: Defaults overlaid with file, environment, and CLI values.

        Raises:
            ConfigError: If the file is unreadable or any layer is invalid.
        """
        if ensure_file:
            self.ensure_exists()

        env_layer = None
        if include_env:
            env_layer = overrides_from_env(env_overrides if env_overrides is not None else self._env)

        return resolve_with_precedence(
            defaults=SortRootConfig(),
            file_overrides=self.load_file_overrides(),
            env_overrides=env_layer,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored in the config file, or ``{}`` when absent."""
        text = self.read_text()
        try:
            data = yaml.safe_load(text) if text.strip() else None
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return data

    def save(self, config: SortRootConfig | Mapping[str, Any]) -> None:
        """Replace the config file with ``config``."""
        if isinstance(config, SortRootConfig):
            self._write(config.model_dump(mode="python"))
        else:
            self._write(dict(config))

    def save_policy(self, policy: Policy) -> None:
        """Replace the stored policy section, keeping other file overrides."""
        data = self.load_file_overrides()
        data["policy"] = policy.model_dump(mode="python")
        self._write(data)

    def ensure_exists(self) -> Path:
        """Write a default config file unless one is already present."""
        if not self._config_path.exists():
            self._write(SortRootConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the config file contents, or an empty string when it is missing."""
        try:
            return self._config_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as exc:
            raise ConfigError(f"Cannot read configuration file {self._config_path}: {exc}") from exc

    def _write(self, data: Mapping[str, Any]) -> None:
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        document = f"{_CONFIG_HEADER}# Last updated: {stamp}\n" + yaml.safe_dump(
            dict(data), sort_keys=False
        )
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)
            self._config_path.write_text(document, encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot write configuration file {self._config_path}: {exc}") from exc


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "SortRootConfig",
    "Policy",
    "resolve_with_precedence",
    "ConfigError",
]
