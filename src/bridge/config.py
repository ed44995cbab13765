"""Configuration file discovery and loading for bridge.

Configuration lives in ``bridge.yml`` at the project root and is found
by walking up from the current directory.

Example bridge.yml:

    default_host: dev-server
    hosts:
      dev-server:
        hostname: dev-server
        path: /home/user/projects/myproject
    sync:
      exclude: [.git, target, node_modules, __pycache__]
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError
from .types import HostProfile

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "bridge.yml"

DEFAULT_EXCLUDES = [".git", "target", "node_modules", "__pycache__"]

# Mac-specific files that cause issues on remote systems
AUTO_EXCLUDES = [".DS_Store", "._*"]


@dataclass
class BridgeConfig:
    """Parsed bridge.yml.

    Attributes:
        hosts: Host profiles keyed by name
        default_host: Host used when none is given on the command line
        exclude: Patterns excluded from sync
    """

    hosts: dict[str, HostProfile] = field(default_factory=dict)
    default_host: str | None = None
    exclude: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDES))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BridgeConfig":
        """Create from parsed YAML.

        Raises:
            ConfigError: If the structure or any host entry is invalid
        """
        hosts_data = data.get("hosts") or {}
        if not isinstance(hosts_data, dict):
            raise ConfigError("'hosts' must be a mapping of host names to settings")

        hosts = {
            str(name): HostProfile.from_dict(str(name), host_data)
            for name, host_data in hosts_data.items()
        }

        sync = data.get("sync") or {}
        exclude = sync.get("exclude", DEFAULT_EXCLUDES) if isinstance(sync, dict) else None
        if not isinstance(exclude, list):
            raise ConfigError("'sync.exclude' must be a list of patterns")

        return cls(
            hosts=hosts,
            default_host=data.get("default_host"),
            exclude=[str(pattern) for pattern in exclude],
        )

    def get_host(self, name: str | None = None) -> HostProfile:
        """Get a host by name, or the default host.

        Raises:
            ConfigError: If no name is given and there is no default, or the
                host is not configured
        """
        host_name = name or self.default_host
        if not host_name:
            raise ConfigError(
                "No default host configured. Use --host or set default_host in bridge.yml"
            )

        host = self.hosts.get(host_name)
        if host is None:
            raise ConfigError(f"Host '{host_name}' not found in configuration", host=host_name)
        return host


def find_config_file(start: Path | None = None) -> Path:
    """Find bridge.yml by walking up the directory tree.

    Raises:
        ConfigError: If no config file exists in start or any parent
    """
    current = (start or Path.cwd()).resolve()

    for directory in [current, *current.parents]:
        config_path = directory / CONFIG_FILENAME
        if config_path.is_file():
            return config_path

    raise ConfigError(
        f"No {CONFIG_FILENAME} found in current directory or any parent. "
        "Run 'bridge init' to create one."
    )


def load_config(path: Path) -> BridgeConfig:
    """Load and parse a config file.

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {path}: {e}", path=str(path)) from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config file: {path}: {e}", path=str(path)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping", path=str(path))

    config = BridgeConfig.from_dict(data)
    logger.debug(f"Loaded {len(config.hosts)} host(s) from {path}")
    return config


def find_and_load(start: Path | None = None) -> tuple[BridgeConfig, Path]:
    """Find and load the nearest bridge.yml."""
    config_path = find_config_file(start)
    return load_config(config_path), config_path


def project_root(config_path: Path) -> Path:
    """Project root directory, where bridge.yml is located."""
    return config_path.parent


def generate_template() -> str:
    """Generate a starter bridge.yml."""
    return """\
default_host: dev-server

hosts:
  dev-server:
    hostname: dev-server          # SSH alias (from ~/.ssh/config) or IP
    path: /home/user/projects/myproject
    # shell: bash                 # bash (default), powershell, or cmd
    # sync_method: rsync          # tar (default) or rsync (incremental, deletes removed files)
    # wrapper: "source ~/.profile && {}"   # Optional: wrap all commands
    # strict_env: true            # Fail on missing ${VAR} references (default: true)
    # env_files: [.env.prod]      # Additional env files to load after .env
    # reconnect_command: get-crash-dump.sh  # Run after SSH reconnects from unexpected disconnect
    # reconnect_timeout: 90       # Seconds to wait for reconnection (default: 90)
    # lock: true                  # Acquire exclusive lock before running commands
    # lock: kernel                # Named lock (only blocks commands with same lock name)
    # lock_timeout: 600           # Seconds to wait for lock (default: 600)

  # Windows example with environment loading:
  # windows-pc:
  #   hostname: 192.168.1.100
  #   path: C:/Users/name/dev/myproject
  #   shell: powershell
  #   wrapper: 'net use \\\\server\\share /user:${DOMAIN_USER} ${DOMAIN_PASS:-}; {}'

  # Conda environment example:
  # ml-server:
  #   hostname: ml-box
  #   path: /home/user/ml-project
  #   wrapper: "source ~/miniconda3/bin/activate ml && {}"

sync:
  exclude: [.git, target, node_modules, __pycache__]
"""
