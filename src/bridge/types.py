"""Type definitions for bridge.

Host configuration is parsed once per invocation into a frozen
``HostProfile`` and is read-only from then on. The closed sets of shell
kinds and sync methods are enums; unknown values are configuration
errors rather than silent fallbacks.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .exceptions import ConfigError

DEFAULT_LOCK_NAME = "default"
DEFAULT_RECONNECT_TIMEOUT = 90
DEFAULT_LOCK_TIMEOUT = 600


class Shell(str, Enum):
    """Remote shell kind, which decides how commands are quoted."""

    BASH = "bash"
    POWERSHELL = "powershell"
    CMD = "cmd"

    @classmethod
    def parse(cls, value: Any) -> "Shell":
        """Parse a shell kind from configuration.

        Raises:
            ConfigError: If the value is not one of bash, powershell, cmd
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ConfigError(
                f"Unknown shell '{value}'. Valid shells: {valid}", shell=value
            ) from None

    def __str__(self) -> str:
        return self.value


class SyncMethod(str, Enum):
    """How the project directory is mirrored to the remote."""

    TAR = "tar"
    RSYNC = "rsync"

    @classmethod
    def parse(cls, value: Any) -> "SyncMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigError(
                f"Unknown sync_method '{value}'. Valid methods: tar, rsync",
                sync_method=value,
            ) from None

    def __str__(self) -> str:
        return self.value


def parse_lock_setting(value: Any) -> str | None:
    """Convert a ``lock`` config value to a lock name.

    ``false``/absent means no lock, ``true`` means the default lock name,
    and a string is used as the lock name.

    Example:
        >>> parse_lock_setting(True)
        'default'
        >>> parse_lock_setting("kernel")
        'kernel'
        >>> parse_lock_setting(False) is None
        True
    """
    if value is None or value is False:
        return None
    if value is True:
        return DEFAULT_LOCK_NAME
    if isinstance(value, str) and value:
        return value
    raise ConfigError(
        f"Invalid lock setting {value!r}: expected true, false or a lock name",
        lock=value,
    )


@dataclass(frozen=True)
class HostProfile:
    """Configuration for a single remote host.

    Attributes:
        name: Name of the host entry in bridge.yml (e.g. "dev-server")
        hostname: SSH destination, an alias from ~/.ssh/config or an address
        path: Remote working directory commands run in
        shell: Remote shell kind
        sync_method: tar (default) or rsync
        wrapper: Optional command template containing a ``{}`` placeholder
        strict_env: Fail on unresolved ``${VAR}`` references
        env_files: Extra env files loaded after ``.env``
        reconnect_command: Command to run after an unexpected disconnect
        reconnect_timeout: Seconds to wait for the host to come back
        lock_name: Lock acquired around remote runs, None for no lock
        lock_timeout: Seconds to wait for the lock

    Example:
        >>> host = HostProfile(name="dev", hostname="dev-box", path="/srv/app")
        >>> host.shell
        <Shell.BASH: 'bash'>
        >>> host.reconnect_timeout
        90
    """

    name: str
    hostname: str
    path: str
    shell: Shell = Shell.BASH
    sync_method: SyncMethod = SyncMethod.TAR
    wrapper: str | None = None
    strict_env: bool = True
    env_files: tuple[str, ...] = field(default_factory=tuple)
    reconnect_command: str | None = None
    reconnect_timeout: int = DEFAULT_RECONNECT_TIMEOUT
    lock_name: str | None = None
    lock_timeout: int = DEFAULT_LOCK_TIMEOUT

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "HostProfile":
        """Create a profile from a ``hosts.<name>`` table.

        Raises:
            ConfigError: If required keys are missing or values are invalid
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Host '{name}' must be a mapping", host=name)

        for key in ("hostname", "path"):
            if not data.get(key):
                raise ConfigError(
                    f"Host '{name}' is missing required key '{key}'", host=name, key=key
                )

        env_files = data.get("env_files") or []
        if not isinstance(env_files, list):
            raise ConfigError(f"Host '{name}': env_files must be a list", host=name)

        return cls(
            name=name,
            hostname=str(data["hostname"]),
            path=str(data["path"]),
            shell=Shell.parse(data.get("shell", Shell.BASH)),
            sync_method=SyncMethod.parse(data.get("sync_method", SyncMethod.TAR)),
            wrapper=_optional_str_setting(name, data, "wrapper"),
            strict_env=_bool_setting(name, data, "strict_env", True),
            env_files=tuple(str(f) for f in env_files),
            reconnect_command=_optional_str_setting(name, data, "reconnect_command"),
            reconnect_timeout=_int_setting(
                name, data, "reconnect_timeout", DEFAULT_RECONNECT_TIMEOUT
            ),
            lock_name=parse_lock_setting(data.get("lock")),
            lock_timeout=_int_setting(name, data, "lock_timeout", DEFAULT_LOCK_TIMEOUT),
        )


def _int_setting(name: str, data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(
            f"Host '{name}': {key} must be a non-negative integer, got {value!r}",
            host=name,
            key=key,
        )
    return value


def _bool_setting(name: str, data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(
            f"Host '{name}': {key} must be true or false, got {value!r}",
            host=name,
            key=key,
        )
    return value


def _optional_str_setting(name: str, data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ConfigError(
            f"Host '{name}': {key} must be a string, got {value!r}",
            host=name,
            key=key,
        )
    return value
