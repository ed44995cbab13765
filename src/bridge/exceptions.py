"""Bridge exceptions.

Every error carries a human-readable message plus keyword context
(host name, lock name, variable names, file path) so a failure can be
acted on without re-running in verbose mode.
"""

from typing import Any


class BridgeError(Exception):
    """Base class for fatal bridge errors.

    Attributes:
        msg: Human-readable error message
        context: Additional fields describing the failure

    Example:
        raise BridgeError("Host not found", host="dev-server")
        # err.context == {"host": "dev-server"}
    """

    def __init__(self, msg: str, **context: Any) -> None:
        super().__init__(msg)
        self.msg = msg
        self.context: dict[str, Any] = dict(context)

    def __str__(self) -> str:
        return self.msg


class ConfigError(BridgeError):
    """Raised for invalid configuration: bad wrapper, unknown shell or host, missing files."""


class SubstitutionError(BridgeError):
    """Raised when strict substitution finds unresolved variables.

    All missing names are reported together.
    """

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Use ${VAR:-default} syntax for optional variables, "
            "or set strict_env: false in bridge.yml",
            missing=list(missing),
        )
        self.missing = list(missing)


class LockError(BridgeError):
    """Raised when the lock file for a host lock cannot be opened."""


class LockTimeoutError(LockError):
    """Raised when a host lock cannot be acquired within the timeout."""

    def __init__(self, hostname: str, lock_name: str, timeout: float) -> None:
        super().__init__(
            f"Timed out waiting for lock '{lock_name}' on {hostname} after {timeout:g}s",
            hostname=hostname,
            lock_name=lock_name,
            timeout=timeout,
        )
        self.hostname = hostname
        self.lock_name = lock_name
        self.timeout = timeout


class TransportError(BridgeError):
    """Raised when ssh, scp, rsync or tar cannot be spawned or a transfer fails.

    A remote command exiting non-zero is not a TransportError; its exit
    status is passed back to the caller.
    """
