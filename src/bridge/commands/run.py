"""The ``run`` operation: lock, compose, execute, reconnect.

Settings come from the host profile, with command-line overrides taking
precedence. When a lock is configured it is held for the whole
operation, including any wait for reconnection and the recovery
command.
"""

import time
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping

import click

from ..compose import compose_command
from ..lock import acquire_lock
from ..logging import get_logger
from ..reconnect import ReconnectController, ReconnectState, ReconnectStatus
from ..ssh import check_connection, run_remote_command
from ..types import HostProfile


@dataclass
class RunOverrides:
    """Command-line values that override the host profile.

    Attributes:
        reconnect_command: Replaces ``reconnect_command``
        reconnect_timeout: Replaces ``reconnect_timeout``
        lock_name: Replaces the ``lock`` setting
        lock_timeout: Replaces ``lock_timeout``
    """

    reconnect_command: str | None = None
    reconnect_timeout: int | None = None
    lock_name: str | None = None
    lock_timeout: int | None = None


@dataclass(frozen=True)
class RunSettings:
    """Effective settings for one run after applying overrides."""

    reconnect_command: str | None
    reconnect_timeout: int
    lock_name: str | None
    lock_timeout: int


def resolve_settings(host: HostProfile, overrides: RunOverrides | None = None) -> RunSettings:
    """Apply command-line overrides on top of the host profile.

    Example:
        >>> host = HostProfile(name="dev", hostname="dev", path="/srv", lock_name="kernel")
        >>> resolve_settings(host, RunOverrides(lock_timeout=30)).lock_timeout
        30
    """
    overrides = overrides or RunOverrides()
    return RunSettings(
        reconnect_command=(
            overrides.reconnect_command
            if overrides.reconnect_command is not None
            else host.reconnect_command
        ),
        reconnect_timeout=(
            overrides.reconnect_timeout
            if overrides.reconnect_timeout is not None
            else host.reconnect_timeout
        ),
        lock_name=overrides.lock_name if overrides.lock_name is not None else host.lock_name,
        lock_timeout=(
            overrides.lock_timeout if overrides.lock_timeout is not None else host.lock_timeout
        ),
    )


def report_reconnect(state: ReconnectState, timeout: float) -> None:
    """Print reconnect progress to stderr."""
    status = state.status
    if status is ReconnectStatus.DISCONNECTED:
        click.echo(
            f"SSH connection lost. Waiting for reconnection (timeout: {timeout:g}s)...",
            err=True,
        )
    elif status is ReconnectStatus.POLLING and state.polls > 0:
        click.echo(".", nl=False, err=True)
    elif status is ReconnectStatus.RECOVERED:
        click.echo(".", err=True)
        click.echo("Reconnected. Running reconnect command...", err=True)
    elif status is ReconnectStatus.TIMED_OUT:
        if state.polls > 0:
            click.echo(err=True)
        click.echo(f"Timed out waiting for reconnection after {timeout:g}s", err=True)


def run_command(
    host: HostProfile,
    command: str,
    file_vars: Mapping[str, str],
    overrides: RunOverrides | None = None,
    dry_run: bool = False,
    environ: Mapping[str, str] | None = None,
    executor: Callable[[str, str], int] = run_remote_command,
    probe: Callable[[str], bool] = check_connection,
    lock_dir: Path | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Run command on host with locking and reconnect handling.

    Args:
        host: Target host profile
        command: User command, may contain ``${VAR}`` placeholders
        file_vars: Variables loaded from env files
        overrides: Command-line overrides
        dry_run: Print the composed command instead of running it
        environ: Environment for substitution (defaults to os.environ)
        executor: Runs a composed command on a hostname, returns exit status
        probe: Checks whether a hostname is reachable
        lock_dir: Directory for lock files
        clock: Monotonic time source for lock and reconnect waits
        sleep: Sleep function for lock and reconnect waits

    Returns:
        Exit status to report: the command's, the recovery command's, or
        255 if the connection was lost and did not come back

    Raises:
        ConfigError: For an invalid wrapper
        SubstitutionError: For missing variables in strict mode
        LockTimeoutError: If the lock could not be acquired
        LockError: If the lock file could not be opened
        TransportError: If ssh could not be started
    """
    settings = resolve_settings(host, overrides)
    logger = get_logger(__name__, host=host.name)

    logger.info(f"Running on host: {host.name} ({host.hostname})")
    logger.info(f"Remote path: {host.path}")
    if host.wrapper:
        logger.info(f"Wrapper: {host.wrapper}")
    if file_vars:
        logger.info(f"Loaded {len(file_vars)} env vars from .env files")
    if settings.reconnect_command:
        logger.info(
            f"Reconnect command: {settings.reconnect_command} "
            f"(timeout: {settings.reconnect_timeout}s)"
        )
    if settings.lock_name:
        logger.info(f"Lock: {settings.lock_name} (timeout: {settings.lock_timeout}s)")
    logger.info(f"Command: {command}")

    if settings.lock_name:
        lock_scope = acquire_lock(
            host.hostname,
            settings.lock_name,
            timeout=settings.lock_timeout,
            lock_dir=lock_dir,
            clock=clock,
            sleep=sleep,
        )
    else:
        lock_scope = nullcontext()

    with lock_scope:
        if dry_run:
            full_command = compose_command(command, host, file_vars, environ)
            click.echo(f"Would run: ssh {host.hostname} {full_command}", err=True)
            return 0

        def execute(cmd: str) -> int:
            full_command = compose_command(cmd, host, file_vars, environ)
            logger.debug(f"Running: ssh {host.hostname} {full_command}")
            return executor(host.hostname, full_command)

        controller = ReconnectController(
            execute=execute,
            probe=lambda: probe(host.hostname),
            recovery_command=settings.reconnect_command,
            timeout=settings.reconnect_timeout,
            clock=clock,
            sleep=sleep,
            on_change=lambda state: report_reconnect(state, settings.reconnect_timeout),
        )

        with logger.timed("Remote command"):
            exit_code = controller.run(command)

        logger.debug(f"Finished with state {controller.state.status.value}", exit_code=exit_code)
        return exit_code
