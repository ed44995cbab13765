"""The ``ssh`` operation: an interactive shell in the remote project directory."""

from typing import Callable, Mapping

from ..compose import compose_command
from ..logging import get_logger
from ..ssh import run_remote_command
from ..types import HostProfile, Shell

SHELL_PROGRAMS = {
    Shell.BASH: "bash",
    Shell.POWERSHELL: "powershell",
    Shell.CMD: "cmd",
}


def open_shell(
    host: HostProfile,
    file_vars: Mapping[str, str],
    environ: Mapping[str, str] | None = None,
    executor: Callable[..., int] = run_remote_command,
) -> int:
    """Start the host's shell with a TTY, inside the remote path.

    The shell goes through the same wrapper and directory change as any
    other command.

    Returns:
        Exit status of the remote shell
    """
    logger = get_logger(__name__, host=host.name)
    program = SHELL_PROGRAMS[host.shell]
    logger.info(f"Opening SSH session on host: {host.name} ({host.hostname})")
    logger.info(f"Remote path: {host.path}")
    logger.info(f"Shell: {program}")

    full_command = compose_command(program, host, file_vars, environ)
    return executor(host.hostname, full_command, interactive=True)
