"""Command composition for remote execution.

Processing order:

1. Check the wrapper template has a ``{}`` placeholder
2. Substitute variables in the user command
3. Substitute variables in the wrapper
4. Put the command into the wrapper
5. Prefix a shell-specific change to the remote path
"""

from typing import Mapping

from .env_subst import SubstitutionContext
from .exceptions import ConfigError, SubstitutionError
from .types import HostProfile, Shell

WRAPPER_PLACEHOLDER = "{}"


def validate_wrapper(wrapper: str) -> None:
    """Check a wrapper template contains the command placeholder.

    Raises:
        ConfigError: If ``{}`` is missing
    """
    if WRAPPER_PLACEHOLDER not in wrapper:
        raise ConfigError(
            "Wrapper template must contain '{}' placeholder for command. "
            f"Got: {wrapper}",
            wrapper=wrapper,
        )


def apply_wrapper(
    command: str,
    wrapper: str | None,
    context: SubstitutionContext,
    strict: bool = True,
) -> str:
    """Place an already substituted command into the wrapper template."""
    if wrapper is None:
        return command

    validate_wrapper(wrapper)

    try:
        wrapper = context.substitute(wrapper, strict)
    except SubstitutionError as e:
        e.msg = f"Failed to substitute environment variables in wrapper: {e.msg}"
        raise

    return wrapper.replace(WRAPPER_PLACEHOLDER, command)


def shell_prefix(shell: Shell, remote_path: str, command: str) -> str:
    """Wrap command so it runs inside remote_path for the given shell.

    Example:
        >>> shell_prefix(Shell.BASH, "/srv/app", "echo hi")
        'cd "/srv/app" && echo hi'
        >>> shell_prefix(Shell.CMD, "C:/dev/app", "dir")
        'cd /d "C:\\\\dev\\\\app" && dir'
    """
    if shell is Shell.BASH:
        return f'cd "{remote_path}" && {command}'
    if shell is Shell.POWERSHELL:
        escaped = command.replace('"', '\\"')
        return f"powershell -Command \"cd '{remote_path}'; {escaped}\""
    if shell is Shell.CMD:
        windows_path = remote_path.replace("/", "\\")
        return f'cd /d "{windows_path}" && {command}'
    raise ConfigError(f"Unsupported shell: {shell!r}", shell=shell)


def compose_command(
    command: str,
    host: HostProfile,
    file_vars: Mapping[str, str],
    environ: Mapping[str, str] | None = None,
) -> str:
    """Build the full command line handed to ssh.

    Args:
        command: User command, may contain placeholders
        host: Host profile supplying path, shell, wrapper and strictness
        file_vars: Variables loaded from env files
        environ: Environment consulted first (defaults to os.environ)

    Returns:
        The composed command string

    Raises:
        ConfigError: If the wrapper has no ``{}`` placeholder
        SubstitutionError: If strict substitution finds missing variables
    """
    # Wrapper errors surface before any substitution work.
    if host.wrapper is not None:
        validate_wrapper(host.wrapper)

    context = SubstitutionContext(file_vars, environ)

    try:
        command = context.substitute(command, host.strict_env)
    except SubstitutionError as e:
        e.msg = f"Failed to substitute environment variables in command: {e.msg}"
        raise

    wrapped = apply_wrapper(command, host.wrapper, context, host.strict_env)
    return shell_prefix(host.shell, host.path, wrapped)
