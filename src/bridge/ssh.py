"""SSH transport for bridge.

Runs commands on a remote host by spawning the system ``ssh`` client.
Standard output and error are inherited so remote output streams live;
only the exit status is read back.

Keepalive options make ssh notice a dead peer within about 15 seconds
instead of waiting for a TCP timeout, and ssh reports a lost or failed
connection with exit status 255.
"""

import logging
import subprocess

from .exceptions import TransportError

logger = logging.getLogger(__name__)

SSH_EXECUTABLE = "ssh"

# Exit status ssh uses for connection errors, distinct from the remote
# command's own status.
SSH_CONNECTION_FAILURE = 255

KEEPALIVE_OPTIONS = ["-o", "ServerAliveInterval=5", "-o", "ServerAliveCountMax=3"]
PROBE_CONNECT_TIMEOUT = 5


def build_ssh_args(hostname: str, command: str, interactive: bool = False) -> list[str]:
    """Build the ssh argument vector for running command on hostname.

    Example:
        >>> build_ssh_args("dev-box", 'cd "/srv" && ls')
        ['ssh', '-o', 'ServerAliveInterval=5', '-o', 'ServerAliveCountMax=3', 'dev-box', 'cd "/srv" && ls']
    """
    args = [SSH_EXECUTABLE]
    if interactive:
        args.append("-t")
    args.extend(KEEPALIVE_OPTIONS)
    args.append(hostname)
    args.append(command)
    return args


def run_remote_command(hostname: str, command: str, interactive: bool = False) -> int:
    """Run a composed command on hostname, streaming its output.

    Args:
        hostname: SSH destination
        command: Fully composed command line
        interactive: Allocate a TTY (for shells)

    Returns:
        The ssh exit status: the remote command's status, or 255 when the
        connection failed

    Raises:
        TransportError: If ssh could not be started
    """
    args = build_ssh_args(hostname, command, interactive)
    logger.debug(f"Running: ssh {hostname} {command}")

    try:
        process = subprocess.run(args)
    except OSError as e:
        raise TransportError(
            f"Failed to spawn SSH process: {e}", hostname=hostname
        ) from e

    # Negative return codes mean ssh was killed by a signal.
    return process.returncode if process.returncode >= 0 else 1


def check_connection(hostname: str, connect_timeout: int = PROBE_CONNECT_TIMEOUT) -> bool:
    """Check whether an SSH connection to hostname can be established.

    Runs a no-op command in batch mode with a short connect timeout and
    discards all output.

    Returns:
        True if the host is reachable, False otherwise
    """
    args = [
        SSH_EXECUTABLE,
        "-o", f"ConnectTimeout={connect_timeout}",
        "-o", "BatchMode=yes",
        hostname,
        "exit 0",
    ]
    try:
        process = subprocess.run(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as e:
        logger.debug(f"Connection probe to {hostname} could not start: {e}")
        return False
    return process.returncode == 0
