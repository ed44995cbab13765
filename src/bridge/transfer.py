"""File transfer between the local project and a remote host.

Sync mirrors the project directory either with tar piped over ssh (the
default) or with rsync. Single files and directories are copied with
scp. These are plain data transfers: any tool exiting non-zero raises
``TransportError``.
"""

import logging
import os
import subprocess
from typing import Sequence

import click

from .compose import shell_prefix
from .exceptions import TransportError
from .ssh import SSH_EXECUTABLE
from .types import Shell

logger = logging.getLogger(__name__)


def _run(args: list[str], what: str, **kwargs) -> int:
    """Run a transfer tool with inherited output, returning its exit status."""
    logger.debug(f"Running: {' '.join(args)}")
    try:
        return subprocess.run(args, **kwargs).returncode
    except OSError as e:
        raise TransportError(f"Failed to run {what}: {e}", tool=what) from e


def _check(returncode: int, what: str) -> None:
    if returncode != 0:
        raise TransportError(
            f"{what} failed with exit code: {returncode}", tool=what, exit_code=returncode
        )


def mkdir_command(shell: Shell, remote_path: str) -> str:
    """Shell-specific command creating remote_path and its parents."""
    if shell is Shell.POWERSHELL:
        return (
            'powershell -Command "New-Item -ItemType Directory -Force '
            f"-Path '{remote_path}' | Out-Null\""
        )
    if shell is Shell.CMD:
        windows_path = remote_path.replace("/", "\\")
        return f'mkdir "{windows_path}" 2>nul || echo.'
    return f'mkdir -p "{remote_path}"'


def ensure_remote_dir(hostname: str, remote_path: str, shell: Shell) -> None:
    """Make sure the remote project directory exists."""
    command = mkdir_command(shell, remote_path)
    logger.info(f"Ensuring remote directory exists: {remote_path}")
    returncode = _run([SSH_EXECUTABLE, hostname, command], "ssh")
    if returncode != 0:
        raise TransportError(
            f"Failed to create remote directory: {remote_path}",
            hostname=hostname,
            path=remote_path,
        )


def tar_args(excludes: Sequence[str]) -> list[str]:
    """Arguments for creating a gzipped tar stream of the current directory."""
    args = ["tar", "-czf", "-"]
    args.extend(f"--exclude={pattern}" for pattern in excludes)
    args.append(".")
    return args


def sync_to_remote(
    source: str,
    hostname: str,
    remote_path: str,
    excludes: Sequence[str],
    shell: Shell,
    dry_run: bool = False,
) -> None:
    """Sync a local directory to the remote with tar over ssh.

    Raises:
        TransportError: If tar or ssh cannot run or exits non-zero
    """
    create = tar_args(excludes)
    extract = shell_prefix(shell, remote_path, "tar -xzf -")

    if dry_run:
        click.echo(f"Would sync {source} to {hostname}:{remote_path}", err=True)
        click.echo(f"  {' '.join(create)}", err=True)
        click.echo(f'  | ssh {hostname} "{extract}"', err=True)
        return

    logger.info(f"Syncing {source} to {hostname}:{remote_path}")

    # COPYFILE_DISABLE keeps macOS tar from adding ._* AppleDouble files
    env = {**os.environ, "COPYFILE_DISABLE": "1"}
    try:
        tar = subprocess.Popen(create, cwd=source, env=env, stdout=subprocess.PIPE)
    except OSError as e:
        raise TransportError(f"Failed to spawn tar process: {e}", tool="tar") from e

    try:
        ssh = subprocess.Popen([SSH_EXECUTABLE, hostname, extract], stdin=tar.stdout)
    except OSError as e:
        tar.kill()
        tar.wait()
        raise TransportError(f"Failed to spawn SSH process: {e}", tool="ssh") from e
    finally:
        # ssh owns the read end now; tar gets SIGPIPE if ssh exits early
        tar.stdout.close()

    ssh_status = ssh.wait()
    tar_status = tar.wait()

    _check(tar_status, "tar")
    _check(ssh_status, "SSH/extract")


def to_cygwin_path(path: str) -> str:
    """Convert a Windows path (C:/foo or C:\\foo) to /cygdrive/c/foo.

    Example:
        >>> to_cygwin_path("C:/Users/dev")
        '/cygdrive/c/Users/dev'
        >>> to_cygwin_path("/home/dev")
        '/home/dev'
    """
    if len(path) >= 2 and path[1] == ":":
        drive = path[0].lower()
        rest = path[2:].replace("\\", "/")
        return f"/cygdrive/{drive}{rest}"
    return path


def rsync_args(
    source: str,
    hostname: str,
    remote_path: str,
    excludes: Sequence[str],
    shell: Shell,
    delete_excluded: bool = False,
    dry_run: bool = False,
    verbose: bool = False,
) -> list[str]:
    """Build the rsync command line for an incremental sync."""
    args = ["rsync", "-az", "--delete"]
    if delete_excluded:
        args.append("--delete-excluded")
    # Windows targets get DENY ACLs when permissions are preserved
    if shell in (Shell.POWERSHELL, Shell.CMD):
        args.append("--no-perms")
    if verbose:
        args.append("-v")
    if dry_run:
        args.append("--dry-run")
    args.extend(f"--exclude={pattern}" for pattern in excludes)

    # Trailing slash syncs the directory contents, not the directory itself
    args.append(source if source.endswith("/") else f"{source}/")
    args.append(f"{hostname}:{to_cygwin_path(remote_path)}")
    return args


def rsync_to_remote(
    source: str,
    hostname: str,
    remote_path: str,
    excludes: Sequence[str],
    shell: Shell,
    delete_excluded: bool = False,
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    """Sync a local directory to the remote with rsync.

    Files removed locally are deleted on the remote.
    """
    args = rsync_args(
        source, hostname, remote_path, excludes, shell, delete_excluded, dry_run, verbose
    )
    if dry_run:
        click.echo(f"Would rsync {args[-2]} to {args[-1]}", err=True)
    _check(_run(args, "rsync"), "rsync")


def upload_to_remote(
    local_path: str, hostname: str, remote_path: str, dry_run: bool = False
) -> None:
    """Upload a file or directory with scp."""
    dest = f"{hostname}:{remote_path}"
    if dry_run:
        click.echo(f"Would upload {local_path} to {dest}", err=True)
        return
    logger.info(f"Uploading {local_path} to {dest}")
    _check(_run(["scp", "-r", local_path, dest], "scp"), "scp")


def download_from_remote(
    hostname: str, remote_path: str, local_path: str, dry_run: bool = False
) -> None:
    """Download a file or directory with scp."""
    source = f"{hostname}:{remote_path}"
    if dry_run:
        click.echo(f"Would download {source} to {local_path}", err=True)
        return
    logger.info(f"Downloading {source} to {local_path}")
    _check(_run(["scp", "-r", source, local_path], "scp"), "scp")
