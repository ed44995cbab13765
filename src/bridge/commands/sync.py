"""The ``sync`` operation: mirror the project directory to a host."""

import logging
from pathlib import Path
from typing import Sequence

from ..config import AUTO_EXCLUDES
from ..transfer import ensure_remote_dir, rsync_to_remote, sync_to_remote
from ..types import HostProfile, SyncMethod

logger = logging.getLogger(__name__)


def sync_excludes(excludes: Sequence[str], auto_exclude: bool = True) -> list[str]:
    """Combine configured excludes with the automatic Mac-specific ones.

    Example:
        >>> sync_excludes([".git"])
        ['.DS_Store', '._*', '.git']
        >>> sync_excludes([".git"], auto_exclude=False)
        ['.git']
    """
    if not auto_exclude:
        return list(excludes)
    return [*AUTO_EXCLUDES, *(p for p in excludes if p not in AUTO_EXCLUDES)]


def sync_project(
    host: HostProfile,
    source: Path,
    excludes: Sequence[str],
    auto_exclude: bool = True,
    delete_excluded: bool = False,
    dry_run: bool = False,
    verbose: bool = False,
) -> None:
    """Sync the project directory at source to the host's remote path.

    Raises:
        TransportError: If any transfer step fails
    """
    patterns = sync_excludes(excludes, auto_exclude)
    logger.info(f"Syncing to {host.name} ({host.hostname}) using {host.sync_method}")
    logger.debug(f"Excludes: {', '.join(patterns)}")

    # rsync creates the remote directory itself
    if not dry_run and host.sync_method is SyncMethod.TAR:
        ensure_remote_dir(host.hostname, host.path, host.shell)

    if host.sync_method is SyncMethod.RSYNC:
        rsync_to_remote(
            str(source),
            host.hostname,
            host.path,
            patterns,
            host.shell,
            delete_excluded=delete_excluded,
            dry_run=dry_run,
            verbose=verbose,
        )
    else:
        if delete_excluded:
            logger.warning("--delete-excluded only applies to rsync; ignoring")
        sync_to_remote(str(source), host.hostname, host.path, patterns, host.shell, dry_run)
