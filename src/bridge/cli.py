"""Command-line interface for bridge."""

from pathlib import Path
from typing import Any

import click

from bridge import __version__
from bridge.commands.run import RunOverrides, run_command
from bridge.commands.ssh import open_shell
from bridge.commands.sync import sync_project
from bridge.config import CONFIG_FILENAME, BridgeConfig, find_and_load, generate_template, project_root
from bridge.env_loader import load_env_files
from bridge.exceptions import BridgeError, ConfigError
from bridge.logging import configure_logging, get_level_from_verbosity, get_logger
from bridge.transfer import download_from_remote, ensure_remote_dir, upload_to_remote
from bridge.types import DEFAULT_LOCK_NAME, HostProfile

logger = get_logger("bridge.cli")

MAX_EXIT_CODE = 255


class Project:
    """Loaded configuration shared by subcommands."""

    def __init__(self, config: BridgeConfig, config_path: Path) -> None:
        self.config = config
        self.config_path = config_path

    @property
    def root(self) -> Path:
        return project_root(self.config_path)

    def host(self, name: str | None) -> HostProfile:
        return self.config.get_host(name)

    def env_vars(self, host: HostProfile) -> dict[str, str]:
        return load_env_files(self.root, host.env_files)


def load_project() -> Project:
    config, config_path = find_and_load()
    logger.debug(f"Config loaded from: {config_path}")
    return Project(config, config_path)


def _do_sync(ctx: click.Context, auto_exclude: bool = True, delete_excluded: bool = False) -> None:
    project = load_project()
    host = project.host(ctx.obj["host"])
    sync_project(
        host,
        project.root,
        project.config.exclude,
        auto_exclude=auto_exclude,
        delete_excluded=delete_excluded,
        dry_run=ctx.obj["dry_run"],
        verbose=ctx.obj["verbose"] > 0,
    )


@click.group(invoke_without_command=True)
@click.option("--host", default=None, help="Override default host")
@click.option("--verbose", "-v", count=True, help="Detailed output (repeat for more)")
@click.option("--dry-run", is_flag=True, help="Preview without executing")
@click.option("--version", is_flag=True, help="Show version and exit")
@click.pass_context
def cli(ctx: click.Context, host: str | None, verbose: int, dry_run: bool, version: bool) -> None:
    """bridge - Remote development tool for syncing code and running commands."""
    if version:
        click.echo(f"bridge {__version__}")
        ctx.exit(0)
    configure_logging(get_level_from_verbosity(verbose))
    ctx.ensure_object(dict)
    ctx.obj.update(host=host, verbose=verbose, dry_run=dry_run)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command("run")
@click.argument("command")
@click.option("--sync", "-s", "do_sync", is_flag=True, help="Sync before running")
@click.option(
    "--reconnect-command",
    default=None,
    help="Command to run after reconnecting from unexpected SSH disconnect (overrides config)",
)
@click.option(
    "--reconnect-timeout",
    type=click.IntRange(min=0),
    default=None,
    help="Seconds to wait for reconnection (overrides config, default: 90)",
)
@click.option(
    "--lock",
    "lock_name",
    is_flag=False,
    flag_value=DEFAULT_LOCK_NAME,
    default=None,
    help="Acquire exclusive lock before running (optional lock name)",
)
@click.option(
    "--lock-timeout",
    type=click.IntRange(min=0),
    default=None,
    help="Seconds to wait for lock (default: 600)",
)
@click.pass_context
def run(
    ctx: click.Context,
    command: str,
    do_sync: bool,
    reconnect_command: str | None,
    reconnect_timeout: int | None,
    lock_name: str | None,
    lock_timeout: int | None,
) -> None:
    """Run COMMAND on the remote host.

    Exits with the remote command's exit status. If the SSH connection
    drops and a reconnect command is configured, waits for the host to
    come back and runs the reconnect command instead.

    Examples:
        bridge run "make test"

        bridge run --lock kernel --lock-timeout 60 "./build.sh"

        bridge run --reconnect-command "dmesg | tail" "./stress.sh"
    """
    overrides = RunOverrides(
        reconnect_command=reconnect_command,
        reconnect_timeout=reconnect_timeout,
        lock_name=lock_name,
        lock_timeout=lock_timeout,
    )
    try:
        if do_sync:
            _do_sync(ctx)
        project = load_project()
        host = project.host(ctx.obj["host"])
        exit_code = run_command(
            host,
            command,
            project.env_vars(host),
            overrides,
            dry_run=ctx.obj["dry_run"],
        )
    except BridgeError as e:
        raise click.ClickException(str(e))

    ctx.exit(min(exit_code, MAX_EXIT_CODE))


@cli.command("ssh")
@click.option("--sync", "-s", "do_sync", is_flag=True, help="Sync before connecting")
@click.pass_context
def ssh(ctx: click.Context, do_sync: bool) -> None:
    """Open an interactive shell in the remote project directory."""
    try:
        if do_sync:
            _do_sync(ctx)
        project = load_project()
        host = project.host(ctx.obj["host"])
        exit_code = open_shell(host, project.env_vars(host))
    except BridgeError as e:
        raise click.ClickException(str(e))

    ctx.exit(min(exit_code, MAX_EXIT_CODE))


@cli.command("sync")
@click.option(
    "--no-auto-exclude",
    is_flag=True,
    help="Disable auto-exclusion of Mac-specific files (.DS_Store, ._*)",
)
@click.option(
    "--delete-excluded", is_flag=True, help="Delete excluded files from remote (rsync only)"
)
@click.pass_context
def sync(ctx: click.Context, no_auto_exclude: bool, delete_excluded: bool) -> None:
    """Sync the project directory to the remote host."""
    try:
        _do_sync(ctx, auto_exclude=not no_auto_exclude, delete_excluded=delete_excluded)
    except BridgeError as e:
        raise click.ClickException(str(e))


def remote_download_path(host: HostProfile, name: str) -> str:
    """Resolve a remote file name; relative names are under the host's path.

    Example:
        >>> host = HostProfile(name="dev", hostname="dev", path="/srv/app")
        >>> remote_download_path(host, "logs/out.txt")
        '/srv/app/logs/out.txt'
        >>> remote_download_path(host, "~/notes.txt")
        '~/notes.txt'
    """
    if name.startswith(("/", "~")) or ":" in name:
        return name
    return f"{host.path}/{name}"


@cli.command("upload")
@click.argument("file")
@click.option("--dest", default=None, help="Remote destination filename")
@click.pass_context
def upload(ctx: click.Context, file: str, dest: str | None) -> None:
    """Upload FILE into the remote project directory."""
    dry_run = ctx.obj["dry_run"]
    local_path = Path(file).absolute()
    if not local_path.exists() and not dry_run:
        raise click.ClickException(f"Local file does not exist: {local_path}")

    try:
        project = load_project()
        host = project.host(ctx.obj["host"])
        remote_path = f"{host.path}/{dest or local_path.name}"
        logger.info(f"Uploading to host: {host.name} ({host.hostname})")
        logger.info(f"Local file: {local_path}")
        logger.info(f"Remote path: {remote_path}")

        if not dry_run:
            ensure_remote_dir(host.hostname, host.path, host.shell)
        upload_to_remote(str(local_path), host.hostname, remote_path, dry_run=dry_run)
    except BridgeError as e:
        raise click.ClickException(str(e))

    if not dry_run:
        click.echo(f"Upload complete: {file} -> {remote_path}")


@cli.command("download")
@click.argument("file")
@click.option("--dest", default=None, help="Local destination path")
@click.pass_context
def download(ctx: click.Context, file: str, dest: str | None) -> None:
    """Download FILE from the remote project directory."""
    dry_run = ctx.obj["dry_run"]
    try:
        project = load_project()
        host = project.host(ctx.obj["host"])
        remote_path = remote_download_path(host, file)
        local_path = dest or Path(file).name
        logger.info(f"Downloading from host: {host.name} ({host.hostname})")
        logger.info(f"Remote path: {remote_path}")
        logger.info(f"Local path: {local_path}")
        download_from_remote(host.hostname, remote_path, local_path, dry_run=dry_run)
    except BridgeError as e:
        raise click.ClickException(str(e))

    if not dry_run:
        click.echo(f"Download complete: {remote_path} -> {local_path}")


@cli.command("init")
def init() -> None:
    """Create bridge.yml in the current directory."""
    config_path = Path.cwd() / CONFIG_FILENAME
    if config_path.exists():
        raise click.ClickException(
            f"{CONFIG_FILENAME} already exists in this directory. "
            "Delete it first if you want to reinitialize."
        )

    logger.info(f"Creating {CONFIG_FILENAME} in {config_path.parent}")
    try:
        config_path.write_text(generate_template())
    except OSError as e:
        raise click.ClickException(f"Failed to write {config_path}: {e}")

    click.echo(f"Created {CONFIG_FILENAME}")
    click.echo("Edit it to configure your remote hosts.")


def format_hosts_text(config: BridgeConfig) -> str:
    """Format configured hosts as human-readable text."""
    if not config.hosts:
        return f"No hosts configured.\nEdit {CONFIG_FILENAME} to add hosts."

    lines: list[str] = []
    for name, host in config.hosts.items():
        marker = " (default)" if name == config.default_host else ""
        lines.append(f"{name}{marker}")
        lines.append(f"  hostname: {host.hostname}")
        lines.append(f"  path: {host.path}")
        lines.append(f"  shell: {host.shell}")
        lines.append("")
    return "\n".join(lines)


@cli.command("hosts")
def hosts() -> None:
    """List configured hosts."""
    try:
        project = load_project()
    except ConfigError as e:
        raise click.ClickException(str(e))
    click.echo(format_hosts_text(project.config))


def main(argv: list[str] | None = None) -> Any:
    """Console script entry point."""
    return cli(args=argv, obj={})
