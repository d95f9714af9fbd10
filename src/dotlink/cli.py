"""Command-line interface for dotlink."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Iterable

import tomli_w
import typer
from rich.console import Console
from rich.table import Table

from .config import DEFAULT_CONFIG_FILENAME, Config, ConfigError, load_config
from .hooks import DeployStage, HookError, HookRunner
from .layout import DotlinkError, NoManagedTreeError, UnknownGroupError
from .logger import setup_logging
from .manager import DotlinkManager
from .models import GroupState, LinkAction, LinkResult, PushAction, PushResult, StatusReport

app = typer.Typer(help="Group-based dotfiles symlink manager")
console = Console()

CONFIG_OPTION_HELP = "Path to dotlink.toml"

_ACTION_STYLES = {
    LinkAction.LINKED: "green",
    LinkAction.UNLINKED: "green",
    LinkAction.REMOVED: "green",
    LinkAction.ADOPTED: "cyan",
    LinkAction.REPLACED: "cyan",
    LinkAction.ALREADY_EXISTS: "yellow",
    LinkAction.PROTECTED: "yellow",
    LinkAction.SKIPPED: "white",
    LinkAction.UNSUPPORTED: "white",
    LinkAction.MISSING_GROUP: "red",
    LinkAction.FAILED: "red",
}


def _load_manager(config: Path | None) -> DotlinkManager:
    config_obj = load_config(config)
    return DotlinkManager(config_obj)


def _handle_error(exc: Exception) -> None:
    if isinstance(exc, PermissionError):
        console.print("[red]Permission denied.[/red] Re-run the command with elevated privileges (e.g. `sudo`).")
        raise typer.Exit(code=1)
    if isinstance(exc, ConfigError):
        message = str(exc)
        console.print(f"[red]{message}[/red]")
        if "Expected to find" in message:
            console.print(
                "[yellow]Make sure you pointed to the directory containing the config file, or to the file itself.[/yellow]"
            )
        raise typer.Exit(code=1)
    if isinstance(exc, DotlinkError):
        console.print(f"[red]{exc}[/red]", highlight=False)
        if isinstance(exc, NoManagedTreeError):
            console.print("[yellow]Use 'dotlink init' to create the dotfiles directory.[/yellow]")
        elif isinstance(exc, UnknownGroupError):
            console.print("[yellow]Groups are the directories directly under Configs (or Hooks for 'set').[/yellow]")
        raise typer.Exit(code=exc.exit_code)
    raise exc


def _print_warnings(manager: DotlinkManager) -> None:
    for message in manager.pull_warnings():
        console.print(f"[yellow]warning:[/yellow] {message}", highlight=False)


def _format_link_results(results: Iterable[LinkResult]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Group")
    table.add_column("Action")
    table.add_column("Target", overflow="fold")
    table.add_column("Details", overflow="fold")

    for result in results:
        style = _ACTION_STYLES.get(result.action, "white")
        path = result.target or result.source
        table.add_row(
            result.group,
            f"[{style}]{result.action.value}[/{style}]",
            str(path) if path is not None else "",
            result.details or "",
        )

    console.print(table)


def _report_link_results(results: list[LinkResult]) -> None:
    if not results:
        console.print("[yellow]Nothing to do.[/yellow]")
        return

    _format_link_results(results)
    if any(
        result.action is LinkAction.ALREADY_EXISTS and result.details != "Already linked" for result in results
    ):
        console.print(
            "[yellow]Some targets are occupied. Re-run with --force to replace them or --adopt to keep their content.[/yellow]"
        )
    if any(result.action is LinkAction.FAILED for result in results):
        raise typer.Exit(code=1)


def _format_status(report: StatusReport) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Group")
    table.add_column("State")
    table.add_column("Variants", overflow="fold")

    status_styles = {
        GroupState.LINKED: "green",
        GroupState.PENDING: "yellow",
        GroupState.UNSUPPORTED: "white",
        GroupState.MISSING: "red",
    }

    for entry in report.entries:
        style = status_styles.get(entry.state, "white")
        table.add_row(
            entry.group,
            f"[{style}]{entry.state.value}[/{style}]",
            ", ".join(entry.variants),
        )

    console.print(table)

    if not report.conflicts:
        return

    conflicts = Table(show_header=True, header_style="bold magenta", title="Conflicting Dotfiles")
    conflicts.add_column("Group")
    conflicts.add_column("Target", overflow="fold")
    conflicts.add_column("Reason")
    for conflict in report.conflicts:
        conflicts.add_row(conflict.group, str(conflict.target), conflict.kind.value)
    console.print(conflicts)


def _format_push_results(results: Iterable[PushResult]) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Group")
    table.add_column("Source", overflow="fold")
    table.add_column("Action")

    for result in results:
        table.add_row(result.group, str(result.source), result.action.value)

    console.print(table)


def _render_init_config(dotfiles_dir: Path) -> str:
    data = {
        "settings": {"dotfiles_dir": str(dotfiles_dir)},
        "groups": {"exclude": []},
    }

    buffer = io.StringIO()
    buffer.write("# dotlink configuration\n\n")
    buffer.write(tomli_w.dumps(data))
    return buffer.getvalue()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging on stderr"),
) -> None:
    """Manage dotfiles as groups of symlinks."""

    setup_logging(verbose)


@app.command()
def init(
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    dotfiles_dir: Path | None = typer.Option(
        None,
        "--dotfiles-dir",
        "-d",
        help="Create the dotfiles directory here instead of the configured location",
    ),
    write_config: Path | None = typer.Option(
        None,
        "--write-config",
        help="Also write a starter dotlink.toml (file or directory) pointing at the dotfiles directory",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file"),
) -> None:
    """Create the Configs, Hooks and Secrets directories."""

    try:
        config_obj = load_config(config)
        if dotfiles_dir is not None:
            settings = config_obj.settings.model_copy(update={"dotfiles_dir": dotfiles_dir.expanduser().absolute()})
            config_obj = Config(config_path=config_obj.config_path, settings=settings, exclude=config_obj.exclude)

        manager = DotlinkManager(config_obj)
        created = manager.initialize()
        console.print(f"[green]A dotfiles directory has been created on '{created}'.[/green]", highlight=False)

        if write_config is not None:
            config_path = write_config.expanduser()
            if config_path.is_dir():
                config_path = config_path / DEFAULT_CONFIG_FILENAME
            if config_path.exists() and not force:
                console.print(f"[red]Configuration '{config_path}' already exists. Use --force to overwrite.[/red]")
                raise typer.Exit(code=1)
            config_path.parent.mkdir(parents=True, exist_ok=True)
            config_path.write_text(_render_init_config(created))
            console.print(f"[green]Created '{config_path}'.[/green]", highlight=False)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def status(
    groups: list[str] = typer.Argument(None, help="Groups to inspect (default: all)"),
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Show which groups are linked, pending or conflicting."""

    try:
        manager = _load_manager(config)
        if not groups and manager.snapshot.is_empty():
            console.print(
                "[yellow]To get started: add dotfiles using 'dotlink push' or add them manually to dotfiles/Configs.[/yellow]"
            )
            raise typer.Exit(code=1)

        report = manager.status(groups or None)
        _format_status(report)
        _print_warnings(manager)
        if not report.healthy:
            console.print(
                "[yellow]Some groups are not fully linked. Run 'dotlink add <group>' to link them, "
                "or 'dotlink status <group>' for details.[/yellow]"
            )
            raise typer.Exit(code=1)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def add(
    groups: list[str] = typer.Argument(..., help="Groups to link ('*' for every pending group)"),
    exclude: list[str] = typer.Option(None, "--exclude", "-e", help="Groups to leave out"),
    force: bool = typer.Option(False, "--force", "-f", help="Delete conflicting targets before linking"),
    adopt: bool = typer.Option(
        False,
        "--adopt",
        "-a",
        help="Move conflicting targets into the dotfiles directory before linking",
    ),
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Symlink groups into the home directory."""

    try:
        manager = _load_manager(config)
        results = manager.link(groups, exclude or (), force=force, adopt=adopt)
        _print_warnings(manager)
        _report_link_results(results)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def rm(
    groups: list[str] = typer.Argument(..., help="Groups to unlink ('*' for every linked group)"),
    exclude: list[str] = typer.Option(None, "--exclude", "-e", help="Groups to leave out"),
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Remove the symlinks a group owns."""

    try:
        manager = _load_manager(config)
        results = manager.unlink(groups, exclude or ())
        _print_warnings(manager)
        _report_link_results(results)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command(name="set")
def set_(
    groups: list[str] = typer.Argument(..., help="Groups to deploy ('*' for every group)"),
    exclude: list[str] = typer.Option(None, "--exclude", "-e", help="Groups to leave out"),
    force: bool = typer.Option(False, "--force", "-f", help="Delete conflicting targets before linking"),
    adopt: bool = typer.Option(False, "--adopt", "-a", help="Move conflicting targets into the dotfiles directory"),
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Run pre hooks, link, then run post hooks for groups."""

    def announce(group: str, stage: DeployStage) -> None:
        labels = {
            DeployStage.PRE_HOOK: "Running prehooks for",
            DeployStage.SYMLINK: "Symlinking group",
            DeployStage.POST_HOOK: "Running posthooks for",
        }
        console.print(f"[bold]{labels[stage]}[/bold] [yellow]{group}[/yellow]")

    try:
        manager = _load_manager(config)
        runner = HookRunner(manager)
        stages = runner.deploy(groups, exclude or (), force=force, adopt=adopt, on_stage=announce)
        _print_warnings(manager)
        links = [link for stage in stages for link in stage.links]
        _report_link_results(links)
    except HookError as exc:
        console.print(f"[red]Failed to hook:[/red] {exc}", highlight=False)
        raise typer.Exit(code=exc.exit_code)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def push(
    group: str = typer.Argument(..., help="Group to copy the files into"),
    files: list[str] = typer.Argument(..., help="Files or directories under the home directory"),
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Copy files from the home directory into a group."""

    try:
        manager = _load_manager(config)
        results = manager.push(group, files)
        _format_push_results(results)
        if any(result.action in {PushAction.MISSING, PushAction.OUTSIDE_HOME} for result in results):
            raise typer.Exit(code=1)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def pop(
    groups: list[str] = typer.Argument(..., help="Groups to delete from Configs"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Unlink groups and delete them from the dotfiles directory."""

    try:
        manager = _load_manager(config)
        console.print("The following groups will be removed:")
        for group in groups:
            console.print(f"\t{group}", highlight=False)
        if not yes:
            typer.confirm("Proceed?", abort=True)
        results = manager.pop(groups)
        _report_link_results(results)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command()
def groupis(
    files: list[str] = typer.Argument(..., help="Files to look up"),
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Print the group each file belongs to."""

    try:
        manager = _load_manager(config)
        unknown = False
        for raw in files:
            path = Path(raw)
            if not (path.exists() or path.is_symlink()):
                console.print(f"[red]{raw} does not exist.[/red]", highlight=False)
                unknown = True
                continue
            group = manager.which_group(path)
            if group is None:
                console.print(f"[yellow]{raw} is not a dotlink dotfile.[/yellow]", highlight=False)
                unknown = True
                continue
            console.print(group, highlight=False)
        if unknown:
            raise typer.Exit(code=1)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command(name="from-stow")
def from_stow(
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Move GNU Stow package directories into Configs."""

    try:
        manager = _load_manager(config)
        moved = manager.from_stow()
        for destination in moved:
            console.print(f"[green]Moved '{destination.name}' into Configs.[/green]", highlight=False)
        if not moved:
            console.print("[yellow]No stow packages found.[/yellow]")
        _print_warnings(manager)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command(name="ls-hooks")
def ls_hooks(
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """List groups with hooks."""

    try:
        manager = _load_manager(config)
        rows = manager.hook_groups()
        if not rows:
            console.print("No hooks have been set up yet.")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Group")
        table.add_column("Prehook", justify="center")
        table.add_column("Posthook", justify="center")
        for group, has_pre, has_post in rows:
            table.add_row(group, "✓" if has_pre else "✗", "✓" if has_post else "✗")
        console.print(table)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


@app.command(name="ls-secrets")
def ls_secrets(
    config: Path | None = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """List groups with secrets."""

    try:
        manager = _load_manager(config)
        for group in manager.secret_groups():
            console.print(group, highlight=False)
    except Exception as exc:  # noqa: BLE001
        _handle_error(exc)


def run() -> None:
    """Entry point used for console_script bindings."""

    app()
