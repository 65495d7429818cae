"""Command line interface for the SortRoot project."""

from __future__ import annotations

import difflib
import time
from pathlib import Path
from typing import Any

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from sortroot.config import ConfigError, ConfigManager, SortRootConfig, resolve_with_precedence
from sortroot.config.policy import validate_policy
from sortroot.config.resolver import set_dotted
from sortroot.coordinator import PipelineCoordinator
from sortroot.errors import PipelineBusyError, SortRootError, WatcherError
from sortroot.log import configure_logging
from sortroot.notifications import Notifier, NullNotifier
from sortroot.organization.models import PlanPreview, RunProgress, RunResult
from sortroot.state import JournalRepository, StateError
from sortroot.state.models import UndoResult
from sortroot.watch.service import WatcherStatus

console = Console()


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Report a failure and end the command.

    In JSON mode an ``{"error": {...}}`` payload goes to stdout and the
    process exits with status 1; otherwise the failure surfaces as a
    ``click.ClickException`` chained to ``original``.
    """

    if json_output:
        error: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            error["details"] = details
        console.print_json(data={"error": error})
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original
    raise click.ClickException(message) from original


def _error_code(exc: SortRootError) -> str:
    """Return the machine-readable code for a SortRoot failure."""
    if isinstance(exc, PipelineBusyError):
        return "pipeline_busy"
    if isinstance(exc, ConfigError):
        return "config_error"
    if isinstance(exc, StateError):
        return "state_error"
    if isinstance(exc, WatcherError):
        return "watch_error"
    return "sortroot_error"


_ALWAYS_SHOWN = frozenset({"summary", "warning", "error"})


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Print ``message`` unless the active output mode hides it.

    ``mode`` is one of ``detail``, ``summary``, ``warning`` or ``error``. Quiet
    mode keeps errors only; summary mode drops ``detail`` lines.
    """

    if quiet and mode != "error":
        return
    if summary_only and mode not in _ALWAYS_SHOWN:
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Render ``metrics`` as ``key=value`` pairs after the command name and root."""
    counts = ", ".join(f"{name}={count}" for name, count in metrics.items())
    return f"[green]{command} summary for {root}: {counts}.[/green]"


def _resolve_output_modes(
    ctx: click.Context,
    config: SortRootConfig,
    *,
    quiet: bool,
    summary_mode: bool,
    json_output: bool,
) -> tuple[bool, bool]:
    """Combine CLI flags with configured defaults into quiet/summary switches.

    Raises:
        click.ClickException: If the combination of modes is contradictory.
    """

    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


class ConsoleNotifier(Notifier):
    """Render coordinator notifications on the CLI console."""

    _MODES = {"error": "error", "warn": "warning", "warning": "warning"}

    def __init__(self, *, quiet: bool, summary_only: bool, show_progress: bool = False) -> None:
        self._quiet = quiet
        self._summary_only = summary_only
        self._show_progress = show_progress

    def progress(self, progress: RunProgress) -> None:
        if not self._show_progress:
            return
        self._emit(
            f"  {progress.current_path} -> {progress.dest_path}",
            mode="detail",
        )

    def log(self, level: str, message: str) -> None:
        mode = self._MODES.get(level.lower(), "detail")
        style = {"error": "red", "warning": "yellow"}.get(mode, "cyan")
        self._emit(f"[{style}]{message}[/{style}]", mode=mode)

    def run_complete(self, result: RunResult) -> None:
        if self._show_progress:
            self._emit(
                f"[green]Run {result.session_id}: moved={result.moved}, "
                f"skipped={result.skipped}, errors={result.errors}.[/green]",
                mode="summary",
            )

    def watcher_status(self, status: WatcherStatus) -> None:
        self._emit(f"[cyan]Watcher {status.state.value} for {status.root}.[/cyan]", mode="detail")

    def _emit(self, message: str, *, mode: str) -> None:
        _emit_message(message, mode=mode, quiet=self._quiet, summary_only=self._summary_only)


def _load_config(json_output: bool) -> tuple[ConfigManager, SortRootConfig]:
    """Load configuration and configure logging, mapping failures to CLI errors."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        config = manager.load()
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        raise  # pragma: no cover - _handle_cli_error always raises

    configure_logging(config.logging, manager.log_path)
    return manager, config


def _build_coordinator(
    manager: ConfigManager,
    config: SortRootConfig,
    notifier: Notifier,
) -> PipelineCoordinator:
    return PipelineCoordinator(
        config.policy,
        journal=JournalRepository(manager.journal_path),
        notifier=notifier,
        config_manager=manager,
        watch_settings=config.watch,
        undo_settings=config.undo,
    )


def _wait_for_interrupt() -> None:
    """Block the foreground thread until Ctrl+C."""
    while True:
        time.sleep(1.0)


def _plan_table(plan: PlanPreview) -> Table:
    table = Table(title="Planned moves")
    table.add_column("Source", overflow="fold")
    table.add_column("Destination", overflow="fold")
    table.add_column("Category")
    table.add_column("Conflict")
    for entry in plan.moves:
        table.add_row(
            entry.source_path,
            entry.destination_path,
            entry.category,
            "yes" if entry.collision_renamed else "",
        )
    return table


def _emit_skips(
    title: str,
    entries: list[tuple[str, str]],
    *,
    mode: str,
    quiet: bool,
    summary_only: bool,
) -> None:
    if not entries:
        return
    color = "red" if mode == "error" else "yellow"
    _emit_message(f"[{color}]{title}:[/{color}]", mode=mode, quiet=quiet, summary_only=summary_only)
    for path, reason in entries:
        _emit_message(f"  - {path}: {reason}", mode=mode, quiet=quiet, summary_only=summary_only)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="sortroot")
def cli() -> None:
    """SortRoot files everything dropped into one root folder by extension.

    Returns:
        None: This function is invoked for its side effects.
    """


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the plan as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def plan(ctx: click.Context, json_output: bool, summary_mode: bool, quiet: bool) -> None:
    """Preview the moves the next run would make without touching any file.

    Args:
        ctx: Click context used for parameter source inspection.
        json_output: If True, emit the plan as JSON.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.
    """

    manager, config = _load_config(json_output)
    quiet_enabled, summary_only = _resolve_output_modes(
        ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
    )
    coordinator = _build_coordinator(manager, config, NullNotifier())

    try:
        preview = coordinator.dry_run()
    except SortRootError as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=json_output, original=exc)
        return

    if json_output:
        console.print_json(data=preview.model_dump(mode="json"))
        return

    if preview.moves:
        _emit_message(
            _plan_table(preview), mode="detail", quiet=quiet_enabled, summary_only=summary_only
        )
    else:
        _emit_message(
            "[yellow]Nothing to sort.[/yellow]",
            mode="detail",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

    _emit_skips(
        "Skipped",
        [(skip.path, skip.reason) for skip in preview.skips],
        mode="detail",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )
    _emit_message(
        _format_summary_line(
            "Plan",
            config.policy.root,
            {
                "moves": preview.move_count,
                "skips": preview.skip_count,
                "conflicts": preview.potential_conflicts,
                "errors": preview.error_count,
            },
        ),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the run result as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def run(ctx: click.Context, json_output: bool, summary_mode: bool, quiet: bool) -> None:
    """Sort the root now: plan, move, clean up empty folders, and journal.

    Args:
        ctx: Click context used for parameter source inspection.
        json_output: If True, emit the run result as JSON.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.
    """

    manager, config = _load_config(json_output)
    quiet_enabled, summary_only = _resolve_output_modes(
        ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
    )
    notifier: Notifier = (
        NullNotifier()
        if json_output
        else ConsoleNotifier(quiet=quiet_enabled, summary_only=summary_only)
    )
    coordinator = _build_coordinator(manager, config, notifier)

    try:
        result = coordinator.run_now()
    except SortRootError as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=json_output, original=exc)
        return

    if json_output:
        console.print_json(data=result.model_dump(mode="json"))
        return

    _emit_skips(
        "Errors encountered",
        [(item.path, item.reason) for item in result.error_details],
        mode="error",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )
    _emit_message(
        _format_summary_line(
            "Run",
            config.policy.root,
            {
                "moved": result.moved,
                "skipped": result.skipped,
                "errors": result.errors,
                "folders_trashed": result.cleanup_trashed,
            },
        ),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the undo result as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def undo(ctx: click.Context, json_output: bool, summary_mode: bool, quiet: bool) -> None:
    """Restore the files moved by the most recent journaled run.

    Args:
        ctx: Click context used for parameter source inspection.
        json_output: If True, emit the undo result as JSON.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.
    """

    manager, config = _load_config(json_output)
    quiet_enabled, summary_only = _resolve_output_modes(
        ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
    )
    notifier: Notifier = (
        NullNotifier()
        if json_output
        else ConsoleNotifier(quiet=quiet_enabled, summary_only=summary_only)
    )
    coordinator = _build_coordinator(manager, config, notifier)

    try:
        result: UndoResult = coordinator.undo_last_run()
    except SortRootError as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=json_output, original=exc)
        return

    if json_output:
        console.print_json(data=result.model_dump(mode="json"))
        return

    if result.session_id is None:
        _emit_message(
            "[yellow]No journaled run to undo.[/yellow]",
            mode="warning",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
        return

    if result.details:
        table = Table(title=f"Undo of {result.session_id}")
        table.add_column("Status")
        table.add_column("Original", overflow="fold")
        table.add_column("Message", overflow="fold")
        for detail in result.details:
            table.add_row(detail.status, detail.source_path, detail.message)
        _emit_message(table, mode="detail", quiet=quiet_enabled, summary_only=summary_only)

    _emit_message(
        _format_summary_line(
            "Undo",
            config.policy.root,
            {
                "restored": result.restored,
                "skipped": result.skipped,
                "conflicts": result.conflicts,
                "missing": result.missing,
                "errors": result.errors,
            },
        ),
        mode="summary",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )


@cli.command()
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option("--json", "json_output", is_flag=True, help="Emit errors as JSON.")
@click.pass_context
def watch(ctx: click.Context, summary_mode: bool, quiet: bool, json_output: bool) -> None:
    """Watch the root and sort new arrivals after each quiet period.

    Args:
        ctx: Click context for parameter source inspection.
        summary_mode: When True, restrict output to summary/warning lines.
        quiet: When True, suppress non-error output entirely.
        json_output: When True, report startup failures as JSON payloads.
    """

    manager, config = _load_config(json_output)
    quiet_enabled, summary_only = _resolve_output_modes(
        ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
    )
    notifier: Notifier = (
        NullNotifier()
        if json_output
        else ConsoleNotifier(quiet=quiet_enabled, summary_only=summary_only, show_progress=True)
    )
    coordinator = _build_coordinator(manager, config, notifier)

    try:
        coordinator.start_watcher()
    except SortRootError as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=json_output, original=exc)
        return

    _emit_message(
        f"[cyan]Watching {config.policy.root}. Press Ctrl+C to stop.[/cyan]",
        mode="detail",
        quiet=quiet_enabled,
        summary_only=summary_only,
    )

    try:
        _wait_for_interrupt()
    except KeyboardInterrupt:
        _emit_message(
            "[yellow]Watch stopped by user request.[/yellow]",
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    finally:
        coordinator.stop_watcher()


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit status information as JSON.")
def status(json_output: bool) -> None:
    """Show the root, policy validity, and the last journaled run.

    Args:
        json_output: If True, emit status information as JSON.
    """

    manager, config = _load_config(json_output)
    coordinator = _build_coordinator(manager, config, NullNotifier())

    try:
        validation = coordinator.validate_policy()
        last_run = coordinator.journal.load_last_run()
    except SortRootError as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=json_output, original=exc)
        return

    watcher = coordinator.watcher_status()
    payload: dict[str, Any] = {
        "root": config.policy.root,
        "config_path": str(manager.config_path),
        "journal_path": str(manager.journal_path),
        "policy": validation.model_dump(mode="json"),
        "watcher": watcher.model_dump(mode="json"),
        "last_run": None,
    }
    if last_run is not None:
        payload["last_run"] = {
            "session_id": last_run.session_id,
            "created_at": last_run.created_at.isoformat(),
            "moves": len(last_run.moves),
        }

    if json_output:
        console.print_json(data=payload)
        return

    table = Table(title="SortRoot status", show_header=False)
    table.add_column("Field")
    table.add_column("Value", overflow="fold")
    table.add_row("Root", config.policy.root)
    table.add_row("Config", str(manager.config_path))
    table.add_row("Journal", str(manager.journal_path))
    table.add_row("Policy", "valid" if validation.valid else "invalid")
    table.add_row("Categories", str(len(config.policy.categories)))
    if last_run is not None:
        table.add_row(
            "Last run",
            f"{last_run.session_id} ({len(last_run.moves)} moves, {last_run.created_at.isoformat()})",
        )
    else:
        table.add_row("Last run", "none")
    console.print(table)


@cli.group()
def config() -> None:
    """Manage SortRoot configuration files and overrides.

    Returns:
        None: This function is invoked for its side effects.
    """


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        config = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(config.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        before = manager.read_text().splitlines()
        file_data = manager.load_file_overrides()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'watch.debounce_seconds'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        set_dotted(file_data, segments, parsed_value, source="config set")
        resolved = resolve_with_precedence(defaults=SortRootConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    validation = validate_policy(resolved.policy)
    if not validation.valid:
        raise click.ClickException("; ".join(validation.errors))

    try:
        manager.save(file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    after = manager.read_text().splitlines()

    # The timestamp line always changes; ignore it when deciding whether anything moved.
    if [line for line in before if not line.startswith("# Last updated")] == [
        line for line in after if not line.startswith("# Last updated")
    ]:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    diff = difflib.unified_diff(
        before,
        after,
        fromfile="config.yaml (before)",
        tofile="config.yaml (after)",
        lineterm="",
    )
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    for warning in validation.warnings:
        console.print(f"[yellow]{warning}[/yellow]")
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("validate")
@click.option("--json", "json_output", is_flag=True, help="Emit the validation result as JSON.")
def config_validate(json_output: bool) -> None:
    """Validate the effective policy and list errors and warnings.

    Args:
        json_output: If True, emit the validation result as JSON.
    """
    _, config = _load_config(json_output)
    result = validate_policy(config.policy)

    if json_output:
        console.print_json(data=result.model_dump(mode="json"))
    else:
        for error in result.errors:
            console.print(f"[red]error: {error}[/red]")
        for warning in result.warnings:
            console.print(f"[yellow]warning: {warning}[/yellow]")
        if result.valid:
            console.print("[green]Policy is valid.[/green]")

    if not result.valid:
        raise SystemExit(1)


@config.command("set-root")
@click.argument("path", type=click.Path(file_okay=False, path_type=str))
def config_set_root(path: str) -> None:
    """Point SortRoot at PATH and persist the change.

    Args:
        path: Directory to use as the root; created on the next run if missing.
    """
    manager, config = _load_config(False)
    coordinator = _build_coordinator(manager, config, NullNotifier())
    root = Path(path).expanduser().resolve()

    try:
        result = coordinator.set_root(root)
    except SortRootError as exc:
        _handle_cli_error(str(exc), code=_error_code(exc), json_output=False, original=exc)
        return

    for warning in result.warnings:
        console.print(f"[yellow]{warning}[/yellow]")
    console.print(f"[green]Root set to {root}.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point.

    Returns:
        None: This function is invoked for its side effects.
    """
    cli()


if __name__ == "__main__":
    main()
