"""Command Line Interface for MedRegistry.

This module provides a Typer CLI for replaying registry command scripts and
inspecting configuration.

Security Impact:
    - Scripts are validated before any command runs
    - Every mutation in a replay is recorded in the audit trail
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from medregistry import __version__
from medregistry.infrastructure.config_manager import ConfigManager, RegistryConfig
from medregistry.infrastructure.logging_config import setup_logging
from medregistry.infrastructure.settings import Settings
from medregistry.main import create_registry, load_script, run_script

app = typer.Typer(
    name="medregistry",
    help="MedRegistry: permissioned registry of doctors, patients and medicines",
    add_completion=False
)
console = Console()


def _load_settings(config_file: Optional[Path]) -> Settings:
    """Build settings from a JSON file, or the environment when omitted."""
    try:
        manager = ConfigManager.from_file(str(config_file)) if config_file else ConfigManager.from_environment()
        return Settings(manager).load()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]✗[/red] Invalid configuration: {str(e)}")
        raise typer.Exit(code=2)


@app.command()
def replay(
    script: Path = typer.Argument(..., help="JSON script of registry commands", exists=True, dir_okay=False),
    admin: Optional[str] = typer.Option(None, "--admin", "-a", help="Initial administrator principal"),
    audit_file: Optional[Path] = typer.Option(None, "--audit-file", help="Write audit events as JSON lines"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Replay a command script against a fresh registry.

    Exits with code 1 if any command failed.

    Examples:
        medregistry replay scenario.json --admin 0xadmin
        medregistry replay scenario.json --audit-file audit.jsonl -v
    """
    settings = _load_settings(config_file)
    config = settings.registry_config
    overrides = {}
    if admin:
        overrides["admin"] = admin
    if audit_file:
        overrides["audit_file"] = str(audit_file)
    if verbose:
        overrides["log_level"] = "DEBUG"
    if overrides:
        try:
            config = RegistryConfig(**{**config.model_dump(), **overrides})
        except ValueError as e:
            console.print(f"[red]✗[/red] Invalid option: {str(e)}")
            raise typer.Exit(code=2)

    setup_logging(use_json=config.log_json, log_level=config.log_level)

    try:
        commands = load_script(script)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]✗[/red] Failed to load script: {str(e)}")
        raise typer.Exit(code=1)

    console.print(f"\n[bold blue]{settings.app_name} replay[/bold blue]")
    console.print(f"[dim]Script:[/dim] {script}")
    console.print(f"[dim]Administrator:[/dim] {config.admin}")
    console.print(f"[dim]Commands:[/dim] {len(commands)}\n")

    runtime = create_registry(config)
    try:
        results = run_script(runtime.service, commands)
    finally:
        runtime.close()

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Operation", style="cyan")
    table.add_column("Caller")
    table.add_column("Outcome")
    for index, (command, result) in enumerate(zip(commands, results)):
        if result.is_success():
            outcome = f"[green]✓[/green] {result.value!r}" if result.value is not None else "[green]✓[/green]"
        else:
            outcome = f"[red]✗ {result.error_type}[/red]: {result.error}"
        table.add_row(str(index), command.op, command.caller or "-", outcome)
    console.print(table)

    failures = sum(1 for result in results if result.is_failure())
    summary = Table(show_header=False, box=None, padding=(0, 2))
    summary.add_row("Succeeded:", f"[green]{len(results) - failures}[/green]")
    summary.add_row("Failed:", f"[red]{failures}[/red]" if failures else "0")
    summary.add_row("Audit events:", str(runtime.audit.get_log_count()))
    if config.audit_file:
        summary.add_row("Audit file:", config.audit_file)
    console.print(summary)

    if failures:
        console.print(f"\n[yellow]⚠[/yellow] Replay completed with {failures} failed command(s)")
        raise typer.Exit(code=1)
    console.print("\n[green]✓[/green] Replay completed successfully")


@app.command()
def info(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON configuration file"),
) -> None:
    """Display configuration."""
    settings = _load_settings(config_file)
    config = settings.registry_config
    console.print("[bold blue]System Information[/bold blue]\n")

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_row("Application:", f"{settings.app_name} {settings.app_version}")
    info_table.add_row("Administrator:", config.admin)
    info_table.add_row("Audit dispatch:", "Enabled" if config.audit_dispatch_enabled else "Disabled")
    info_table.add_row("Audit file:", config.audit_file or "-")
    info_table.add_row("Log level:", config.log_level)
    info_table.add_row("JSON logs:", "Yes" if config.log_json else "No")
    console.print(info_table)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version information")
) -> None:
    """MedRegistry: permissioned registry of doctors, patients and medicines."""
    if version:
        console.print(f"MedRegistry v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit()


if __name__ == "__main__":
    app()
