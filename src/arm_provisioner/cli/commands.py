"""CLI command implementations."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Literal

import typer

from arm_provisioner.cli import app
from arm_provisioner.cli.errors import handle_error

if TYPE_CHECKING:
    from arm_provisioner.config.schema import Config
    from arm_provisioner.engine.types import ApplyResult, Plan

DEFAULT_CONFIG = Path("arm-provisioner.yaml")

ConfigPath = Annotated[
    Path,
    typer.Option("--config", "-c", help="Path to the configuration file."),
]

NoColor = Annotated[
    bool,
    typer.Option("--no-color", help="Disable colored output."),
]

AutoApprove = Annotated[
    bool,
    typer.Option("--auto-approve", help="Skip interactive approval."),
]

NoRefresh = Annotated[
    bool,
    typer.Option("--no-refresh", help="Skip refreshing state from Azure."),
]


def _use_color(no_color: bool) -> bool:
    """Determine whether to use color output."""
    return not (no_color or os.environ.get("NO_COLOR"))


def _apply_with_progress(plan_obj: Plan, cfg: Config, *, color: bool) -> ApplyResult:
    """Apply a plan with a Rich progress bar and per-resource status lines."""
    from rich.console import Console
    from rich.progress import (
        BarColumn,
        Progress,
        SpinnerColumn,
        TaskProgressColumn,
        TextColumn,
        TimeElapsedColumn,
    )

    from arm_provisioner.cli.formatting import _ACTION_STYLES
    from arm_provisioner.config import apply
    from arm_provisioner.engine.types import Action, ResourceChange

    console = Console(no_color=not color)
    actionable = [c for c in plan_obj.changes if c.action != Action.NOOP]

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Applying", total=len(actionable))

        def on_progress(change: ResourceChange, event: Literal["start", "done"]) -> None:
            s = _ACTION_STYLES[change.action.value]
            if event == "start":
                progress.update(task, description=f"{change.address}: {s.progress_verb}...")
            elif event == "done":
                progress.console.print(f"  {change.address}: {s.done_verb}")
                progress.advance(task)

        return apply(plan_obj, cfg, progress=on_progress)


def _confirm_and_apply(
    plan_obj: Plan,
    cfg: Config,
    *,
    color: bool,
    auto_approve: bool,
    confirm_msg: str,
    empty_msg: str,
) -> None:
    """Shared flow: show plan -> confirm -> apply with progress -> print summary.

    Exits with code 0 if no actionable changes.
    """
    from arm_provisioner.cli.formatting import (
        format_apply_summary,
        format_plan,
        format_plan_summary,
        has_actionable_changes,
    )

    if not has_actionable_changes(plan_obj):
        typer.echo(empty_msg)
        raise typer.Exit(0)

    typer.echo(format_plan(plan_obj, color=color))
    typer.echo()
    typer.echo(format_plan_summary(plan_obj.summary(), color=color))
    typer.echo()

    if not auto_approve:
        try:
            typer.confirm(confirm_msg, abort=True)
        except typer.Abort as e:
            typer.echo("Apply canceled.", err=True)
            raise typer.Exit(1) from e

    try:
        result = _apply_with_progress(plan_obj, cfg, color=color)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo()
    typer.echo(format_apply_summary(result.summary(), color=color))


@app.command()
def plan(
    config: ConfigPath = DEFAULT_CONFIG,
    out: Annotated[
        Path | None,
        typer.Option("--out", "-o", help="Save plan to file."),
    ] = None,
    no_color: NoColor = False,
    no_refresh: NoRefresh = False,
) -> None:
    """Show changes required by the current configuration."""
    from arm_provisioner.cli.formatting import (
        format_plan,
        format_plan_summary,
        has_actionable_changes,
    )
    from arm_provisioner.config import load
    from arm_provisioner.config import plan as plan_fn

    color = _use_color(no_color)
    try:
        cfg = load(config)
        plan_obj = plan_fn(cfg, refresh=not no_refresh)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(format_plan(plan_obj, color=color))
    typer.echo()
    typer.echo(format_plan_summary(plan_obj.summary(), color=color))

    if out is not None:
        plan_obj.save(out)
        typer.echo(f"\nPlan saved to {out}")

    if has_actionable_changes(plan_obj):
        raise typer.Exit(2)


@app.command(name="apply")
def apply_cmd(
    plan_file: Annotated[
        Path | None,
        typer.Argument(help="Saved plan file to apply."),
    ] = None,
    config: ConfigPath = DEFAULT_CONFIG,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
    no_refresh: NoRefresh = False,
) -> None:
    """Apply the changes required by the current configuration."""
    from arm_provisioner.config import load
    from arm_provisioner.config import plan as plan_fn
    from arm_provisioner.engine.types import Plan

    color = _use_color(no_color)
    try:
        cfg = load(config)
        plan_obj = (
            Plan.load(plan_file) if plan_file is not None else plan_fn(cfg, refresh=not no_refresh)
        )
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    _confirm_and_apply(
        plan_obj,
        cfg,
        color=color,
        auto_approve=auto_approve,
        confirm_msg="Do you want to apply these changes?",
        empty_msg="No changes. Resources are up-to-date.",
    )


@app.command()
def destroy(
    config: ConfigPath = DEFAULT_CONFIG,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
) -> None:
    """Destroy all managed resources."""
    from arm_provisioner.config import load
    from arm_provisioner.config import plan as plan_fn

    color = _use_color(no_color)
    try:
        cfg = load(config)
        plan_obj = plan_fn(cfg, destroy=True)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    _confirm_and_apply(
        plan_obj,
        cfg,
        color=color,
        auto_approve=auto_approve,
        confirm_msg="Do you really want to destroy all resources?",
        empty_msg="No resources to destroy.",
    )


@app.command(name="refresh")
def refresh_cmd(
    config: ConfigPath = DEFAULT_CONFIG,
    auto_approve: AutoApprove = False,
    no_color: NoColor = False,
) -> None:
    """Refresh state from Azure."""
    from arm_provisioner.cli.formatting import (
        changes_summary,
        format_changes,
        format_plan_summary,
    )
    from arm_provisioner.config import load, save_state
    from arm_provisioner.config import refresh as refresh_fn

    color = _use_color(no_color)
    try:
        cfg = load(config)
        changes, state = refresh_fn(cfg)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    if not changes:
        typer.echo("No changes. State is up-to-date with Azure.")
        raise typer.Exit(0)

    typer.echo(format_changes(changes, color=color))
    typer.echo()
    typer.echo(format_plan_summary(changes_summary(changes), color=color, header="Refresh"))
    typer.echo()

    if not auto_approve:
        try:
            typer.confirm("Do you want to update the state file?", abort=True)
        except typer.Abort as e:
            typer.echo("Refresh canceled.", err=True)
            raise typer.Exit(1) from e

    try:
        save_state(cfg, state)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc
    count = len(state.resources)
    typer.echo(f"State refreshed. {count} resource{'s' if count != 1 else ''} tracked.")


@app.command()
def drift(
    config: ConfigPath = DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """Show drift between state and live Azure resources."""
    from arm_provisioner.cli.formatting import format_changes
    from arm_provisioner.config import drift as drift_fn
    from arm_provisioner.config import load

    color = _use_color(no_color)
    try:
        cfg = load(config)
        changes = drift_fn(cfg)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    if not changes:
        typer.echo("No drift detected. State is up-to-date with Azure.")
        raise typer.Exit(0)

    typer.echo("Drift detected:\n")
    typer.echo(format_changes(changes, color=color))


@app.command(name="import")
def import_cmd(
    address: Annotated[
        str,
        typer.Argument(help="Configured address, e.g. azurerm_resource_group.main."),
    ],
    resource_id: Annotated[str, typer.Argument(help="ARM ID of the existing resource.")],
    config: ConfigPath = DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """Bring an existing Azure resource under management."""
    from arm_provisioner.cli.formatting import styler
    from arm_provisioner.config import import_resource, load

    color = _use_color(no_color)
    try:
        cfg = load(config)
        inst = import_resource(cfg, address, resource_id)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(styler(color)(f"Imported {inst.resource_id} as {inst.address}.", fg="green"))


@app.command()
def validate(
    config: ConfigPath = DEFAULT_CONFIG,
    no_color: NoColor = False,
) -> None:
    """Validate the configuration file."""
    from arm_provisioner.cli.formatting import styler
    from arm_provisioner.config import load
    from arm_provisioner.config import plan as plan_fn

    color = _use_color(no_color)
    try:
        cfg = load(config)
        plan_fn(cfg, refresh=False)
    except Exception as exc:
        raise typer.Exit(handle_error(exc, color=color)) from exc

    typer.echo(styler(color)("Configuration is valid.", fg="green"))
