"""Analytics commands: burndown, risk, gantt and free slots.

Each command reads a space snapshot from storage and renders the result
with rich, or as JSON with ``--json``.
"""

import json
from datetime import date
from typing import Any, Optional

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..config import get_config
from ..domain import TaskAppError
from ..services.burndown import compute_burndown
from ..services.gantt import build_task_tree
from ..services.risk import RiskStatus, calculate_risk_forecasts
from ..services.scheduling import compute_available_slots, parse_busy_periods
from ..storage import SpaceSnapshot, get_storage
from ..utils.datetime import parse_date, today_local


console = Console()

RISK_STYLES = {
    RiskStatus.ON_TRACK: "green",
    RiskStatus.AT_RISK: "yellow",
    RiskStatus.NEEDS_ATTENTION: "bold red",
}


class DateParam(click.ParamType):
    """``YYYY-MM-DD`` option value."""
    name = "date"

    def convert(self, value, param, ctx):
        if isinstance(value, date):
            return value
        try:
            return parse_date(value)
        except ValueError:
            self.fail(f"{value!r} is not a valid YYYY-MM-DD date", param, ctx)


DATE = DateParam()


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _load(space_id: str) -> SpaceSnapshot:
    try:
        return get_storage().load_space(space_id)
    except TaskAppError as e:
        raise click.ClickException(str(e))


def _resolve_today(today: Optional[date]) -> date:
    return today or today_local(get_config().utc_offset)


@click.command()
@click.argument("space_id")
@click.option("--milestone", "-m", "milestone_id", help="Milestone id (default: entire project)")
@click.option("--today", type=DATE, help="Reference day (default: today)")
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON")
def burndown(space_id: str, milestone_id: Optional[str], today: Optional[date], as_json: bool):
    """Show the burndown series for a milestone or the whole space."""
    config = get_config()
    snapshot = _load(space_id)

    try:
        data = compute_burndown(
            snapshot.tasks,
            snapshot.milestones,
            space_id,
            milestone_id=milestone_id,
            today=_resolve_today(today),
            default_span_days=config.default_burndown_days,
            utc_offset=config.utc_offset,
        )
    except TaskAppError as e:
        raise click.ClickException(str(e))

    if as_json:
        _echo_json(data.to_dict())
        return

    summary = data.summary
    console.print(Panel(
        f"[bold]{data.milestone_name}[/bold]  {summary.start_date} → {summary.end_date}\n"
        f"Total {summary.total}  Remaining {summary.remaining}  "
        f"Completed {summary.completed}  Added {summary.scope_added}",
        title=f"Burndown · {snapshot.space.name}",
        border_style="cyan",
    ))

    table = Table(show_header=True, header_style="bold")
    table.add_column("Date")
    table.add_column("Ideal", justify="right")
    table.add_column("Actual", justify="right")
    table.add_column("Added", justify="right")
    table.add_column("Done %", justify="right")
    for point in data.points:
        table.add_row(
            point.date.isoformat(),
            f"{point.ideal_remaining:g}",
            "-" if point.actual_remaining is None else str(point.actual_remaining),
            str(point.scope_added),
            "-" if point.completion_rate is None else f"{point.completion_rate:g}",
        )
    console.print(table)


@click.command()
@click.argument("space_id")
@click.option("--today", type=DATE, help="Reference day (default: today)")
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON")
def risk(space_id: str, today: Optional[date], as_json: bool):
    """Forecast delivery risk for every milestone in a space."""
    config = get_config()
    snapshot = _load(space_id)

    forecasts = calculate_risk_forecasts(
        snapshot.tasks,
        snapshot.milestones,
        today=_resolve_today(today),
        window_days=config.velocity_window_days,
        grace_days=config.at_risk_grace_days,
        insufficient_data_days=config.insufficient_data_days,
        utc_offset=config.utc_offset,
    )

    if as_json:
        _echo_json({milestone_id: a.to_dict() for milestone_id, a in forecasts.items()})
        return

    if not forecasts:
        console.print("[dim]No milestones in this space[/dim]")
        return

    table = Table(title=f"Risk · {snapshot.space.name}", show_header=True, header_style="bold")
    table.add_column("Milestone")
    table.add_column("Status")
    table.add_column("Remaining", justify="right")
    table.add_column("Velocity/day", justify="right")
    table.add_column("Projected")
    table.add_column("Client-blocked", justify="right")

    for milestone in snapshot.milestones:
        assessment = forecasts[milestone.id]
        status = assessment.status.value
        if assessment.insufficient_data:
            status += " (insufficient data)"
        table.add_row(
            escape(milestone.name),
            f"[{RISK_STYLES[assessment.status]}]{status}[/]",
            str(assessment.remaining_tasks),
            f"{assessment.velocity_per_day:.2f}",
            assessment.projected_completion_date.isoformat() if assessment.projected_completion_date else "-",
            str(assessment.client_blocked_tasks),
        )
    console.print(table)


@click.command()
@click.argument("space_id")
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON")
def gantt(space_id: str, as_json: bool):
    """Show tasks in gantt order, children indented under their parent."""
    snapshot = _load(space_id)
    rows = build_task_tree(snapshot.tasks)

    if as_json:
        _echo_json([node.to_dict() for node in rows])
        return

    child_ids = {child.id for node in rows for child in node.children}

    table = Table(title=f"Gantt · {snapshot.space.name}", show_header=True, header_style="bold")
    table.add_column("Task")
    table.add_column("Status")
    table.add_column("Start")
    table.add_column("Due")

    for node in rows:
        task = node.task
        start = node.summary_start if node.is_parent else task.start_date
        end = node.summary_end if node.is_parent else task.due_date
        title = escape(task.title or task.id)
        if node.is_parent:
            title = f"[bold]{title}[/bold]"
        elif task.id in child_ids:
            title = f"  └ {title}"
        table.add_row(
            title,
            task.status.value,
            start.isoformat() if start else "-",
            end.isoformat() if end else "-",
        )
    console.print(table)


@click.command()
@click.option("--start", "start_date", type=DATE, required=True, help="First day (YYYY-MM-DD)")
@click.option("--end", "end_date", type=DATE, required=True, help="Last day (YYYY-MM-DD)")
@click.option("--duration", "-d", type=int, default=60, show_default=True, help="Meeting length in minutes")
@click.option("--busy", "busy_file", type=click.Path(exists=True, dir_okay=False),
              help="YAML/JSON list of {start, end} busy periods")
@click.option("--step", type=int, default=30, show_default=True, help="Slot step in minutes")
@click.option("--limit", type=int, default=100, show_default=True, help="Maximum number of slots")
@click.option("--json", "as_json", is_flag=True, help="Output raw JSON")
def slots(start_date: date, end_date: date, duration: int, busy_file: Optional[str],
          step: int, limit: int, as_json: bool):
    """Suggest free weekday meeting slots within business hours."""
    busy = []
    if busy_file:
        with open(busy_file, "r", encoding="utf-8") as f:
            rows = yaml.safe_load(f) or []
        if not isinstance(rows, list):
            raise click.ClickException("Busy file must contain a list of {start, end} entries")
        busy = parse_busy_periods(rows)

    result = compute_available_slots(
        busy, start_date, end_date, duration,
        step_minutes=step,
        max_results=limit,
        utc_offset=get_config().utc_offset,
    )

    if as_json:
        _echo_json([slot.to_dict() for slot in result])
        return

    if not result:
        console.print("[yellow]No free slots in this range[/yellow]")
        return

    for slot in result:
        console.print(f"• {slot.label()}")
    console.print(f"\n[dim]{len(result)} slot(s)[/dim]")
