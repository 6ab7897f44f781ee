"""Top-level click group for TaskApp."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console

from ..config import get_config, load_config
from .analytics import burndown, gantt, risk, slots
from .web import web


console = Console()


@click.group()
@click.option("--config", type=click.Path(), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx, config, verbose):
    """TaskApp - burndown, risk and gantt analytics for task spaces."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        if config:
            load_config(Path(config))
        else:
            get_config()
    except Exception as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)


main.add_command(burndown)
main.add_command(risk)
main.add_command(gantt)
main.add_command(slots)
main.add_command(web)
