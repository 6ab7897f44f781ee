"""
Web server CLI commands for TaskApp.
"""

import click
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from ..config import get_config


console = Console()


@click.group()
def web():
    """Web API server commands."""
    pass


@web.command()
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind the server to",
    show_default=True
)
@click.option(
    "--port",
    default=8000,
    type=int,
    help="Port to bind the server to",
    show_default=True
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug mode with auto-reload"
)
def start(host: str, port: int, debug: bool):
    """Start the TaskApp API server."""
    from ..web.server import start_server

    content = Text()
    content.append("Server will start at: ", style="white")
    content.append(f"http://{host}:{port}", style="bold green")
    content.append(f"\nSpaces directory: {get_config().get_spaces_dir()}", style="white")
    if debug:
        content.append("\nDebug mode: ", style="yellow")
        content.append("ENABLED", style="bold red")

    console.print(Panel(content, title=Text("TaskApp API", style="bold cyan"), border_style="cyan", padding=(1, 2)))
    console.print("Press Ctrl+C to stop the server", style="dim")

    try:
        start_server(host=host, port=port, debug=debug)
    except KeyboardInterrupt:
        console.print("Server stopped", style="yellow")
    except Exception as e:
        raise click.ClickException(f"Failed to start server: {e}")


@web.command()
def info():
    """Show the API endpoints."""
    info_text = Text()
    info_text.append("API Endpoints:\n", style="bold yellow")
    info_text.append("• GET  /health\n")
    info_text.append("• GET  /api/burndown?spaceId=&milestoneId=\n")
    info_text.append("• GET  /api/risk?spaceId=\n")
    info_text.append("• GET  /api/gantt?spaceId=\n")
    info_text.append("• POST /api/notify\n")
    info_text.append("• POST /api/scheduling/slots\n")
    info_text.append("• POST /api/auth/signout\n\n")
    info_text.append("All /api routes need an Authorization: Bearer <jwt> header.\n")

    console.print(Panel(info_text, title="Web Server Information", border_style="cyan", padding=(1, 2)))


@web.command()
@click.argument("user_id")
@click.option("--email", help="Email claim")
@click.option("--name", help="Display name claim")
@click.option("--minutes", type=int, default=60, show_default=True, help="Token lifetime")
def token(user_id: str, email: str, name: str, minutes: int):
    """Issue an access token for local testing."""
    from datetime import timedelta

    from ..web.auth import create_access_token

    claims = {"sub": user_id}
    if email:
        claims["email"] = email
    if name:
        claims["name"] = name
    click.echo(create_access_token(claims, get_config(), timedelta(minutes=minutes)))
