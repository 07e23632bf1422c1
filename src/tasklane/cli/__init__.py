"""
tasklane CLI - main application.

Registers the task commands on a single top-level Typer app and handles the
global options (``--debug``) and .env loading.
"""

import logging
import sys

import typer

from tasklane import __version__
from tasklane.cli import task
from tasklane.core.config.env import load_layered_env

app = typer.Typer(
    name="tasklane",
    help="Dependency-aware task tracking with batch reconciliation",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for CLI commands.

    Logs go to stderr so stdout stays valid JSON.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tasklane {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """
    tasklane - task store for agent workflows.

    Quick Start:
        tasklane split append --file tasks.json   # Submit a batch
        tasklane ready                            # What can be started
        tasklane begin <id>                       # Start a task
        tasklane verify <id> --score 90 --summary "..."
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()
    setup_logging(debug)
    ctx.obj = {"debug": debug}


app.command(name="split")(task.split)
app.command(name="list")(task.list_tasks)
app.command(name="show")(task.show)
app.command(name="search")(task.search)
app.command(name="begin")(task.begin)
app.command(name="verify")(task.verify)
app.command(name="update")(task.update)
app.command(name="ready")(task.ready)
app.command(name="counts")(task.counts)
app.command(name="backups")(task.backups)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main", "main"]
