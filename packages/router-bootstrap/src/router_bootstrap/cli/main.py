"""Router bootstrap CLI - provision a router for an InnoDB cluster."""

import logging

import typer
from rich.logging import RichHandler

from router_bootstrap.cli.bootstrap import bootstrap, check

app = typer.Typer(
    name="routerctl",
    help="Bootstrap a MySQL Router deployment against an InnoDB cluster",
    no_args_is_help=True,
)


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
    )


app.command()(bootstrap)
app.command()(check)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
