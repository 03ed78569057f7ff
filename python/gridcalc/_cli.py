"""Interactive console spreadsheet: ``gridcalc ROWS COLS``."""

from __future__ import annotations

import logging
import sys
import time

import typer

from gridcalc._config import GridConfig
from gridcalc._errors import GridError
from gridcalc._render import render_text
from gridcalc._spreadsheet import Spreadsheet

logger = logging.getLogger(__name__)

app = typer.Typer(help="Interactive terminal spreadsheet.", add_completion=False)

SCROLL_KEYS = ("w", "a", "s", "d")


class Session:
    """One console session: interprets command lines against a spreadsheet.

    Commands are ``<cell>=<expr>`` assignments, ``w``/``a``/``s``/``d`` page
    scrolling, ``scroll_to <cell>``, ``disable_output`` and ``enable_output``.
    """

    def __init__(self, sheet: Spreadsheet) -> None:
        self.sheet = sheet
        self.output_enabled = True

    def screen(self) -> str:
        return render_text(self.sheet.render())

    def handle(self, line: str) -> str | None:
        """Run one command. Returns an error message, or None on success."""
        command = line.strip()
        if command == "disable_output":
            self.output_enabled = False
            return None
        if command == "enable_output":
            self.output_enabled = True
            return None
        try:
            if command in SCROLL_KEYS:
                self.sheet.scroll(command)
            elif command.startswith("scroll_to "):
                self.sheet.scroll_to(command[len("scroll_to "):].strip())
            else:
                self.sheet.submit_formula(None, command)
        except GridError as e:
            return e.message
        return None


def _prompt(elapsed: float, error: str | None) -> str:
    status = "ok" if error is None else f"err: {error}"
    return f"[{elapsed:.1f}] ({status}) > "


@app.command()
def run(
    rows: int = typer.Argument(..., help="Number of rows."),
    cols: int = typer.Argument(..., help="Number of columns."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log evaluation details."),
) -> None:
    """Start an interactive session on an empty ROWS x COLS grid."""
    config = GridConfig.from_env()
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if not 1 <= rows <= config.max_rows:
        typer.echo(f"Error: Rows should be between 1 and {config.max_rows} inclusive")
        raise typer.Exit(1)
    if not 1 <= cols <= config.max_cols:
        typer.echo(f"Error: Cols should be between 1 and {config.max_cols} inclusive")
        raise typer.Exit(1)

    session = Session(Spreadsheet(rows, cols, config))
    logger.debug("Started %dx%d session", rows, cols)
    started = time.perf_counter()
    typer.echo(session.screen())
    typer.echo(_prompt(time.perf_counter() - started, None), nl=False)

    for line in sys.stdin:
        if line.strip().lower() == "q":
            break
        started = time.perf_counter()
        error = session.handle(line)
        elapsed = time.perf_counter() - started
        if session.output_enabled:
            typer.echo(session.screen())
        typer.echo(_prompt(elapsed, error), nl=False)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
