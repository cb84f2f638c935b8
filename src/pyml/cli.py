"""Command-line interface for PyML."""

import logging
import sys
import types
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from pyml.config import InstrumentMode, PymlSettings
from pyml.core.markup_transformer import transform
from pyml.core.module_loader import LoadInterceptor, read_source
from pyml.core.registry import ExtensionRegistry
from pyml.coverage.accumulator import CoverageAccumulator
from pyml.coverage.instrumenter import CoverageInstrumenter
from pyml.coverage.report import render_coverage_table
from pyml.version import __version__


logger = logging.getLogger(__name__)


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _syntax_error(exc: SyntaxError) -> click.ClickException:
    return click.ClickException(f"{exc.filename}:{exc.lineno}:{exc.offset or 0}: {exc.msg}")


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug)")
@click.version_option(__version__, prog_name="pyml")
def main(verbose: int) -> None:
    """PyML - compile markup-flavoured Python and measure its coverage."""
    _configure_logging(verbose)


@main.command("transform")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
def transform_command(source: str) -> None:
    """Print the Python compiled from a .pyml SOURCE file."""
    try:
        code = transform(read_source(source), source)
    except SyntaxError as exc:
        raise _syntax_error(exc) from exc
    click.echo(code, nl=False)


@main.command("run", context_settings={"ignore_unknown_options": True})
@click.argument("script", type=click.Path(exists=True, dir_okay=False))
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.option(
    "--coverage/--no-coverage",
    default=None,
    help="Instrument loaded modules (defaults to PYML_INSTRUMENT)",
)
@click.option("--json", "as_json", is_flag=True, help="Print the coverage summary as JSON")
def run_command(script: str, args: tuple[str, ...], coverage: bool | None, as_json: bool) -> None:
    """Run a .pyml SCRIPT as __main__ with .pyml imports enabled."""
    load_dotenv(Path.cwd() / ".env")
    mode = PymlSettings().instrument if coverage is None else InstrumentMode.parse(coverage)

    accumulator = CoverageAccumulator()
    interceptor = LoadInterceptor(
        ExtensionRegistry(),
        mode=mode,
        instrumenter=CoverageInstrumenter(accumulator) if mode.enabled else None,
    ).install()

    path = str(Path(script).resolve())
    module = types.ModuleType("__main__")
    module.__file__ = path

    saved_argv, saved_path = sys.argv, list(sys.path)
    sys.argv = [path, *args]
    sys.path.insert(0, str(Path(path).parent))
    try:
        interceptor.load(module, path)
    except SyntaxError as exc:
        raise _syntax_error(exc) from exc
    finally:
        sys.argv = saved_argv
        sys.path[:] = saved_path
        if mode.enabled:
            summary = accumulator.summary()
            if as_json:
                click.echo(summary.model_dump_json(indent=2))
            else:
                render_coverage_table(summary, Console())
