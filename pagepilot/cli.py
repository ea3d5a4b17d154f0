#!/usr/bin/env python3
"""
Command line entry point for running navigation scenarios.

A scenario is a Python file defining ``scenario(session)``, sync or async,
which queues steps on the session it receives::

    def scenario(session):
        session.then(lambda s: s.echo("hello"))

The command starts the session on ``--url`` (if any), calls the scenario,
runs the queued steps and exits with the session exit code.
"""

import asyncio
import importlib.util
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from pagepilot.config import env
from pagepilot.errors import PilotError
from pagepilot.session import Session
from pagepilot.steps import maybe_await
from pagepilot.surface.factory import SurfaceFactory
from pagepilot.types import LOG_LEVELS, SessionOptions

logger = logging.getLogger(__name__)


def load_scenario(script_path: str):
    """Import ``script_path`` and return its ``scenario`` callable.

    Raises:
        click.ClickException: If the file cannot be loaded or defines no scenario
    """
    path = Path(script_path)
    spec = importlib.util.spec_from_file_location(path.stem, path)
    if spec is None or spec.loader is None:
        raise click.ClickException(f"Unable to load scenario file: {script_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    scenario = getattr(module, "scenario", None)
    if not callable(scenario):
        raise click.ClickException(f"{script_path} does not define a scenario(session) function")
    return scenario


def surface_options(f):
    """Surface configuration options."""
    f = click.option('--surface', '-s', type=click.Choice(['playwright', 'selenium']),
                     default=None, help='Surface to drive (default: from settings)')(f)
    f = click.option('--browser', '-b',
                     type=click.Choice(['chrome', 'edge', 'chromium', 'firefox', 'webkit']),
                     default=None, help='Browser to use (default: from settings)')(f)
    f = click.option('--headless/--no-headless', default=None,
                     help='Run the browser in headless mode (default: from settings)')(f)
    f = click.option('--profile-path', '-p', default=None,
                     help='Path to a browser profile directory')(f)
    return f


def session_options(f):
    """Session behavior options."""
    f = click.option('--log-level', '-l', type=click.Choice(LOG_LEVELS), default=None,
                     help='Minimum level of recorded log entries')(f)
    f = click.option('--verbose', '-v', is_flag=True, default=False,
                     help='Echo log entries as they are recorded')(f)
    f = click.option('--strict', is_flag=True, default=False,
                     help='Abort the run on the first failing step')(f)
    f = click.option('--timeout', '-t', type=int, default=None,
                     help='Global execution timeout in milliseconds')(f)
    return f


@click.group(help='Scripted navigation of web pages')
@click.option('--debug', is_flag=True, default=False, help='Enable debug logging')
def cli(debug):
    """Step-based navigation tool."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    env.load()


async def run_scenario(scenario, options: SessionOptions, surface, url: Optional[str]) -> int:
    """Start a session, let ``scenario`` queue its steps and run them."""
    async with Session(options, surface) as session:
        await session.start(url)
        await maybe_await(scenario(session))
        await session.run()
        if session.result.status == "error":
            click.echo(click.style(f"Run failed after {session.result.time_ms}ms", fg="red"), err=True)
        return session.exit_code or 0


@cli.command()
@click.argument('script', type=click.Path(exists=True, dir_okay=False))
@click.option('--url', '-u', default=None, help='Location to open when the session starts')
@surface_options
@session_options
def run(script, url, surface, browser, headless, profile_path, log_level, verbose, strict, timeout):
    """Run the scenario defined in SCRIPT."""
    scenario = load_scenario(script)
    options = SessionOptions.from_environment(
        log_level=log_level,
        verbose=verbose or None,
        timeout_ms=timeout,
        fault_tolerant=False if strict else None,
    )
    try:
        nav_surface = SurfaceFactory.create_surface(
            surface_type=surface, browser_type=browser, headless=headless, user_data_dir=profile_path
        )
    except ValueError as e:
        raise click.BadParameter(str(e))

    try:
        exit_code = asyncio.run(run_scenario(scenario, options, nav_surface, url))
    except PilotError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)
    sys.exit(exit_code)


@cli.command()
def settings():
    """Show the effective settings."""
    configuration = env.get_all_configuration()
    if configuration["env_file"]:
        click.echo(f"# loaded from {configuration['env_file']}")
    for name, value in sorted(configuration["settings"].items()):
        click.echo(f"{name} = {value}")


def main():
    cli()


if __name__ == '__main__':
    main()
