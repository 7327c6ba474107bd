#!/usr/bin/env python3
"""
Main CLI Entry Point for the Reconciliation Engine

Provides the `rapprochement` command: global options, utility commands and
the `reconcile` command group.
"""

import logging
import os

import click

from ..core.config import Environment, get_config
from ..core.json_utils import format_json
from .reconcile import reconcile


@click.group()
@click.option(
    "--config-env",
    type=click.Choice([e.value for e in Environment]),
    help="Run with another RAPPROCHEMENT_ENV",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Log matching decisions at DEBUG level")
@click.pass_context
def main(ctx: click.Context, config_env: str | None, verbose: bool, debug: bool) -> None:
    """
    Rapprochement - Bank Transaction and Invoice Reconciliation

    Matches supplier invoices to bank transactions, learns recurring
    suppliers and flags anomalies for review.
    """
    if config_env:
        os.environ["RAPPROCHEMENT_ENV"] = config_env
    if debug:
        os.environ["LOG_LEVEL"] = "DEBUG"

    try:
        config = get_config()
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if debug:
        # The cached configuration may predate the LOG_LEVEL override
        logging.getLogger("rapprochement").setLevel(logging.DEBUG)

    ctx.obj = {"verbose": verbose, "debug": debug, "config": config}

    if verbose:
        click.echo(f"Environment: {config.environment.value}")
        click.echo(f"Data directory: {config.data_dir}")


@main.command()
def version() -> None:
    """Show version information."""
    from rapprochement import __author__, __version__

    click.echo(f"Rapprochement v{__version__}")
    click.echo(f"Author: {__author__}")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@click.pass_obj
def config(obj: dict, as_json: bool) -> None:
    """Show current configuration."""
    settings = obj["config"]

    if as_json:
        click.echo(format_json(settings.to_dict()))
        return

    matching = settings.matching
    click.echo("Current Configuration:")
    click.echo(f"  Environment: {settings.environment.value}")
    click.echo(f"  Data Directory: {settings.data_dir}")
    click.echo(f"  Tenants Directory: {settings.tenants_dir}")
    click.echo(f"  Exports Directory: {settings.output_dir}")
    click.echo(f"  Debug Mode: {settings.debug}")
    click.echo(f"  Log Level: {settings.log_level}")
    click.echo("Matching:")
    click.echo(f"  Amount tolerance: {matching.amount_tolerance_pct}%")
    click.echo(f"  Date window: {matching.date_window_days} days")
    click.echo(f"  Suggestion threshold: {matching.suggestion_threshold}")
    click.echo(f"  Auto threshold: {matching.auto_threshold}")
    click.echo(f"  Anomaly amount threshold: {matching.anomaly_amount_threshold} €")
    click.echo(f"  Assignment strategy: {matching.assignment_strategy}")


main.add_command(reconcile)


if __name__ == "__main__":
    main()
