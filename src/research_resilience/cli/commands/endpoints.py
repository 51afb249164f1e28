"""Show the effective endpoint table."""

from dataclasses import asdict

import click

from research_resilience.cli.context import get_context
from research_resilience.cli.output import emit_success


@click.command("endpoints")
@click.pass_context
def endpoints_cmd(ctx: click.Context) -> None:
    """Print every configured endpoint after config and env overrides."""
    settings = get_context(ctx).settings
    endpoints = settings.endpoints if settings is not None else {}
    emit_success({"endpoints": {name: asdict(config) for name, config in sorted(endpoints.items())}})
