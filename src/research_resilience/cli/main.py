"""research-resilience command group."""

from typing import Optional

import click

from research_resilience.cli.commands import classify_cmd, endpoints_cmd, health_cmd
from research_resilience.cli.context import get_context
from research_resilience.config import ResilienceSettings, set_settings


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    envvar="RESEARCH_RESILIENCE_CONFIG_FILE",
    help="Path to a TOML config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str]) -> None:
    """Inspect and probe the resilient call layer."""
    settings = ResilienceSettings.from_env(config_file)
    settings.setup_logging()
    set_settings(settings)
    get_context(ctx).settings = settings


cli.add_command(endpoints_cmd)
cli.add_command(health_cmd)
cli.add_command(classify_cmd)
