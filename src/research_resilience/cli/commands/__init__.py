"""CLI command implementations."""

from research_resilience.cli.commands.classify import classify_cmd
from research_resilience.cli.commands.endpoints import endpoints_cmd
from research_resilience.cli.commands.health import health_cmd

__all__ = ["classify_cmd", "endpoints_cmd", "health_cmd"]
