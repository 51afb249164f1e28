"""Operator CLI for the resilient call layer."""

from research_resilience.cli.main import cli

__all__ = ["cli"]
