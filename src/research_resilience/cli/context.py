"""Per-invocation CLI state shared by the command group and its commands."""

from dataclasses import dataclass
from typing import Optional

import click
import httpx

from research_resilience.config import ResilienceSettings
from research_resilience.core.resilience import ResilienceRegistry, ResilientInvoker


@dataclass
class CliContext:
    """Loaded settings plus optional overrides (tests inject a transport)."""

    settings: Optional[ResilienceSettings] = None
    transport: Optional[httpx.AsyncBaseTransport] = None

    def build_invoker(self) -> ResilientInvoker:
        settings = self.settings or ResilienceSettings()
        return ResilientInvoker(
            ResilienceRegistry.from_settings(settings),
            health_check_timeout=settings.health_check_timeout,
            transport=self.transport,
        )


def get_context(ctx: click.Context) -> CliContext:
    return ctx.ensure_object(CliContext)
