"""Probe endpoint liveness."""

import asyncio

import click

from research_resilience.cli.context import get_context
from research_resilience.cli.output import emit_error, emit_success


@click.command("health")
@click.option(
    "--endpoint",
    "endpoints",
    multiple=True,
    help="Endpoint to probe (repeatable). Defaults to all configured endpoints.",
)
@click.pass_context
def health_cmd(ctx: click.Context, endpoints: tuple[str, ...]) -> None:
    """HEAD-probe endpoints; exits 1 when any of them is unhealthy."""
    invoker = get_context(ctx).build_invoker()
    results = asyncio.run(invoker.perform_health_check(list(endpoints) or None))

    unhealthy = sorted(name for name, healthy in results.items() if not healthy)
    if unhealthy:
        emit_error(
            f"Unhealthy endpoints: {', '.join(unhealthy)}",
            code="UNHEALTHY",
            error_type="unavailable",
            remediation="Check provider status pages and network connectivity",
            details={"endpoints": results, "unhealthy": unhealthy},
        )
    emit_success({"endpoints": results})
