"""Run an error message through the failure taxonomy."""

from typing import Optional

import click

from research_resilience.cli.output import emit_success
from research_resilience.core.resilience import ErrorContext, classify_error


@click.command("classify")
@click.argument("message")
@click.option("--company", default=None, help="Subject name used in user messages.")
@click.option("--job-type", default=None, help="Job type, e.g. due_diligence.")
@click.option("--endpoint", default=None, help="Endpoint the error came from.")
@click.option("--retry-count", type=click.IntRange(min=0), default=0, show_default=True)
def classify_cmd(
    message: str,
    company: Optional[str],
    job_type: Optional[str],
    endpoint: Optional[str],
    retry_count: int,
) -> None:
    """Print the classification of MESSAGE, including its fallback strategy."""
    context = ErrorContext(
        company_name=company,
        job_type=job_type,
        api_endpoint=endpoint,
        retry_count=retry_count,
    )
    emit_success(classify_error(message, context).to_dict())
