"""ResilientInvoker: the single entry point for outbound calls.

Execution order for one ``invoke``:
1. Circuit breaker gate (open breaker: degraded answer, no network call)
2. Local rate-limit admission
3. The request, raced against the endpoint timeout and the cancel event
4. Status handling, breaker bookkeeping and backoff between attempts
5. On exhaustion: classification and a professional fallback answer

Failures never propagate as exceptions. The one exception callers see is
InvocationCancelledError, raised when they set ``cancel_event``.
"""

import asyncio
import logging
import random
import threading
import time
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Union

import httpx

from research_resilience.config.endpoints import EndpointConfig, RetryConfig, resolve_retry_config
from research_resilience.core.context import correlation_scope, get_correlation_id
from research_resilience.core.errors import (
    HttpStatusError,
    InvocationCancelledError,
    RequestTimeoutError,
    ResponseParseError,
    TimeBudgetExceededError,
)
from research_resilience.core.observability import audit_log
from research_resilience.core.resilience.backoff import (
    compute_backoff_delay,
    extract_rate_limit_headers,
    parse_retry_after,
)
from research_resilience.core.resilience.classifier import handle_error, is_retryable_error
from research_resilience.core.resilience.fallback import FallbackGenerator
from research_resilience.core.resilience.health import check_endpoints_health
from research_resilience.core.resilience.models import (
    ApiResult,
    CircuitState,
    EnhancedError,
    ErrorContext,
    FallbackStrategy,
    ResponseLike,
    SleepFunc,
)
from research_resilience.core.resilience.registry import ResilienceRegistry, get_default_registry

logger = logging.getLogger(__name__)

RequestFn = Callable[[], Awaitable[ResponseLike]]
RetryOverride = Union[RetryConfig, Mapping[str, Any], None]

AUTH_FAILED_MESSAGE = "Authentication failed - verify API key configuration"
PAYLOAD_TOO_LARGE_MESSAGE = "Request payload too large - consider reducing research scope"


class ResilientInvoker:
    """Executes outbound calls with breaker, rate limit, timeout, retry and fallback.

    Args:
        registry: Per-endpoint state owner. The process-wide default is
            used when omitted.
        fallback: Fallback generator (default FallbackGenerator()).
        sleep_func: Injectable async sleep for backoff waits.
        rng: Injectable Random instance for backoff jitter.
        health_check_timeout: Per-probe timeout for perform_health_check.
        transport: Optional httpx transport for health probes.
        clock: Monotonic clock used for time budgets.

    Example:
        >>> invoker = ResilientInvoker()
        >>> result = await invoker.invoke(
        ...     "jina",
        ...     lambda: client.post(url, json=payload),
        ...     ErrorContext(company_name="Acme Ltd", job_type="due_diligence"),
        ... )
        >>> result.success, result.fallback_used
    """

    def __init__(
        self,
        registry: Optional[ResilienceRegistry] = None,
        *,
        fallback: Optional[FallbackGenerator] = None,
        sleep_func: Optional[SleepFunc] = None,
        rng: Optional[random.Random] = None,
        health_check_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._registry = registry
        self._fallback = fallback or FallbackGenerator()
        self._sleep = sleep_func or asyncio.sleep
        self._rng = rng
        self._health_check_timeout = health_check_timeout
        self._transport = transport
        self._clock = clock

    @property
    def registry(self) -> ResilienceRegistry:
        return self._registry if self._registry is not None else get_default_registry()

    async def invoke(
        self,
        endpoint_name: str,
        request_fn: RequestFn,
        context: Optional[ErrorContext] = None,
        retry_config: RetryOverride = None,
        *,
        time_budget: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ApiResult[Any]:
        """Execute ``request_fn`` against ``endpoint_name`` resiliently.

        Args:
            endpoint_name: Endpoint name or alias; unknown names get defaults.
            request_fn: Zero-argument callable returning an awaitable response.
            context: Job identifiers used for messages and logs.
            retry_config: Full RetryConfig or a mapping of fields to override.
            time_budget: Overall seconds allowed for all attempts and waits.
            cancel_event: Set it to abort the call promptly.

        Returns:
            ApiResult describing the real or degraded outcome.

        Raises:
            InvocationCancelledError: If ``cancel_event`` was set.
        """
        context = context or ErrorContext()
        # Audit records of one invocation share a correlation id
        with correlation_scope(context.request_id or get_correlation_id() or None):
            return await self._invoke(
                endpoint_name, request_fn, context, retry_config, time_budget, cancel_event
            )

    async def _invoke(
        self,
        endpoint_name: str,
        request_fn: RequestFn,
        context: ErrorContext,
        retry_config: RetryOverride,
        time_budget: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> ApiResult[Any]:
        registry = self.registry
        endpoint = registry.get_endpoint_config(endpoint_name)
        name = endpoint.name
        config = resolve_retry_config(endpoint, retry_config)
        context = context.evolve(api_endpoint=name)
        started = self._clock()

        if registry.is_open(name):
            return self._circuit_open_result(name, context)

        last_error: Optional[BaseException] = None
        last_status: Optional[int] = None
        attempts = 0

        for attempt in range(1, config.max_attempts + 1):
            _raise_if_cancelled(cancel_event, name, attempts)

            remaining = self._remaining(time_budget, started)
            if remaining is not None and remaining <= 0:
                last_error = self._budget_error(name, time_budget, started)
                break

            await registry.admit(name)
            attempts = attempt
            timeout = endpoint.timeout if remaining is None else min(endpoint.timeout, remaining)

            try:
                response = await self._run_attempt(request_fn, timeout, name, cancel_event, attempt)
            except InvocationCancelledError:
                raise
            except Exception as e:
                last_error = e
                last_status = None
                registry.record_failure(name)
                if not is_retryable_error(e, config) or not self._can_retry(
                    name, attempt, config, time_budget, started
                ):
                    break
                delay = self._clamp_to_budget(
                    compute_backoff_delay(attempt, config, rng=self._rng), time_budget, started
                )
                await self._pause(name, attempt, config, delay, cancel_event, reason=type(e).__name__)
                continue

            status = response.status_code
            last_status = status
            attempt_context = context.evolve(retry_count=attempt - 1)

            if 200 <= status < 300:
                registry.record_success(name)
                try:
                    data = response.json()
                except ValueError as e:
                    last_error = ResponseParseError(
                        "Could not parse response data as JSON",
                        endpoint=name,
                        original_error=e,
                    )
                    break
                return ApiResult(
                    success=True,
                    data=data,
                    status_code=status,
                    headers=dict(response.headers),
                    retry_count=attempt - 1,
                )

            if status in (401, 403):
                registry.release_probe(name)
                enhanced = handle_error(HttpStatusError(status, endpoint=name), attempt_context)
                return ApiResult(
                    success=False,
                    data=self._fallback.manual_review(attempt_context).model_dump(mode="json"),
                    error=AUTH_FAILED_MESSAGE,
                    status_code=status,
                    retry_count=attempt - 1,
                    error_details=enhanced,
                )

            if status == 429:
                last_error = HttpStatusError(status, response.text, endpoint=name)
                registry.release_probe(name)
                if attempt < config.max_attempts and self._has_budget(time_budget, started):
                    retry_after = parse_retry_after(response)
                    if retry_after is not None:
                        delay = min(retry_after, config.max_delay)
                    else:
                        delay = compute_backoff_delay(attempt, config, rng=self._rng)
                    delay = self._clamp_to_budget(delay, time_budget, started)
                    await self._pause(name, attempt, config, delay, cancel_event, reason="rate_limited")
                    continue
                enhanced = handle_error(last_error, attempt_context)
                return ApiResult(
                    success=True,
                    data=self._fallback.rate_limit(name, attempt_context),
                    error=f"{name} rate limit exceeded - using professional fallback",
                    status_code=status,
                    headers=extract_rate_limit_headers(response),
                    retry_count=attempt - 1,
                    fallback_used=True,
                    error_details=enhanced,
                )

            if status == 408 or status >= 500 or status in config.retryable_status_codes:
                registry.record_failure(name)
                last_error = HttpStatusError(status, response.text, endpoint=name)
                if status in config.retryable_status_codes and self._can_retry(
                    name, attempt, config, time_budget, started
                ):
                    delay = self._clamp_to_budget(
                        compute_backoff_delay(attempt, config, rng=self._rng), time_budget, started
                    )
                    await self._pause(name, attempt, config, delay, cancel_event, reason=f"http_{status}")
                    continue
                if status >= 500:
                    return self._server_error_result(name, status, last_error, attempt_context)
                break

            if status == 413:
                registry.release_probe(name)
                enhanced = handle_error(HttpStatusError(status, endpoint=name), attempt_context)
                return ApiResult(
                    success=False,
                    error=PAYLOAD_TOO_LARGE_MESSAGE,
                    status_code=status,
                    retry_count=attempt - 1,
                    error_details=enhanced,
                )

            registry.release_probe(name)
            error = HttpStatusError(status, response.text, endpoint=name)
            enhanced = handle_error(error, attempt_context)
            return ApiResult(
                success=False,
                error=str(error),
                status_code=status,
                retry_count=attempt - 1,
                error_details=enhanced,
            )

        return self._final_failure(name, last_error, last_status, context, attempts)

    # Outcome builders

    def _circuit_open_result(self, name: str, context: ErrorContext) -> ApiResult[Any]:
        logger.warning("Circuit breaker for %s is open, using fallback", name)
        audit_log("circuit_rejected", endpoint=name)
        fallback = self._fallback.professional_response(context)
        return ApiResult(
            success=True,
            data=fallback.model_dump(mode="json"),
            error=f"{name} service temporarily unavailable",
            fallback_used=True,
            circuit_breaker_triggered=True,
        )

    def _server_error_result(
        self,
        name: str,
        status: int,
        error: HttpStatusError,
        context: ErrorContext,
    ) -> ApiResult[Any]:
        enhanced = handle_error(error, context)
        audit_log(
            "fallback_applied",
            endpoint=name,
            strategy="server_error",
            status_code=status,
            retry_count=context.retry_count,
        )
        return ApiResult(
            success=True,
            data=self._fallback.server_error(name, context, status),
            error=f"{name} server error {status} - using professional fallback",
            status_code=status,
            retry_count=context.retry_count,
            fallback_used=True,
            circuit_breaker_triggered=self.registry.breaker_state(name) == CircuitState.OPEN,
            error_details=enhanced,
        )

    def _final_failure(
        self,
        name: str,
        last_error: Optional[BaseException],
        last_status: Optional[int],
        context: ErrorContext,
        attempts: int,
    ) -> ApiResult[Any]:
        retry_count = max(attempts - 1, 0)
        enhanced: EnhancedError = handle_error(
            last_error if last_error is not None else f"{name} request failed",
            context.evolve(retry_count=retry_count),
        )
        # No further retries happen past this point
        if enhanced.fallback_strategy == FallbackStrategy.RETRY_WITH_BACKOFF:
            enhanced = enhanced.with_strategy(FallbackStrategy.PROFESSIONAL_RESPONSE)

        fallback = self._fallback.generate(enhanced)
        audit_log(
            "fallback_applied",
            endpoint=name,
            strategy=enhanced.fallback_strategy.value,
            category=enhanced.category.value,
            retry_count=retry_count,
        )
        return ApiResult(
            success=fallback.success,
            data=fallback.model_dump(mode="json"),
            error=enhanced.technical_details.get("message", enhanced.message),
            status_code=last_status,
            retry_count=retry_count,
            fallback_used=True,
            circuit_breaker_triggered=self.registry.breaker_state(name) == CircuitState.OPEN,
            error_details=enhanced,
        )

    # Attempt mechanics

    async def _run_attempt(
        self,
        request_fn: RequestFn,
        timeout: float,
        name: str,
        cancel_event: Optional[asyncio.Event],
        attempt: int,
    ) -> ResponseLike:
        """Run one request under the timeout; a set cancel event aborts it.

        The in-flight request task is cancelled on timeout, on the cancel
        event and when the caller's own task is cancelled, so a late
        response is never observed.
        """
        task = asyncio.ensure_future(request_fn())
        waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event is not None else None
        watched = {task} if waiter is None else {task, waiter}
        try:
            done, _ = await asyncio.wait(watched, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            await _abandon(task)
            raise
        finally:
            if waiter is not None:
                waiter.cancel()

        if task in done:
            return task.result()

        await _abandon(task)
        if cancel_event is not None and cancel_event.is_set():
            raise InvocationCancelledError(
                f"Invocation of {name} cancelled during attempt {attempt}",
                endpoint=name,
                attempts=attempt,
            )
        raise RequestTimeoutError(
            f"Request timeout after {timeout:.2f}s",
            timeout_seconds=timeout,
            operation=name,
        )

    async def _pause(
        self,
        name: str,
        attempt: int,
        config: RetryConfig,
        delay: float,
        cancel_event: Optional[asyncio.Event],
        *,
        reason: str,
    ) -> None:
        """Wait between attempts; returns early with an error if cancelled."""
        logger.info(
            "%s attempt %d/%d failed (%s), retrying in %.2fs",
            name,
            attempt,
            config.max_attempts,
            reason,
            delay,
        )
        audit_log(
            "retry_attempt",
            endpoint=name,
            attempt=attempt,
            max_attempts=config.max_attempts,
            delay_ms=int(delay * 1000),
            reason=reason,
        )
        if cancel_event is None:
            await self._sleep(delay)
            return

        sleeper = asyncio.ensure_future(self._sleep(delay))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            await _abandon(sleeper)
            raise
        finally:
            waiter.cancel()
        if cancel_event.is_set():
            await _abandon(sleeper)
            raise InvocationCancelledError(
                f"Invocation of {name} cancelled while waiting to retry",
                endpoint=name,
                attempts=attempt,
            )
        sleeper.result()

    def _can_retry(
        self,
        name: str,
        attempt: int,
        config: RetryConfig,
        time_budget: Optional[float],
        started: float,
    ) -> bool:
        if attempt >= config.max_attempts:
            return False
        if self.registry.breaker_state(name) == CircuitState.OPEN:
            logger.warning("%s breaker opened, abandoning remaining attempts", name)
            return False
        return self._has_budget(time_budget, started)

    def _has_budget(self, time_budget: Optional[float], started: float) -> bool:
        remaining = self._remaining(time_budget, started)
        return remaining is None or remaining > 0

    def _clamp_to_budget(self, delay: float, time_budget: Optional[float], started: float) -> float:
        """Cut a wait short so it never outlasts the remaining time budget."""
        remaining = self._remaining(time_budget, started)
        return delay if remaining is None else min(delay, remaining)

    def _remaining(self, time_budget: Optional[float], started: float) -> Optional[float]:
        if time_budget is None:
            return None
        return max(0.0, time_budget - (self._clock() - started))

    def _budget_error(self, name: str, time_budget: Optional[float], started: float) -> TimeBudgetExceededError:
        elapsed = self._clock() - started
        return TimeBudgetExceededError(
            f"Invocation of {name} timed out: time budget of {time_budget:.2f}s exhausted after {elapsed:.2f}s",
            budget_seconds=time_budget,
            elapsed_seconds=elapsed,
            operation=name,
        )

    # Operations

    def get_circuit_breaker_status(self) -> dict[str, dict[str, Any]]:
        """Breaker status per endpoint seen so far."""
        return self.registry.get_circuit_breaker_status()

    def reset_circuit_breaker(self, endpoint_name: str) -> None:
        """Operator override: close the breaker for an endpoint."""
        self.registry.reset_circuit_breaker(endpoint_name)

    async def perform_health_check(self, endpoints: Optional[Iterable[str]] = None) -> dict[str, bool]:
        """HEAD-probe configured endpoints (all of them by default)."""
        registry = self.registry
        if endpoints is None:
            targets: list[EndpointConfig] = list(registry.endpoint_configs.values())
        else:
            targets = [registry.get_endpoint_config(name) for name in endpoints]
        return await check_endpoints_health(
            targets,
            timeout=self._health_check_timeout,
            transport=self._transport,
        )


def _raise_if_cancelled(cancel_event: Optional[asyncio.Event], name: str, attempts: int) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise InvocationCancelledError(
            f"Invocation of {name} cancelled",
            endpoint=name,
            attempts=attempts,
        )


async def _abandon(task: "asyncio.Future[Any]") -> None:
    """Cancel a task and wait for it to finish, discarding its outcome."""
    task.cancel()
    await asyncio.wait({task})
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Abandoned task finished with %r", task.exception())


# Module-level default invoker
_default_invoker: Optional[ResilientInvoker] = None
_default_invoker_lock = threading.Lock()


def get_default_invoker() -> ResilientInvoker:
    """Get the process-wide invoker (bound to the default registry)."""
    global _default_invoker
    if _default_invoker is None:
        with _default_invoker_lock:
            if _default_invoker is None:
                _default_invoker = ResilientInvoker()
    return _default_invoker


async def invoke(
    endpoint_name: str,
    request_fn: RequestFn,
    context: Optional[ErrorContext] = None,
    retry_config: RetryOverride = None,
    *,
    time_budget: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> ApiResult[Any]:
    """``ResilientInvoker.invoke`` on the default invoker."""
    return await get_default_invoker().invoke(
        endpoint_name,
        request_fn,
        context,
        retry_config,
        time_budget=time_budget,
        cancel_event=cancel_event,
    )


def get_circuit_breaker_status() -> dict[str, dict[str, Any]]:
    return get_default_invoker().get_circuit_breaker_status()


def reset_circuit_breaker(endpoint_name: str) -> None:
    get_default_invoker().reset_circuit_breaker(endpoint_name)


async def perform_health_check(endpoints: Optional[Iterable[str]] = None) -> dict[str, bool]:
    return await get_default_invoker().perform_health_check(endpoints)
