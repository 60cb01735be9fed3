"""Composable instrumentation for public service API methods.

``public_api_instrumented`` wraps a method with a fixed set of concerns:
structured logging (when a logger is given), an OpenTelemetry span, and
OpenTelemetry call/duration/error metrics. Concern failures are isolated and
never change the wrapped method's outcome.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from opentelemetry import metrics as otel_metrics
from opentelemetry import trace as otel_trace
from opentelemetry.trace import Status, StatusCode

from packages.relay_shared.config import PublicApiOtelSettings, load_settings

from . import fields
from .context import log_context


@dataclass(frozen=True)
class InvocationContext:
    """Structured metadata describing one public API invocation."""

    component_id: str
    api_name: str
    trace_id: str | None
    envelope_id: str | None
    principal: str | None
    references: Mapping[str, str]


@dataclass(frozen=True)
class CompletionContext:
    """Structured metadata describing one completed public API invocation."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str]
    error_categories: list[str]


class PublicApiInstrumentationConcern(Protocol):
    """Hook contract for one public API instrumentation concern."""

    def on_invocation(self, context: InvocationContext) -> None:
        """Handle invocation-start event for one method call."""

    def on_completion(self, context: CompletionContext) -> None:
        """Handle completion event for one method call."""


class PublicApiLoggingConcern:
    """Emit structured invocation and completion log lines."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        with log_context(_invocation_fields(context)):
            self._logger.info("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        payload = _invocation_fields(context.invocation)
        payload.update(
            {
                fields.EVENT: fields.PUBLIC_API_COMPLETION_EVENT,
                fields.SUCCESS: context.success,
                fields.DURATION_MS: context.duration_ms,
                fields.ERRORS: context.errors,
            }
        )
        with log_context(payload):
            if context.success:
                self._logger.info("Public API completion")
            else:
                self._logger.warning("Public API completion")


class PublicApiTracingConcern:
    """Wrap each invocation in one OpenTelemetry span.

    Open spans are kept on a per-context stack so nested instrumented calls
    close in LIFO order and concurrent callers never share a stack.
    """

    def __init__(self, *, tracer: otel_trace.Tracer) -> None:
        self._tracer = tracer
        self._active: ContextVar[tuple[tuple[Any, otel_trace.Span], ...]] = ContextVar(
            "public_api_tracing_scopes", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        manager = self._tracer.start_as_current_span(
            f"public_api.{context.component_id}.{context.api_name}"
        )
        span = manager.__enter__()
        span.set_attribute(fields.COMPONENT_ID, context.component_id)
        span.set_attribute(fields.API_NAME, context.api_name)
        if context.trace_id is not None:
            span.set_attribute(fields.TRACE_ID, context.trace_id)
        for key, value in context.references.items():
            span.set_attribute(f"reference.{key}", value)
        self._active.set((*self._active.get(), (manager, span)))

    def on_completion(self, context: CompletionContext) -> None:
        scopes = self._active.get()
        if not scopes:
            return
        manager, span = scopes[-1]
        self._active.set(scopes[:-1])
        span.set_attribute(fields.SUCCESS, context.success)
        span.set_attribute(fields.DURATION_MS, context.duration_ms)
        span.set_attribute("errors.count", len(context.errors))
        if not context.success:
            span.set_status(Status(StatusCode.ERROR))
        manager.__exit__(None, None, None)


class PublicApiMetricsConcern:
    """Record call count, latency, and error-category metrics."""

    def __init__(self, *, meter: otel_metrics.Meter, names: PublicApiOtelSettings) -> None:
        self._calls_total = meter.create_counter(
            name=names.metric_public_api_calls_total,
            description="Count of public API invocations by component/method/outcome.",
            unit="1",
        )
        self._duration_ms = meter.create_histogram(
            name=names.metric_public_api_duration_ms,
            description="Public API invocation latency in milliseconds.",
            unit="ms",
        )
        self._errors_total = meter.create_counter(
            name=names.metric_public_api_errors_total,
            description="Count of public API failures by error category.",
            unit="1",
        )

    def on_invocation(self, context: InvocationContext) -> None:
        del context

    def on_completion(self, context: CompletionContext) -> None:
        attrs = {
            fields.COMPONENT_ID: context.invocation.component_id,
            fields.API_NAME: context.invocation.api_name,
            fields.OUTCOME: "success" if context.success else "failure",
        }
        self._calls_total.add(1, attributes=attrs)
        self._duration_ms.record(context.duration_ms, attributes=attrs)
        if context.success:
            return
        for category in context.error_categories or ["unknown"]:
            self._errors_total.add(
                1,
                attributes={
                    fields.COMPONENT_ID: context.invocation.component_id,
                    fields.API_NAME: context.invocation.api_name,
                    fields.ERROR_CATEGORY: category,
                },
            )


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate one public API method with logging, tracing, and metrics."""
    extra_concerns = tuple(concerns or ())
    logging_concerns: tuple[PublicApiInstrumentationConcern, ...] = (
        () if logger is None else (PublicApiLoggingConcern(logger=logger),)
    )

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        method_name = api_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            active = (*logging_concerns, *extra_concerns, *_default_concerns())
            meta = kwargs.get("meta")
            invocation = InvocationContext(
                component_id=component_id,
                api_name=method_name,
                trace_id=_attr_or_none(meta, "trace_id"),
                envelope_id=_attr_or_none(meta, "envelope_id"),
                principal=_attr_or_none(meta, "principal"),
                references={
                    name: str(kwargs[name])
                    for name in id_fields
                    if kwargs.get(name) not in (None, "")
                },
            )
            _dispatch(active, "on_invocation", invocation, invocation, logger)

            started = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                completion = CompletionContext(
                    invocation=invocation,
                    success=False,
                    duration_ms=_elapsed_ms(started),
                    errors=[f"{type(exc).__name__}: {exc}"],
                    error_categories=["internal"],
                )
                _dispatch(active, "on_completion", completion, invocation, logger)
                raise

            success, errors, categories = _summarize(result)
            completion = CompletionContext(
                invocation=invocation,
                success=success,
                duration_ms=_elapsed_ms(started),
                errors=errors,
                error_categories=categories,
            )
            _dispatch(active, "on_completion", completion, invocation, logger)
            return result

        return wrapper

    return decorator


@lru_cache(maxsize=1)
def _otel_names() -> PublicApiOtelSettings:
    return load_settings().observability.public_api.otel


@lru_cache(maxsize=1)
def _default_concerns() -> tuple[PublicApiInstrumentationConcern, ...]:
    names = _otel_names()
    return (
        PublicApiTracingConcern(tracer=otel_trace.get_tracer(names.tracer_name)),
        PublicApiMetricsConcern(
            meter=otel_metrics.get_meter(names.meter_name), names=names
        ),
    )


def _dispatch(
    concerns: Sequence[PublicApiInstrumentationConcern],
    hook: str,
    context: InvocationContext | CompletionContext,
    invocation: InvocationContext,
    logger: Any | None,
) -> None:
    for concern in concerns:
        try:
            getattr(concern, hook)(context)
        except Exception as exc:  # noqa: BLE001
            if logger is None:
                continue
            with log_context(
                {
                    fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
                    fields.COMPONENT_ID: invocation.component_id,
                    fields.API_NAME: invocation.api_name,
                    fields.STAGE: hook,
                    fields.CONCERN: type(concern).__name__,
                    fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
                }
            ):
                logger.warning("Public API instrumentation concern failed")


def _elapsed_ms(started: float) -> float:
    return round((perf_counter() - started) * 1000.0, 3)


def _attr_or_none(obj: object | None, name: str) -> str | None:
    if obj is None:
        return None
    value = getattr(obj, name, None)
    if value in (None, ""):
        return None
    return str(value)


def _summarize(result: object) -> tuple[bool, list[str], list[str]]:
    """Infer success, one-line error summaries, and categories from a result."""
    raw_errors = getattr(result, "errors", [])
    if not isinstance(raw_errors, list):
        raw_errors = []

    summaries: list[str] = []
    categories: list[str] = []
    for item in raw_errors:
        code = getattr(item, "code", None)
        message = getattr(item, "message", None)
        category = getattr(item, "category", None)
        if message not in (None, ""):
            summaries.append(str(message) if code in (None, "") else f"{code}: {message}")
        if category not in (None, ""):
            categories.append(str(getattr(category, "value", category)))

    ok_value = getattr(result, "ok", None)
    success = ok_value if isinstance(ok_value, bool) else not summaries
    return success, summaries, categories


def _invocation_fields(context: InvocationContext) -> dict[str, object]:
    return {
        fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT,
        fields.COMPONENT_ID: context.component_id,
        fields.API_NAME: context.api_name,
        fields.TRACE_ID: context.trace_id,
        fields.ENVELOPE_ID: context.envelope_id,
        fields.PRINCIPAL: context.principal,
        **context.references,
    }
