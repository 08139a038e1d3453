"""
Observability helpers with OpenTelemetry integration.

Provides:
- Structured JSON logging with per-request correlation IDs
- OpenTelemetry spans around engine evaluations
"""

import asyncio
import json
import logging
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

from budgetgate.core.config import settings

# Correlation ID context variable
correlation_id_ctx: ContextVar[str] = ContextVar('correlation_id', default='')

_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
}


class StructuredLogger:
    """
    Structured logging with correlation IDs and JSON output.

    Keyword arguments passed to the log methods become JSON fields.
    """

    def __init__(self, name: str):
        """
        Initialize structured logger.

        Args:
            name: Logger name (typically __name__)
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)

    def _log(self, level: str, message: str, **kwargs):
        """Log with correlation ID and additional context."""
        extra = {
            'correlation_id': correlation_id_ctx.get(),
            **kwargs
        }
        getattr(self.logger, level)(message, extra=extra)

    def debug(self, message: str, **kwargs):
        self._log('debug', message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log('info', message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log('warning', message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log('error', message, **kwargs)

    def critical(self, message: str, **kwargs):
        self._log('critical', message, **kwargs)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        """Format log record as JSON."""
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class OpenTelemetryTracer:
    """OpenTelemetry tracing for engine operations."""

    def __init__(self):
        resource = Resource.create({
            SERVICE_NAME: "budgetgate",
            SERVICE_VERSION: settings.VERSION,
        })
        tracer_provider = TracerProvider(resource=resource)

        if settings.TRACING_ENABLED:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

            otlp_exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True)
            tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

        trace.set_tracer_provider(tracer_provider)
        self.tracer = trace.get_tracer(__name__)

    def _annotate(self, span, func: Callable, attributes: Optional[Dict[str, Any]]):
        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            span.set_attribute('correlation_id', correlation_id)
        span.set_attribute('function.name', func.__name__)
        span.set_attribute('function.module', func.__module__)
        for key, value in (attributes or {}).items():
            span.set_attribute(key, str(value))

    def trace_operation(self, operation_name: str, attributes: Optional[Dict[str, Any]] = None):
        """
        Decorator to trace an operation (sync or async).

        Args:
            operation_name: Name of the operation
            attributes: Static span attributes

        Returns:
            Decorated function
        """
        def decorator(func: Callable) -> Callable:
            if asyncio.iscoroutinefunction(func):
                @wraps(func)
                async def async_wrapper(*args, **kwargs):
                    with self.tracer.start_as_current_span(operation_name) as span:
                        self._annotate(span, func, attributes)
                        try:
                            result = await func(*args, **kwargs)
                            span.set_status(Status(StatusCode.OK))
                            return result
                        except Exception as e:
                            span.set_status(Status(StatusCode.ERROR, str(e)))
                            span.record_exception(e)
                            raise

                return async_wrapper

            @wraps(func)
            def wrapper(*args, **kwargs):
                with self.tracer.start_as_current_span(operation_name) as span:
                    self._annotate(span, func, attributes)
                    try:
                        result = func(*args, **kwargs)
                        span.set_status(Status(StatusCode.OK))
                        return result
                    except Exception as e:
                        span.set_status(Status(StatusCode.ERROR, str(e)))
                        span.record_exception(e)
                        raise

            return wrapper
        return decorator


def bind_correlation_id(correlation_id: Optional[str] = None) -> Token:
    """
    Bind a correlation ID to the current context.

    A UUID is generated when none is given. Pass the returned token to
    ``correlation_id_ctx.reset`` once the request is done.
    """
    return correlation_id_ctx.set(correlation_id or str(uuid.uuid4()))


_tracer: Optional[OpenTelemetryTracer] = None


def get_tracer() -> OpenTelemetryTracer:
    """Get the tracer, installing the tracer provider on first use."""
    global _tracer

    if _tracer is None:
        _tracer = OpenTelemetryTracer()

    return _tracer


def trace_operation(operation_name: str, attributes: Optional[Dict[str, Any]] = None):
    """
    Trace an operation.

    Args:
        operation_name: Operation name
        attributes: Static span attributes

    Returns:
        Decorator
    """
    def decorator(func: Callable) -> Callable:
        # Resolve the tracer lazily so importing a module never installs a provider
        traced = {}

        def _get():
            if 'func' not in traced:
                traced['func'] = get_tracer().trace_operation(operation_name, attributes)(func)
            return traced['func']

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                return await _get()(*args, **kwargs)

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            return _get()(*args, **kwargs)

        return wrapper
    return decorator
