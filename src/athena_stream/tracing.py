import hashlib
import logging
import os
from typing import Awaitable, Optional

from athena_stream.util.env import get_env_bool

logger = logging.getLogger(__name__)

TRACE_ENV_VAR = "ATHENA_STREAM_TRACE_QUERIES"


def is_otel_exporter_configured() -> bool:
    """Return True when OTEL exporter environment indicates external export is configured."""
    if get_env_bool("OTEL_DISABLE_EXPORTER", False):
        return False
    endpoint = (os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or "").strip()
    traces_endpoint = (os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or "").strip()
    if (os.getenv("OTEL_TRACES_EXPORTER") or "").strip().lower() == "none":
        return False
    return bool(endpoint or traces_endpoint)


def trace_enabled() -> bool:
    """Return True when gateway tracing is enabled or OTEL exporter defaults apply."""
    raw = os.getenv(TRACE_ENV_VAR)
    if raw is not None:
        try:
            return get_env_bool(TRACE_ENV_VAR, False) is True
        except ValueError:
            logger.warning("Invalid %s value '%s'; tracing disabled.", TRACE_ENV_VAR, raw)
            return False
    return is_otel_exporter_configured()


def _hash_query(query: str) -> str:
    return hashlib.sha256(query.encode("utf-8")).hexdigest()


async def trace_query_operation(
    name: str,
    provider: str,
    operation: Awaitable,
    handle: Optional[str] = None,
    query: Optional[str] = None,
):
    """Await a gateway operation inside an OTEL span when tracing is enabled."""
    if not trace_enabled():
        return await operation

    from opentelemetry import trace

    tracer = trace.get_tracer("athena_stream")
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("db.provider", provider)
        span.set_attribute("db.execution_model", "async")
        if handle:
            span.set_attribute("db.query_handle", handle)
        if query:
            span.set_attribute("db.statement_hash", _hash_query(query))
        try:
            result = await operation
            span.set_attribute("db.status", "ok")
            return result
        except Exception:
            span.set_attribute("db.status", "error")
            raise
