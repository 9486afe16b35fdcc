"""Prometheus instrumentation.

HTTP latency and counts come from prometheus-fastapi-instrumentator; the
gauges and counters below track sockets, presence, emergencies, production
mode transitions, broadcasts and cache effectiveness.
"""

from fastapi import FastAPI
from prometheus_client import Counter, Gauge, Info
from prometheus_fastapi_instrumentator import Instrumentator, metrics


APP_INFO = Info("fieldops_app", "Application information")

WS_CONNECTIONS_TOTAL = Gauge(
    "fieldops_ws_connections_total",
    "Open sockets on this instance",
)

PRESENCE_ONLINE = Gauge(
    "fieldops_presence_online_sessions",
    "Sessions currently holding a presence record on this instance",
)

PRESENCE_EXPIRED = Counter(
    "fieldops_presence_expired_total",
    "Sessions forcibly disconnected by the liveness sweep",
)

EMERGENCIES_CREATED = Counter(
    "fieldops_emergencies_created_total",
    "Emergencies reported",
    ["severity"],
)

MODE_TRANSITIONS = Counter(
    "fieldops_production_mode_transitions_total",
    "Production mode transitions applied",
    ["from_mode", "to_mode", "cause"],
)

EVENTS_BROADCAST = Counter(
    "fieldops_events_broadcast_total",
    "Coordination events handed to the broadcaster",
    ["event", "outcome"],
)

CACHE_HITS = Counter(
    "fieldops_cache_hits_total",
    "Cache hit count",
    ["cache_type"],
)

CACHE_MISSES = Counter(
    "fieldops_cache_misses_total",
    "Cache miss count",
    ["cache_type"],
)


def setup_prometheus(app: FastAPI, app_version: str = "1.0.0") -> Instrumentator:
    """Instrument ``app`` and expose ``/metrics``. Health checks and the metrics route are excluded."""
    APP_INFO.info({
        "version": app_version,
        "app_name": "fieldops",
    })

    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        excluded_handlers=["/health", "/health/live", "/health/ready", "/metrics"],
    )
    instrumentator.add(
        metrics.default(
            metric_namespace="fieldops",
            metric_subsystem="http",
        )
    )
    instrumentator.instrument(app)
    instrumentator.expose(app, endpoint="/metrics", include_in_schema=False)

    return instrumentator


def record_ws_connection(connected: bool) -> None:
    """Record WebSocket connection change."""
    if connected:
        WS_CONNECTIONS_TOTAL.inc()
    else:
        WS_CONNECTIONS_TOTAL.dec()


def record_presence(online: bool, expired: bool = False) -> None:
    """Record a presence record being written or dropped."""
    if online:
        PRESENCE_ONLINE.inc()
    else:
        PRESENCE_ONLINE.dec()
        if expired:
            PRESENCE_EXPIRED.inc()


def record_emergency_created(severity: str) -> None:
    EMERGENCIES_CREATED.labels(severity=severity).inc()


def record_mode_transition(from_mode: str, to_mode: str, cause: str) -> None:
    """Record a production mode transition.

    Args:
        from_mode: Mode before the transition
        to_mode: Mode after the transition
        cause: Named transition that applied it (e.g. "enter_emergency_mode")
    """
    MODE_TRANSITIONS.labels(from_mode=from_mode, to_mode=to_mode, cause=cause).inc()


def record_broadcast(event: str, delivered: bool) -> None:
    EVENTS_BROADCAST.labels(event=event, outcome="ok" if delivered else "failed").inc()


def record_cache_access(cache_type: str, hit: bool) -> None:
    """Record cache access.

    Args:
        cache_type: Key prefix (active_emergencies, production_status, ...)
        hit: True if cache hit, False if miss
    """
    if hit:
        CACHE_HITS.labels(cache_type=cache_type).inc()
    else:
        CACHE_MISSES.labels(cache_type=cache_type).inc()
