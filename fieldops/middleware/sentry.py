"""Error tracking.

Coordination rejections (validation, forbidden, unknown ids, bad transitions)
are answered to the caller and never reported.
"""

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from fieldops.utils.errors import CoordinationError


def _drop_business_errors(event: dict, hint: dict) -> dict | None:
    exc_info = hint.get("exc_info")
    if exc_info is None:
        return event
    exc = exc_info[1]
    if isinstance(exc, CoordinationError) and exc.status_code < 500:
        return None
    if type(exc).__name__ == "RequestValidationError":
        return None
    return event


def init_sentry(
    dsn: str | None,
    environment: str = "development",
    release: str | None = None,
    traces_sample_rate: float = 0.05,
) -> bool:
    """Start the Sentry SDK when a DSN is configured.

    Returns:
        True if the SDK was initialized
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        traces_sample_rate=traces_sample_rate,
        send_default_pii=False,
        before_send=_drop_business_errors,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            RedisIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
    )
    return True
