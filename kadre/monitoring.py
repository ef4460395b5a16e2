import logging
import os
import time
from contextlib import contextmanager
from typing import Iterator

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

_logger = logging.getLogger("kadre")
_initialized = False


def init_monitoring() -> None:
    global _initialized
    if _initialized:
        return

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    dsn = os.getenv("SENTRY_DSN")
    if dsn:
        sentry_logging = LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
        sentry_sdk.init(
            dsn=dsn,
            integrations=[sentry_logging],
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
            environment=os.getenv("SENTRY_ENVIRONMENT", os.getenv("ENVIRONMENT", "development")),
        )
        _logger.info("Sentry initialized")
    else:
        _logger.info("Sentry DSN not provided; skipping initialization")

    _initialized = True


def capture_exception(exc: BaseException) -> None:
    _logger.error("Exception captured", exc_info=exc)
    if sentry_sdk.get_client().is_active():
        sentry_sdk.capture_exception(exc)


@contextmanager
def timed(logger: logging.Logger, step: str, **fields) -> Iterator[None]:
    """Log a step's duration and outcome as a structured ``step`` record."""
    started = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception as exc:
        status = "error"
        fields["error"] = str(exc)
        raise
    finally:
        payload = {"step": step, "status": status, **fields}
        payload["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        logger.info(step, extra={"step": payload})
