from __future__ import annotations

import logging

import structlog


def configure_structured_logging(level: str = "INFO") -> None:
    """Configure structlog and stdlib logging for one JSON object per event."""

    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))
    # openai/httpx are chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )
