"""Logging configuration based on environment."""

import logging
import sys

from blindtest.config import settings

# Development format: cleaner
DEV_FORMAT = "%(levelname)s:     %(name)s - %(message)s"

# Production format: timestamps and the request ID for correlating auth events
PROD_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"

NOISY_LOGGERS = ("httpx", "httpcore", "aiosmtplib", "sqlalchemy.engine")


def get_uvicorn_log_config() -> dict:
    """Get uvicorn log config based on environment."""
    is_dev = settings.is_development

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "request_context": {"()": "blindtest.api.middleware.RequestContextFilter"},
        },
        "formatters": {
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": '%(levelprefix)s "%(request_line)s" %(status_code)s' if is_dev
                else '%(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s',
            },
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(levelprefix)s %(message)s" if is_dev
                else "%(asctime)s %(levelprefix)s [%(request_id)s] %(message)s",
            },
        },
        "handlers": {
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
            },
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "filters": ["request_context"],
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn.access": {
                "handlers": ["access"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False,
            },
        },
        "root": {
            "handlers": ["default"],
            "level": settings.log_level,
        },
    }


def setup_logging() -> None:
    """Configure logging for the application."""
    from blindtest.api.middleware import RequestContextFilter

    log_format = DEV_FORMAT if settings.is_development else PROD_FORMAT

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(logging.Formatter(log_format))

    logging.basicConfig(level=getattr(logging, settings.log_level), handlers=[handler])

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
