"""
Structured logging configuration using structlog.
"""
import logging
import os
import sys
from typing import Any, Dict, Optional

import structlog

# Configure standard library logging
logging.basicConfig(
    format="%(message)s",
    stream=sys.stdout,
    level=logging.INFO,
)

SECRET_PREFIX_CHARS = 4


def add_app_context(logger: Any, method_name: str, event_dict: Dict) -> Dict:
    """Add application context to log entries."""
    event_dict['app'] = 'storefront-checkout'
    event_dict['environment'] = os.getenv("NODE_ENV", "development")
    return event_dict


def configure_logging():
    """Configure structlog with processors."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            add_app_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Initialize logging
configure_logging()


def get_logger(name: str = __name__):
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def presence(value: Optional[str]) -> str:
    """Credential presence flag for log records."""
    return "present" if value else "missing"


def mask_secret(value: Optional[str]) -> str:
    """
    Short, non-reversible hint of a secret for debugging.
    Never returns more than SECRET_PREFIX_CHARS characters of the value.
    """
    if not value:
        return "missing"
    if len(value) <= SECRET_PREFIX_CHARS * 2:
        return "present"
    return f"{value[:SECRET_PREFIX_CHARS]}..."
