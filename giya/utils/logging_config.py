"""
Logging setup for Giya.

Plain stdlib logging. Every record carries the current request id (or '-'
outside a request) so log lines from one request can be correlated.
"""
import os
import logging
import logging.config

from flask import g, has_request_context


class RequestIdFilter(logging.Filter):
    """Attach g.request_id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = '-'
        if has_request_context():
            request_id = getattr(g, 'request_id', '-')
        record.request_id = request_id
        return True


def setup_logging(level: str = None) -> None:
    """Configure root logging. Safe to call more than once."""
    level = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'filters': {
            'request_id': {'()': RequestIdFilter},
        },
        'formatters': {
            'default': {
                'format': '%(asctime)s [%(levelname)s] [%(request_id)s] %(name)s: %(message)s',
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'default',
                'filters': ['request_id'],
            },
        },
        'root': {
            'level': level,
            'handlers': ['console'],
        },
        'loggers': {
            # SQL echo is noisy; opt in with LOG_LEVEL=DEBUG plus SQLALCHEMY_ECHO
            'sqlalchemy.engine': {'level': 'WARNING'},
            'apscheduler': {'level': 'WARNING'},
            'urllib3': {'level': 'WARNING'},
        },
    })
