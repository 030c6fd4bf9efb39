"""
Logging utilities for the ChatAB auth service
"""
import logging
import atexit

from app.logging.config import LoggingConfig
from app.logging.handlers import get_app_handler, get_audit_handler, flush_handlers
from app.logging.filters import RequestContextFilter, AuthContextFilter
from app.logging.slack_handler import slack_handler


def get_app_logger(name: str = 'auth'):
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = get_app_handler()
        if not handler.filters:
            handler.addFilter(RequestContextFilter())
            handler.addFilter(AuthContextFilter())
        logger.addHandler(handler)
        logger.addHandler(slack_handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def init_audit_logger():
    logger = logging.getLogger("auth.audit")
    if not logger.handlers:
        handler = get_audit_handler()
        if not handler.filters:
            handler.addFilter(RequestContextFilter())
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def initialize_logging():
    is_valid, message = LoggingConfig.is_valid_config()
    if not is_valid:
        print(f"Warning: {message}")
    atexit.register(flush_handlers)
    print("Logging system initialized (chatab-auth)")
