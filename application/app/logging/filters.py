"""
Logging filters that copy request context onto log records
"""
import logging
import uuid
from app.middlewares.request_context import request_context


class RequestContextFilter(logging.Filter):
    def filter(self, record):
        record.request_id = getattr(request_context, 'request_id', None) or str(uuid.uuid4())
        record.request_method = getattr(request_context, 'request_method', '') or ''
        record.request_path = getattr(request_context, 'request_path', '') or ''
        record.user_id = getattr(request_context, 'user_id', '') or ''
        record.app_version = getattr(request_context, 'app_version', '') or ''
        return True


class AuthContextFilter(logging.Filter):
    def filter(self, record):
        record.email = getattr(request_context, 'email', '') or ''
        return True
