"""
Audit and request logging middleware for the ChatAB auth service.
Credentials, OTP codes and tokens are masked before anything is logged.
"""
import json
import socket
import time
from datetime import datetime

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from app.logging.utils import get_app_logger, init_audit_logger
from app.logging.config import LoggingConfig
from app.middlewares.request_context import create_request_id, request_context, clear_request_context

# settings
from app.config.settings import AuthConfigs
configs = AuthConfigs()

MASK = '****'
SENSITIVE_BODY_FIELDS = {'password', 'otp', 'otpverifiedtoken', 'token'}
SENSITIVE_HEADERS = {'authorization', 'cookie'}


def mask_body(data):
    if isinstance(data, dict):
        return {
            k: (MASK if str(k).lower() in SENSITIVE_BODY_FIELDS else mask_body(v))
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [mask_body(item) for item in data]
    return data


def mask_headers(headers) -> dict:
    return {k: (MASK if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()}


class AuditMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, exclude_paths: list[str] | None = None):
        super().__init__(app)
        self.logger = get_app_logger('app.logging')
        self.exclude_audit_paths = exclude_paths or ['/health', '/docs', '/redoc', '/openapi.json']
        self.hostname = socket.gethostname()
        self.app_name = configs.APP_NAME
        self.version = configs.APP_VERSION

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = create_request_id()
        start_time = time.time()
        timestamp = datetime.now().isoformat()

        request_context.request_method = request.method
        request_context.request_path = request.url.path
        request_context.app_version = request.headers.get('x-app-version', '')

        should_audit = LoggingConfig.AUDIT_LOGGING_ENABLED and not any(
            request.url.path.startswith(p) for p in self.exclude_audit_paths
        )
        body_bytes = await request.body() if should_audit else b''

        try:
            response = await call_next(request)
            duration = (time.time() - start_time) * 1000
            if should_audit:
                audit_data = self._build_audit_data(request, response, body_bytes, duration, request_id, timestamp)
                init_audit_logger().info("Audit log", extra=audit_data)
            return response
        except Exception as exc:
            duration = (time.time() - start_time) * 1000
            self.logger.error(
                f"Exception: {request.method} {request.url.path} - {exc.__class__.__name__} ({duration:.0f}ms)",
                exc_info=True,
            )
            if should_audit:
                audit_data = self._build_audit_data(request, Response(status_code=500), body_bytes, duration, request_id, timestamp)
                audit_data['exception'] = exc.__class__.__name__
                init_audit_logger().info("Audit log (exception)", extra=audit_data)
            raise
        finally:
            clear_request_context()

    def _build_audit_data(
        self,
        request: Request,
        response: Response,
        body_bytes: bytes,
        duration: float,
        request_id: str,
        timestamp: str,
    ) -> dict:
        body_data = {}
        if body_bytes and 'application/json' in request.headers.get('content-type', ''):
            try:
                body_data = mask_body(json.loads(body_bytes.decode('utf-8')))
            except (ValueError, UnicodeDecodeError):
                body_data = {}

        # response bodies only for non-2xx, and only when enabled; streamed bodies are skipped
        status_code = getattr(response, 'status_code', 0)
        response_data = ''
        if LoggingConfig.CAPTURE_RESPONSE_BODY and not 200 <= status_code < 300:
            body = getattr(response, 'body', None)
            if body is not None and not hasattr(response, 'body_iterator'):
                try:
                    response_data = mask_body(json.loads(body.decode('utf-8')))
                except (ValueError, UnicodeDecodeError):
                    response_data = ''

        request_json = {
            "GET": dict(request.query_params),
            "BODY": body_data,
            "HEADERS": mask_headers(dict(request.headers)),
        }

        return {
            'duration': round(duration, 2),
            'hostname': self.hostname,
            'app_name': self.app_name,
            'request': request_json,
            'request_id': request_id,
            'request_method': request.method,
            'request_path': request.url.path,
            'response': response_data,
            'status_code': status_code,
            'timestamp': timestamp,
            'version': self.version,
        }
