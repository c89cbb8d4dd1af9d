"""
Error taxonomy and the exception handlers that render it.

Every failure leaves the API as ``{"success": false, "message": ...}`` with
the status code of its class; validation failures also carry ``errors``.
"""
import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger('charamsukh')


class AppError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, Any]]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = 'Validation failed'

    @classmethod
    def field(cls, field: str, message: str) -> 'ValidationError':
        return cls(message, errors=[{'field': field, 'message': message}])


class InvalidCredentials(AppError):
    status_code = 401
    default_message = 'Invalid credentials'


class Unauthenticated(AppError):
    status_code = 401
    default_message = 'Token is not valid'


class Forbidden(AppError):
    status_code = 403
    default_message = 'Access denied. Insufficient permissions.'


class NotFound(AppError):
    status_code = 404
    default_message = 'Not found'


class Conflict(AppError):
    status_code = 409
    default_message = 'Already exists'


class ServiceUnavailable(AppError):
    status_code = 503
    default_message = 'Service temporarily unavailable'


def error_body(message: str, errors: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {'success': False, 'message': message}
    if errors:
        body['errors'] = errors
    return body


def _field_name(loc) -> str:
    # drop the 'body'/'query'/'path' prefix pydantic puts in front
    parts = [str(p) for p in loc if p not in ('body', 'query', 'path', 'form', 'header')]
    return '.'.join(parts) or 'request'


def field_errors(raw_errors) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into 'field'/'message' pairs"""
    return [{'field': _field_name(e.get('loc', ())), 'message': e.get('msg', 'Invalid value')} for e in raw_errors]


def install_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error({'msg': 'app_error', 'path': request.url.path, 'error': exc.message})
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.errors))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = field_errors(exc.errors())
        return JSONResponse(status_code=400, content=error_body('Validation failed', errors))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else 'Request failed'
        if exc.status_code == 404 and message == 'Not Found':
            message = 'Route not found'
        return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=getattr(exc, 'headers', None))

    @app.exception_handler(OperationalError)
    @app.exception_handler(InterfaceError)
    async def datastore_error_handler(request: Request, exc: Exception):
        logger.error({'msg': 'datastore_unavailable', 'path': request.url.path, 'error': str(exc)})
        return JSONResponse(status_code=503, content=error_body(ServiceUnavailable.default_message))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception({'msg': 'unhandled_error', 'method': request.method, 'path': request.url.path})
        body = error_body(AppError.default_message)
        settings = getattr(request.app.state, 'settings', None)
        # stack traces only leave the process in development
        if settings is not None and settings.is_development:
            body['error'] = str(exc)
            body['stack'] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=500, content=body)
