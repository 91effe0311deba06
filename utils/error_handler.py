"""Centralized error handling for the application"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import sys
import traceback

logger = logging.getLogger(__name__)


class WhatsAppAPIError(Exception):
    """Custom exception for WhatsApp API errors"""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class LLMError(Exception):
    """
    Custom exception for language-model errors

    user_message is the friendly Indonesian text that may be shown to the
    customer; message and details stay in the logs.
    """
    def __init__(self, message: str, user_message: str, details: dict = None):
        self.message = message
        self.user_message = user_message
        self.details = details or {}
        super().__init__(self.message)


class ContentStoreError(Exception):
    """Custom exception for content store errors"""
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AdminCommandError(Exception):
    """Raised by admin/owner command parsers for malformed arguments"""
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


async def whatsapp_api_error_handler(request: Request, exc: WhatsAppAPIError):
    """Handle WhatsApp API errors"""
    logger.error(
        f"WhatsApp API Error: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "whatsapp_api_error",
            "message": exc.message,
            "details": exc.details
        }
    )


async def llm_error_handler(request: Request, exc: LLMError):
    """Handle LLM errors"""
    logger.error(
        f"LLM Error: {exc.message}",
        extra={
            "details": exc.details,
            "path": request.url.path
        }
    )

    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "error": "llm_error",
            "message": exc.user_message,
            "details": exc.details
        }
    )


async def content_store_error_handler(request: Request, exc: ContentStoreError):
    """Handle content store errors"""
    logger.error(
        f"Content Store Error: {exc.message}",
        extra={
            "details": exc.details,
            "path": request.url.path
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "content_store_error",
            "message": "Content store operation failed",
            "details": exc.details
        }
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors"""
    logger.warning(
        f"Validation Error: {exc.errors()}",
        extra={"path": request.url.path}
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Invalid request data",
            "details": jsonable_encoder(exc.errors())
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions"""
    logger.warning(
        f"HTTP Exception: {exc.detail}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "http_error",
            "message": exc.detail
        }
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions"""
    logger.error(
        f"Unexpected Error: {str(exc)}",
        extra={
            "path": request.url.path,
            "traceback": traceback.format_exc()
        }
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred"
        }
    )


def register_error_handlers(app):
    """Register all error handlers with the FastAPI app"""
    app.add_exception_handler(WhatsAppAPIError, whatsapp_api_error_handler)
    app.add_exception_handler(LLMError, llm_error_handler)
    app.add_exception_handler(ContentStoreError, content_store_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)


def log_uncaught_exception(exc_type, exc_value, exc_traceback):
    """sys.excepthook: log the crash, then let the process exit"""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical("💥 Uncaught exception, shutting down",
                    exc_info=(exc_type, exc_value, exc_traceback))
    sys.exit(1)


def log_task_exception(loop, context: dict):
    """asyncio loop exception handler: log only, the loop keeps running"""
    exc = context.get("exception")
    logger.error(f"❌ Unhandled asyncio error: {context.get('message')}",
                 exc_info=(type(exc), exc, exc.__traceback__) if exc else None)
