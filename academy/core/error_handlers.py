from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
import logging

from .exceptions import AcademyException

logger = logging.getLogger(__name__)


def _error_body(message: str, code: str, retryable: bool = False, details=None) -> dict:
    body = {"success": False, "error": message, "code": code, "retryable": retryable}
    if details:
        body["details"] = details
    return body


async def academy_exception_handler(request: Request, exc: AcademyException):
    """Handle the service error taxonomy"""
    if exc.status_code >= 500:
        logger.error(f"Academy error: {exc.message} - Path: {request.url.path}")
    else:
        logger.info(f"{exc.code}: {exc.message} - Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.code, exc.retryable, exc.details)
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report schema failures as 400 with the first message up front"""
    errors = jsonable_encoder(exc.errors())
    message = errors[0].get("msg", "Invalid input") if errors else "Invalid input"
    return JSONResponse(
        status_code=400,
        content=_error_body(message, "VALIDATION_ERROR", details={"errors": errors})
    )


async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error: {exc.orig} - Path: {request.url.path}")
    return JSONResponse(
        status_code=409,
        content=_error_body("Record conflicts with existing data", "CONFLICT")
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.exception(f"Unexpected error: {str(exc)} - Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content=_error_body("Internal server error", "INTERNAL_ERROR")
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AcademyException, academy_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
