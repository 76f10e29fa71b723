from typing import Any

from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from src.core.errors.exceptions import (
    CoreException,
    InfrastructureException,
    InstanceNotFoundException,
    InstanceProcessingException,
    UnauthorizedException,
)
from src.core.errors.handlers import (
    CoreExceptionHandler,
    InfrastructureExceptionHandler,
    InstanceNotFoundExceptionHandler,
    InstanceProcessingExceptionHandler,
    RequestValidationExceptionHandler,
    UnauthorizedExceptionHandler,
    ValidationErrorExceptionHandler,
    as_exception_handler,
)
from src.system import routers as system_routers
from src.tracking import routers as tracking_routers

# Starlette resolves a handler through the exception's MRO, so token errors
# (UnauthorizedException) and store errors (InfrastructureException) are
# covered by their base handlers.
EXCEPTION_HANDLERS: tuple[tuple[type[Exception], Any], ...] = (
    (InfrastructureException, InfrastructureExceptionHandler()),
    (RequestValidationError, RequestValidationExceptionHandler()),
    (ValidationError, ValidationErrorExceptionHandler()),
    (InstanceNotFoundException, InstanceNotFoundExceptionHandler()),
    (InstanceProcessingException, InstanceProcessingExceptionHandler()),
    (UnauthorizedException, UnauthorizedExceptionHandler()),
    (CoreException, CoreExceptionHandler()),
)


def include_routers(app: FastAPI) -> None:
    """
    Mount the versioned tracking and admin API under ``/v1`` and the
    unversioned system endpoints at the root.
    """
    v1_router = APIRouter()
    v1_router.include_router(tracking_routers.router)

    app.include_router(v1_router, prefix="/v1")
    app.include_router(system_routers.router, tags=["System"])


def include_exceptions_handlers(app: FastAPI) -> None:
    for exc_class, handler in EXCEPTION_HANDLERS:
        app.add_exception_handler(exc_class, as_exception_handler(handler))
