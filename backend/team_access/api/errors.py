import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from team_access.core.errors import DomainError

logger = logging.getLogger(__name__)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Map DomainError subclasses to their status code + structured detail"""

    if exc.status_code >= 500:
        logger.error(f"Domain error on {request.method} {request.url.path}: {exc.code} {exc.message}")
    else:
        logger.warning(f"Domain error on {request.method} {request.url.path}: {exc.code} {exc.message}")

    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


def install_error_handlers(app: FastAPI) -> FastAPI:
    app.add_exception_handler(DomainError, domain_error_handler)
    return app
