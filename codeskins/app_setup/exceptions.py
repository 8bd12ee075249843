"""
Gestionnaires d'exceptions utilisés par la factory.
- CommerceError: {success: false, message, code, data?} avec le status porté par l'erreur.
- HTTPException (401/403 des dépendances d'auth, 404 de routage...): {success: false, message}.
- Validation du body (pydantic): 400 au lieu du 422 FastAPI par défaut.
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException

from codeskins.errors import CommerceError
from codeskins.utils.responses import fail

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CommerceError)
    async def commerce_error_handler(request: Request, exc: CommerceError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
        return fail(exc.message, exc.status_code, code=exc.code, data=exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        response = fail(str(exc.detail), exc.status_code)
        for key, value in (getattr(exc, "headers", None) or {}).items():
            response.headers[key] = value
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return fail(
            "Données invalides",
            400,
            code="validation_error",
            data={"errors": jsonable_encoder(exc.errors())},
        )
