"""
Gestionnaires d'exceptions utilisés par la factory.
- HTTPException: JSON {"detail": ...} pour tous les clients
- CheckoutError non interceptée: 400 avec message lisible (et erreurs de champ si présentes)
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from storefront.errors import CheckoutError, ValidationError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def json_http_errors(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(CheckoutError)
    async def checkout_errors(request: Request, exc: CheckoutError):
        logger.warning("checkout error path=%s type=%s err=%s", request.url.path, type(exc).__name__, exc.message)
        content = {"detail": exc.message}
        if isinstance(exc, ValidationError):
            content["field_errors"] = dict(exc.field_errors)
        return JSONResponse(status_code=400, content=content)
