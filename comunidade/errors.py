"""Domain errors raised by the community services.

Routers never translate these by hand: ``install_error_handlers`` maps every
``CommunityError`` to a JSON response carrying its HTTP status.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CommunityError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Erro inesperado"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def code(self) -> str:
        return type(self).__name__


class ValidationError(CommunityError):
    """Malformed input; the caller can correct it and retry."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Dados inválidos"


class Forbidden(CommunityError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Você não tem permissão para realizar esta ação"


class NotFound(CommunityError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Não encontrado"


class InvalidTransition(CommunityError):
    """State-machine violation. Clients treat it as stale state and refresh."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Ação inválida para o estado atual"


class Conflict(CommunityError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflito de dados"


class TenantUnavailable(CommunityError):
    """The city exists but its subscription is not valid."""

    status_code = status.HTTP_423_LOCKED
    default_detail = "Esta cidade não está disponível no momento"


class ServiceUnavailable(CommunityError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Serviço temporariamente indisponível"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CommunityError)
    async def community_error_handler(request: Request, exc: CommunityError):  # type: ignore[override]
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "code": exc.code},
        )
