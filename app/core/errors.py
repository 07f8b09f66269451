from __future__ import annotations

import enum
import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Erro de regra de negócio.

    ``message`` é o texto específico exibido para equipe/admin; ``public_message``
    é a versão genérica mostrada ao cliente anônimo.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Request could not be completed"

    def __init__(self, message: str, *, public_message: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if public_message is not None:
            self.public_message = public_message


class ValidationError(DomainError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    public_message = "Invalid request"


class RejectionReason(str, enum.Enum):
    LOW_BALANCE = "low_balance"
    INACTIVE = "inactive"


class OrderRejected(DomainError):
    status_code = status.HTTP_409_CONFLICT
    public_message = "This restaurant is not accepting orders right now"

    def __init__(self, reason: RejectionReason) -> None:
        if reason == RejectionReason.INACTIVE:
            message = "Restaurant is inactive"
        else:
            message = "Restaurant balance is below the order acceptance threshold"
        super().__init__(message)
        self.reason = reason


class InvalidTransition(DomainError):
    status_code = status.HTTP_409_CONFLICT
    public_message = "This order can no longer be changed"


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    public_message = "Not found"


class Forbidden(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    public_message = "Forbidden"


def to_http_exception(exc: DomainError, *, public: bool = False) -> HTTPException:
    if isinstance(exc, ValidationError) and public:
        # mensagens de validação já são seguras para o cliente
        return HTTPException(status_code=exc.status_code, detail=exc.message)
    detail = exc.public_message if public else exc.message
    return HTTPException(status_code=exc.status_code, detail=detail)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.warning(
        "domain error %s on %s %s: %s",
        type(exc).__name__,
        request.method,
        request.url.path,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
