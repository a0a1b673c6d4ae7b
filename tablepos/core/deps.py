# tablepos/core/deps.py

from fastapi import HTTPException, Request, status

from tablepos.core.errors import (
    POSError,
    PartialCheckoutFailure,
    TransportError,
    UnknownMenuItem,
    ValidationError,
)


def get_context(request: Request):
    return request.app.state.context


def http_error(exc: POSError) -> HTTPException:
    """Translate a core error into the response the client sees."""
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    if isinstance(exc, UnknownMenuItem):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    if isinstance(exc, PartialCheckoutFailure):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "sale_id": exc.sale_id,
                "table_id": exc.table_id,
                "request_id": exc.request_id,
            },
        )

    if isinstance(exc, TransportError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Store unavailable, please retry",
        )

    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Unable to complete request",
    )
