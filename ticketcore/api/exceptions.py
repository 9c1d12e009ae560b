import logging
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from ticketcore.domain.exceptions import AppError, NotFound, Conflict, Unauthorized, InvalidInput, Forbidden, \
    InvalidState, TamperedCode
from ticketcore.core.ctx import REQUEST_ID_CTX

logger = logging.getLogger("ticketcore.api")

MEDIA_TYPE = "application/problem+json"

_STATUS_BY_CLASS: dict[type[AppError], int] = {
    NotFound: status.HTTP_404_NOT_FOUND,
    Unauthorized: status.HTTP_401_UNAUTHORIZED,
    Forbidden: status.HTTP_403_FORBIDDEN,
    Conflict: status.HTTP_409_CONFLICT,
    InvalidState: status.HTTP_409_CONFLICT,
    TamperedCode: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    AppError: status.HTTP_400_BAD_REQUEST,
}

_TITLES: dict[type[AppError], str] = {
    NotFound: "Not Found",
    Unauthorized: "Unauthorized",
    Forbidden: "Forbidden",
    Conflict: "Conflict",
    InvalidState: "Invalid State",
    TamperedCode: "Tampered Code",
    InvalidInput: "Bad Request",
    AppError: "Application Error",
}


def _www_authenticate_header(error_description: str | None = None) -> str:
    attributes = ['realm="api"', 'error="invalid_token"']
    if error_description:
        attributes.append(f'error_description="{error_description}"')
    return "Bearer " + ", ".join(attributes)


def _lookup(exc: AppError, table: dict, default):
    for cls in type(exc).mro():
        if cls in table:
            return table[cls]
    return default


def problem_response(
    request: Request,
    *,
    http_status: int,
    title: str,
    detail: str | None = None,
    extra: dict | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = {
        "status": http_status,
        "title": title,
        "detail": detail,
        "instance": str(request.url),
    }
    req_id = REQUEST_ID_CTX.get()
    if req_id:
        body["trace_id"] = req_id
    if extra:
        body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=http_status, content=body, media_type=MEDIA_TYPE, headers=headers or {})


def register_error_handler(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError):
        status_code = _lookup(exc, _STATUS_BY_CLASS, status.HTTP_400_BAD_REQUEST)
        detail = str(exc) or None
        if isinstance(exc, TamperedCode):
            logger.warning("Tampered verification code rejected: %s", exc.ctx)

        headers = None
        if isinstance(exc, Unauthorized):
            headers = {"WWW-Authenticate": _www_authenticate_header(detail)}

        return problem_response(
            request,
            http_status=status_code,
            title=_lookup(exc, _TITLES, "Application Error"),
            detail=detail,
            extra={"context": exc.ctx or None},
            headers=headers
        )
