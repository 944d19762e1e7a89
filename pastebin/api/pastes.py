from __future__ import annotations

import logging
from http import HTTPStatus

from flask import Blueprint, request, url_for
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from pastebin.api.dependencies import get_paste_service
from pastebin.api.schemas import (
    ErrorResponse,
    HealthResponse,
    PasteCreatedResponse,
    PasteCreateRequest,
    PasteViewResponse,
)
from pastebin.db import ping_database
from pastebin.domain.errors import (
    InvalidPasteParameters,
    PasteNotFoundError,
    PasteStorageError,
)
from pastebin.observability import get_correlation_id


logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")

# Missing, malformed, expired and used-up pastes all get this exact body.
NOT_FOUND_BODY = ErrorResponse(error="Not found").model_dump()
STORAGE_ERROR_BODY = ErrorResponse(error="database error").model_dump()


def log_storage_error(exc: PasteStorageError) -> None:
    """Log a storage failure with its cause; callers reply without the details."""
    logger.error(
        "Storage failure",
        exc_info=exc,
        extra={
            "event": "storage_error",
            "error_type": type(exc.__cause__ or exc).__name__,
            "correlation_id": get_correlation_id(),
        },
    )


@api_bp.route("/healthz", methods=["GET"])
def healthz() -> tuple[dict, int]:
    """Report whether the database answers a trivial query."""

    try:
        ping_database()
    except SQLAlchemyError as exc:
        logger.error(
            "Health check failed",
            extra={
                "event": "health_check_failed",
                "error_type": type(exc).__name__,
                "correlation_id": get_correlation_id(),
            },
        )
        return HealthResponse(ok=False).model_dump(), HTTPStatus.INTERNAL_SERVER_ERROR

    return HealthResponse().model_dump(), HTTPStatus.OK


@api_bp.route("/pastes", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a new paste.

    Request shape is checked by Pydantic; business rules by the service layer.
    """
    try:
        payload = PasteCreateRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as exc:
        details = [
            f"{'.'.join(str(part) for part in error['loc']) or 'body'}: {error['msg']}"
            for error in exc.errors()
        ]
        return {"error": "Invalid request body", "details": details}, HTTPStatus.BAD_REQUEST

    paste_service = get_paste_service()
    try:
        dto = paste_service.create_paste(
            content=payload.content,
            ttl_seconds=payload.ttl_seconds,
            max_views=payload.max_views,
        )
    except InvalidPasteParameters as exc:
        return ErrorResponse(error=str(exc)).model_dump(), HTTPStatus.BAD_REQUEST
    except PasteStorageError as exc:
        log_storage_error(exc)
        return STORAGE_ERROR_BODY, HTTPStatus.INTERNAL_SERVER_ERROR

    body = PasteCreatedResponse(
        id=dto["id"],
        url=url_for("pages.view_paste", paste_id=dto["id"], _external=True),
    )
    return body.model_dump(), HTTPStatus.OK


@api_bp.route("/pastes/<paste_id>", methods=["GET"])
def get_paste(paste_id: str) -> tuple[dict, int]:
    paste_service = get_paste_service()
    try:
        dto = paste_service.retrieve_paste_for_view(paste_id)
    except PasteNotFoundError:
        return NOT_FOUND_BODY, HTTPStatus.NOT_FOUND
    except PasteStorageError as exc:
        log_storage_error(exc)
        return STORAGE_ERROR_BODY, HTTPStatus.INTERNAL_SERVER_ERROR

    return PasteViewResponse.model_validate(dto).model_dump(), HTTPStatus.OK
