from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, render_template

from pastebin.api.dependencies import get_paste_service
from pastebin.api.pastes import log_storage_error
from pastebin.domain.errors import PasteNotFoundError, PasteStorageError


pages_bp = Blueprint("pages", __name__)

_TEXT = {"Content-Type": "text/plain; charset=utf-8"}


@pages_bp.route("/p/<paste_id>", methods=["GET"])
def view_paste(paste_id: str):
    """Render a paste as an HTML page. Counts as a view, like the API read."""

    paste_service = get_paste_service()
    try:
        dto = paste_service.retrieve_paste_for_view(paste_id)
    except PasteNotFoundError:
        return "Not Found", HTTPStatus.NOT_FOUND, _TEXT
    except PasteStorageError as exc:
        log_storage_error(exc)
        return "Server Error", HTTPStatus.INTERNAL_SERVER_ERROR, _TEXT

    return render_template("paste.html", content=dto["content"]), HTTPStatus.OK
