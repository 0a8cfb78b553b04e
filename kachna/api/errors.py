"""
kachna.api.errors — Domain exception → HTTP response mapping
=============================================================

Every :class:`~kachna.exceptions.KachnaError` carries its own status code
and a machine-readable ``detail``.  Exceptions that name offending board
games add them to the body so the client can highlight them.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kachna.exceptions import (
    CategoryHasBoardGamesException,
    GameUnavailableException,
    KachnaError,
    ManipulationFailedError,
)

logger = logging.getLogger(__name__)


def _body(exc: KachnaError) -> dict:
    body: dict = {"detail": exc.detail}
    if isinstance(exc, GameUnavailableException):
        body["unavailable_board_game_ids"] = exc.unavailable_board_game_ids
    elif isinstance(exc, CategoryHasBoardGamesException):
        body["board_game_ids"] = exc.board_game_ids
    return body


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(KachnaError)
    async def handle_kachna_error(request: Request, exc: KachnaError) -> JSONResponse:
        if isinstance(exc, ManipulationFailedError):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=_body(exc))
