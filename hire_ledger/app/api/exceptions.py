from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.errors import HireLedgerError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(HireLedgerError)
    async def hire_ledger_error_handler(
        request: Request, exc: HireLedgerError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning(
                "request.store_unavailable",
                extra={"path": request.url.path, "error": type(exc).__name__},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": type(exc).__name__},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})
