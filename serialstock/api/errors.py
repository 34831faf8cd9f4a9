# serialstock/api/errors.py
from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from serialstock.api.problem import make_problem
from serialstock.services.errors import InventoryError

log = logging.getLogger(__name__)


def inventory_error_handler(_: Request, exc: InventoryError) -> JSONResponse:
    """引擎业务异常 → Problem 形状（放在 detail 下，与 HTTPException 保持一致）。"""
    if exc.http_status >= 500:
        log.warning("%s: %s %s", exc.code, exc.message, exc.context)
    return JSONResponse(
        status_code=exc.http_status,
        content={
            "detail": make_problem(
                status_code=exc.http_status,
                error_code=exc.code,
                message=exc.message,
                context=exc.context or None,
            )
        },
    )
