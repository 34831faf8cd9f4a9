# serialstock/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from serialstock import __version__
from serialstock.api.errors import inventory_error_handler
from serialstock.api.routers.batches import router as batches_router
from serialstock.api.routers.bulk import router as bulk_router
from serialstock.api.routers.deliveries import router as deliveries_router
from serialstock.api.routers.inventory import router as inventory_router
from serialstock.api.routers.items import router as items_router
from serialstock.api.routers.returns import router as returns_router
from serialstock.api.routers.serials import router as serials_router
from serialstock.core.config import get_settings
from serialstock.core.logging import setup_logging
from serialstock.db.session import close_engines, create_all
from serialstock.metrics import router as metrics_router
from serialstock.services.errors import InventoryError

logger = logging.getLogger("serialstock")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    # dev 环境直接按 ORM 建表；test / prod 走 alembic 或测试夹具
    if settings.ENV.lower() == "dev":
        await create_all()
    logger.info("serialstock %s started (env=%s)", __version__, settings.ENV)
    yield
    await close_engines()


app = FastAPI(
    title="SerialStock",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


@app.exception_handler(InventoryError)
async def _inventory_exc(req: Request, exc: InventoryError):
    return inventory_error_handler(req, exc)


@app.exception_handler(RequestValidationError)
async def _validation_exc(_req: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.exception_handler(HTTPException)
async def _http_exc(_req: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def _unhandled_exc(_req: Request, exc: Exception):
    logger.exception("UNHANDLED_EXC: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "INTERNAL_ERROR"})


# ===========================
#          挂载路由
# ===========================
# 收货 / 批次
app.include_router(batches_router)
app.include_router(bulk_router)

# 单件 / 序列号
app.include_router(items_router)
app.include_router(serials_router)

# 出库 / 退货
app.include_router(deliveries_router)
app.include_router(returns_router)

# 查询 / 汇总
app.include_router(inventory_router)

# 观测
app.include_router(metrics_router)


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "version": __version__}
