# serialstock/metrics.py
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    generate_latest,
    multiprocess,
)

# 业务指标（只计成功提交的操作；失败由日志 / Problem 响应体现）
BATCHES = Counter("serialstock_batches_created_total", "Batches created", ["source"])
SERIALS = Counter("serialstock_serials_assigned_total", "Serial numbers bound", ["path"])
BULK_PAIRS = Counter("serialstock_bulk_pairs_total", "Bulk assignment pairs", ["result"])
DELIVERIES = Counter("serialstock_deliveries_total", "Deliveries committed", ["mode"])
RETURNS = Counter("serialstock_returns_total", "Returns recorded", ["restock"])
RETURN_DECISIONS = Counter(
    "serialstock_return_decisions_total", "Return decisions made", ["decision"]
)
TX_CONFLICTS = Counter(
    "serialstock_tx_conflicts_total", "Store write conflicts seen by TxManager", ["outcome"]
)

router = APIRouter(tags=["metrics"])


@router.get("/metrics")
def metrics() -> Response:
    """
    单进程直接导出默认 REGISTRY；
    设置了 PROMETHEUS_MULTIPROC_DIR 时合并各 worker 分片。
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
