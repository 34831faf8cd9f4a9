# serialstock/api/routers/inventory.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.api.deps import get_session
from serialstock.schemas.batch import ItemOut
from serialstock.schemas.summary import InventoryStats, SkuSummary
from serialstock.services.delivery_service import DeliveryService
from serialstock.services.inventory_query_service import InventoryQueryService

router = APIRouter(prefix="/inventory", tags=["inventory"])

delivery_svc = DeliveryService()
query = InventoryQueryService()


@router.get("/available", response_model=List[ItemOut])
async def available_items(
    sku: str = Query(..., min_length=1, description="按 SKU 过滤，FIFO 顺序返回"),
    session: AsyncSession = Depends(get_session),
) -> List[ItemOut]:
    items = await delivery_svc.get_available_items(session, sku=sku)
    return [ItemOut.model_validate(it) for it in items]


@router.get("/summary", response_model=List[SkuSummary])
async def summary_by_sku(session: AsyncSession = Depends(get_session)) -> List[SkuSummary]:
    return await query.summary_by_sku(session)


@router.get("/stats", response_model=InventoryStats)
async def inventory_stats(session: AsyncSession = Depends(get_session)) -> InventoryStats:
    return await query.stats(session)
