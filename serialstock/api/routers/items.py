# serialstock/api/routers/items.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.api.deps import get_session
from serialstock.schemas.batch import ItemOut, ItemReserveIn
from serialstock.schemas.delivery import DeliveryOut
from serialstock.schemas.serial import SerialAssignIn
from serialstock.services.delivery_service import DeliveryService
from serialstock.services.inventory_query_service import InventoryQueryService
from serialstock.services.serial_assign_service import SerialAssignService

router = APIRouter(prefix="/items", tags=["items"])

assigner = SerialAssignService()
delivery_svc = DeliveryService(assigner=assigner)
query = InventoryQueryService()


@router.get("/{item_id}", response_model=ItemOut)
async def get_item(
    item_id: int,
    session: AsyncSession = Depends(get_session),
) -> ItemOut:
    item = await query.get_item(session, item_id=item_id)
    return ItemOut.model_validate(item)


@router.post("/{item_id}/serial", response_model=ItemOut)
async def assign_serial_number(
    item_id: int,
    payload: SerialAssignIn,
    session: AsyncSession = Depends(get_session),
) -> ItemOut:
    item = await assigner.assign(
        session,
        item_id=item_id,
        serial_number=payload.serial_number,
        actor=payload.actor,
        notes=payload.notes,
    )
    return ItemOut.model_validate(item)


@router.post("/{item_id}/reserve", response_model=ItemOut)
async def reserve_item(
    item_id: int,
    payload: ItemReserveIn,
    session: AsyncSession = Depends(get_session),
) -> ItemOut:
    item = await delivery_svc.reserve_item(session, item_id=item_id, actor=payload.actor)
    return ItemOut.model_validate(item)


@router.get("/{item_id}/deliveries", response_model=List[DeliveryOut])
async def delivery_history(
    item_id: int,
    session: AsyncSession = Depends(get_session),
) -> List[DeliveryOut]:
    rows = await delivery_svc.delivery_history_for_item(session, item_id=item_id)
    return [DeliveryOut.model_validate(d) for d in rows]
