# serialstock/api/routers/deliveries.py
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.api.deps import get_session
from serialstock.schemas.delivery import DeliveryIn, DeliveryRequest, DeliveryResult
from serialstock.services.delivery_service import DeliveryService

router = APIRouter(prefix="/deliveries", tags=["deliveries"])

svc = DeliveryService()


@router.post("", response_model=DeliveryResult, status_code=status.HTTP_201_CREATED)
async def deliver(
    payload: DeliveryIn,
    session: AsyncSession = Depends(get_session),
) -> DeliveryResult:
    request = DeliveryRequest.model_validate(payload.model_dump(exclude={"actor"}))
    return await svc.deliver(session, request=request, actor=payload.actor)
