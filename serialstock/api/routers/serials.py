# serialstock/api/routers/serials.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.api.deps import get_session
from serialstock.schemas.serial import LedgerEventOut, SerialValidation
from serialstock.services.serial_assign_service import SerialAssignService

router = APIRouter(prefix="/serials", tags=["serials"])

svc = SerialAssignService()


@router.get("/{serial_number}", response_model=SerialValidation)
async def validate_serial_number(
    serial_number: str,
    session: AsyncSession = Depends(get_session),
) -> SerialValidation:
    # 不存在时返回 200 + exists=false，而不是 404
    return await svc.validate(session, serial_number)


@router.get("/{serial_number}/history", response_model=List[LedgerEventOut])
async def serial_history(
    serial_number: str,
    session: AsyncSession = Depends(get_session),
) -> List[LedgerEventOut]:
    rows = await svc.history(session, serial_number)
    return [LedgerEventOut.model_validate(r) for r in rows]
