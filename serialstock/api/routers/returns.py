# serialstock/api/routers/returns.py
from __future__ import annotations

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from serialstock.api.deps import get_session
from serialstock.schemas.returns import (
    ReturnDecisionIn,
    ReturnIn,
    ReturnOut,
    ReturnResult,
    ReturnStats,
)
from serialstock.services.return_service import ReturnService

router = APIRouter(prefix="/returns", tags=["returns"])

svc = ReturnService()


@router.post("", response_model=ReturnResult, status_code=status.HTTP_201_CREATED)
async def record_return(
    payload: ReturnIn,
    session: AsyncSession = Depends(get_session),
) -> ReturnResult:
    return await svc.record_return(
        session,
        serial_number=payload.serial_number,
        actor=payload.actor,
        lpn_number=payload.lpn_number,
        tracking_number=payload.tracking_number,
        condition=payload.condition,
        reason=payload.reason,
        notes=payload.notes,
        restock=payload.restock,
    )


@router.get("", response_model=List[ReturnOut])
async def list_returns(
    serial_number: Optional[str] = Query(None, min_length=1),
    decision: Optional[Literal["pending", "move_to_inventory", "keep_in_returns"]] = Query(None),
    session: AsyncSession = Depends(get_session),
):
    return await svc.list_returns(session, serial_number=serial_number, decision=decision)


@router.get("/stats", response_model=ReturnStats)
async def return_stats(session: AsyncSession = Depends(get_session)) -> ReturnStats:
    return await svc.stats(session)


@router.get("/{return_id}", response_model=ReturnOut)
async def get_return(return_id: int, session: AsyncSession = Depends(get_session)):
    return await svc.get_return(session, return_id=return_id)


@router.post("/{return_id}/decision", response_model=ReturnOut)
async def decide_return(
    return_id: int,
    payload: ReturnDecisionIn,
    session: AsyncSession = Depends(get_session),
):
    return await svc.decide(
        session,
        return_id=return_id,
        decision=payload.decision,
        actor=payload.actor,
        notes=payload.notes,
    )
