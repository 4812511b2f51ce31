"""Calculator deployment and ownership API routes."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from reserve_ledger.api.deps import require_owner
from reserve_ledger.api.schemas import (
    CalculatorDeployRequest,
    CalculatorResponse,
    OwnershipResponse,
    OwnershipTransferRequest,
)
from reserve_ledger.models.calculator import CalculatorDeployment
from reserve_ledger.models.database import get_db
from reserve_ledger.services.calculators import calculator_service
from reserve_ledger.services.ownership import ownership_gate

router = APIRouter(prefix="/api", tags=["calculators"])


def _calculator_response(c: CalculatorDeployment) -> CalculatorResponse:
    return CalculatorResponse(
        address=c.address,
        kind=c.kind,
        router=c.router,
        price_feed=c.price_feed,
        holder=c.holder,
        asset=c.asset,
        created_at=c.created_at,
    )


@router.post("/calculators", response_model=CalculatorResponse)
async def deploy_calculator(
    req: CalculatorDeployRequest,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(require_owner),
):
    c = await calculator_service.deploy(
        db,
        req.kind,
        router=req.router,
        price_feed=req.price_feed,
        holder=req.holder,
        asset=req.asset,
    )
    return _calculator_response(c)


@router.get("/calculators/{address}", response_model=CalculatorResponse)
async def get_calculator(address: str, db: AsyncSession = Depends(get_db)):
    c = await calculator_service.get_deployment(db, address)
    if c is None:
        raise HTTPException(status_code=404, detail="Calculator not found")
    return _calculator_response(c)


@router.get("/ownership", response_model=OwnershipResponse)
async def get_owner():
    return OwnershipResponse(owner=ownership_gate.owner)


@router.post("/ownership/transfer", response_model=OwnershipResponse)
async def transfer_ownership(
    req: OwnershipTransferRequest, caller: str = Depends(require_owner)
):
    ownership_gate.transfer_ownership(caller, req.new_owner)
    return OwnershipResponse(owner=ownership_gate.owner)
