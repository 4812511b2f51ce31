"""Reserve, vault position and valuation API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reserve_ledger.api.deps import require_owner
from reserve_ledger.api.schemas import (
    ReserveCreateRequest,
    ReserveResponse,
    VaultAddRequest,
    VaultPositionResponse,
    VaultOwnerResponse,
    ReserveValueResponse,
    LedgerEventResponse,
)
from reserve_ledger.errors import ReserveNotFound
from reserve_ledger.models.database import get_db
from reserve_ledger.models.reserve import Reserve, ReserveVault
from reserve_ledger.services.reserves import reserve_service
from reserve_ledger.services.valuation import valuation_service

router = APIRouter(prefix="/api", tags=["reserves"])


def _reserve_response(r: Reserve) -> ReserveResponse:
    return ReserveResponse(
        reserve_id=r.reserve_id,
        name=r.name,
        description=r.description,
        classification=r.classification,
        created_at=r.created_at,
    )


def _position_response(v: ReserveVault) -> VaultPositionResponse:
    return VaultPositionResponse(
        index=v.position,
        vault=v.vault,
        calculator=v.calculator,
        weight_numerator=v.weight_numerator,
        weight_denominator=v.weight_denominator,
        added_at=v.added_at,
    )


@router.post("/reserves", response_model=ReserveResponse)
async def create_reserve(
    req: ReserveCreateRequest,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(require_owner),
):
    r = await reserve_service.create_reserve(
        db, req.name, req.description, req.classification
    )
    return _reserve_response(r)


@router.get("/reserves", response_model=list[ReserveResponse])
async def list_reserves(db: AsyncSession = Depends(get_db)):
    reserves = await reserve_service.list_reserves(db)
    return [_reserve_response(r) for r in reserves]


@router.get("/reserves/{reserve_id}", response_model=ReserveResponse)
async def get_reserve(reserve_id: str, db: AsyncSession = Depends(get_db)):
    r = await reserve_service.get_reserve(db, reserve_id)
    if r is None:
        raise ReserveNotFound()
    return _reserve_response(r)


@router.delete("/reserves/{reserve_id}")
async def delete_reserve(
    reserve_id: str,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(require_owner),
):
    await reserve_service.delete_reserve(db, reserve_id)
    return {"status": "ok", "reserve_id": reserve_id.lower()}


@router.get("/reserves/{reserve_id}/vaults", response_model=list[VaultPositionResponse])
async def get_reserve_vaults(reserve_id: str, db: AsyncSession = Depends(get_db)):
    positions = await reserve_service.get_reserve_vaults(db, reserve_id)
    return [_position_response(v) for v in positions]


@router.post("/reserves/{reserve_id}/vaults", response_model=VaultPositionResponse)
async def add_reserve_vault(
    reserve_id: str,
    req: VaultAddRequest,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(require_owner),
):
    v = await reserve_service.add_reserve_vault(
        db,
        reserve_id,
        req.vault,
        req.calculator,
        req.weight_numerator,
        req.weight_denominator,
    )
    return _position_response(v)


@router.delete("/reserves/{reserve_id}/vaults/{index}")
async def remove_reserve_vault(
    reserve_id: str,
    index: int,
    db: AsyncSession = Depends(get_db),
    caller: str = Depends(require_owner),
):
    removed = await reserve_service.remove_reserve_vault(db, reserve_id, index)
    return {"status": "ok", "vault": removed.vault}


@router.get("/reserves/{reserve_id}/value", response_model=ReserveValueResponse)
async def get_reserve_value(reserve_id: str, db: AsyncSession = Depends(get_db)):
    valuation = await valuation_service.get_reserve_value(db, reserve_id)
    return ReserveValueResponse(reserve_id=reserve_id.lower(), **valuation)


@router.get("/reserves/{reserve_id}/events", response_model=list[LedgerEventResponse])
async def get_reserve_events(reserve_id: str, db: AsyncSession = Depends(get_db)):
    events = await reserve_service.get_events(db, reserve_id)
    return [
        LedgerEventResponse(
            id=e.id,
            kind=e.kind,
            reserve_id=e.reserve_id,
            vault=e.vault,
            created_at=e.created_at,
        )
        for e in events
    ]


@router.get("/vaults/{vault}/owner", response_model=VaultOwnerResponse)
async def get_vault_owner(vault: str, db: AsyncSession = Depends(get_db)):
    reserve_id = await reserve_service.vault_owner(db, vault)
    return VaultOwnerResponse(vault=vault.lower(), reserve_id=reserve_id)
