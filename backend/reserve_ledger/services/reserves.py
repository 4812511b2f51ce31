"""Reserve registry and vault ledger service.

Each mutation runs in one transaction: the reserve-side change, the reverse
lookup (the unique ``reserve_vault.vault`` column) and the ledger event are
committed together or rolled back together. Mutations are serialized through
one lock so they apply in submission order.
"""

import asyncio
import logging

from sqlalchemy import select, delete, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reserve_ledger.addresses import derive_id, is_address, is_zero_address, normalize_address
from reserve_ledger.errors import (
    ReserveNotFound,
    VaultAlreadyBound,
    InvalidCalculator,
    InvalidVault,
    InvalidWeight,
    IndexOutOfRange,
)
from reserve_ledger.models.reserve import Reserve, ReserveVault, LedgerEvent
from reserve_ledger.services.calculators import CalculatorService, calculator_service

logger = logging.getLogger(__name__)

RESERVE_CREATED = "ReserveCreated"
RESERVE_DELETED = "ReserveDeleted"
VAULT_ADDED = "VaultAdded"
VAULT_REMOVED = "VaultRemoved"


class ReserveService:
    """Manages reserves and the vault positions bound to them."""

    def __init__(self, calculators: CalculatorService = calculator_service):
        self.calculators = calculators
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    def _mutation_lock(self) -> asyncio.Lock:
        # An asyncio.Lock is tied to the loop it first waits on; keep one per loop
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def _commit(self, session: AsyncSession) -> None:
        try:
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    async def _require_reserve(self, session: AsyncSession, reserve_id: str) -> Reserve:
        reserve = await self.get_reserve(session, reserve_id)
        if reserve is None:
            raise ReserveNotFound()
        return reserve

    async def create_reserve(
        self, session: AsyncSession, name: str, description: str, classification: int
    ) -> Reserve:
        async with self._mutation_lock():
            reserve = Reserve(
                name=name, description=description, classification=classification
            )
            try:
                session.add(reserve)
                await session.flush()
                reserve.reserve_id = derive_id(
                    "reserve", reserve.seq, name, description, classification
                )
                session.add(LedgerEvent(kind=RESERVE_CREATED, reserve_id=reserve.reserve_id))
            except Exception:
                await session.rollback()
                raise
            await self._commit(session)
        logger.info(f"Created reserve {reserve.name} ({reserve.reserve_id})")
        return reserve

    async def get_reserve(self, session: AsyncSession, reserve_id: str) -> Reserve | None:
        result = await session.execute(
            select(Reserve).where(Reserve.reserve_id == reserve_id.lower())
        )
        return result.scalar_one_or_none()

    async def list_reserves(self, session: AsyncSession) -> list[Reserve]:
        result = await session.execute(select(Reserve).order_by(Reserve.seq))
        return list(result.scalars().all())

    async def delete_reserve(self, session: AsyncSession, reserve_id: str) -> None:
        async with self._mutation_lock():
            reserve = await self._require_reserve(session, reserve_id)
            reserve_id = reserve.reserve_id
            try:
                freed = await session.execute(
                    select(ReserveVault.vault).where(ReserveVault.reserve_id == reserve_id)
                )
                vaults = list(freed.scalars().all())
                await session.execute(
                    delete(ReserveVault)
                    .where(ReserveVault.reserve_id == reserve_id)
                    .execution_options(synchronize_session="fetch")
                )
                await session.delete(reserve)
                session.add(LedgerEvent(kind=RESERVE_DELETED, reserve_id=reserve_id))
            except Exception:
                await session.rollback()
                raise
            await self._commit(session)
        logger.info(f"Deleted reserve {reserve_id}, freed {len(vaults)} vaults")

    async def get_reserve_vaults(
        self, session: AsyncSession, reserve_id: str
    ) -> list[ReserveVault]:
        reserve = await self._require_reserve(session, reserve_id)
        result = await session.execute(
            select(ReserveVault)
            .where(ReserveVault.reserve_id == reserve.reserve_id)
            .order_by(ReserveVault.position)
        )
        return list(result.scalars().all())

    async def vault_owner(self, session: AsyncSession, vault: str) -> str | None:
        result = await session.execute(
            select(ReserveVault.reserve_id).where(ReserveVault.vault == vault.lower())
        )
        return result.scalar_one_or_none()

    async def add_reserve_vault(
        self,
        session: AsyncSession,
        reserve_id: str,
        vault: str,
        calculator: str | None,
        weight_numerator: int,
        weight_denominator: int,
    ) -> ReserveVault:
        if not is_address(vault):
            raise InvalidVault(f"invalid vault address: {vault}")
        vault = normalize_address(vault)
        async with self._mutation_lock():
            reserve = await self._require_reserve(session, reserve_id)

            if is_zero_address(calculator) or not is_address(calculator):
                raise InvalidCalculator()
            calculator = calculator.lower()
            if not await self.calculators.exists(session, calculator):
                raise InvalidCalculator(f"no calculator deployed at {calculator}")

            if weight_denominator <= 0 or weight_numerator < 0:
                raise InvalidWeight(
                    f"invalid vault weight {weight_numerator}/{weight_denominator}"
                )

            if await self.vault_owner(session, vault) is not None:
                raise VaultAlreadyBound()

            count = await session.scalar(
                select(func.count())
                .select_from(ReserveVault)
                .where(ReserveVault.reserve_id == reserve.reserve_id)
            )
            position = ReserveVault(
                reserve_id=reserve.reserve_id,
                position=count,
                vault=vault,
                calculator=calculator,
                weight_numerator=weight_numerator,
                weight_denominator=weight_denominator,
            )
            session.add(position)
            session.add(
                LedgerEvent(kind=VAULT_ADDED, reserve_id=reserve.reserve_id, vault=vault)
            )
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise VaultAlreadyBound() from e
            except Exception:
                await session.rollback()
                raise
        logger.info(
            f"Bound vault {vault} to reserve {reserve.reserve_id} at index {position.position}"
        )
        return position

    async def remove_reserve_vault(
        self, session: AsyncSession, reserve_id: str, index: int
    ) -> ReserveVault:
        async with self._mutation_lock():
            positions = await self.get_reserve_vaults(session, reserve_id)
            if index < 0 or index >= len(positions):
                raise IndexOutOfRange()

            removed = positions[index]
            try:
                await session.delete(removed)
                await session.execute(
                    update(ReserveVault)
                    .where(
                        ReserveVault.reserve_id == removed.reserve_id,
                        ReserveVault.position > index,
                    )
                    .values(position=ReserveVault.position - 1)
                    .execution_options(synchronize_session="fetch")
                )
                session.add(
                    LedgerEvent(
                        kind=VAULT_REMOVED,
                        reserve_id=removed.reserve_id,
                        vault=removed.vault,
                    )
                )
            except Exception:
                await session.rollback()
                raise
            await self._commit(session)
        logger.info(f"Removed vault {removed.vault} from reserve {removed.reserve_id}")
        return removed

    async def get_events(
        self, session: AsyncSession, reserve_id: str
    ) -> list[LedgerEvent]:
        """Mutation log for ``reserve_id`` in submission order, deleted reserves included."""
        result = await session.execute(
            select(LedgerEvent)
            .where(LedgerEvent.reserve_id == reserve_id.lower())
            .order_by(LedgerEvent.id)
        )
        return list(result.scalars().all())


reserve_service = ReserveService()
