"""Reserve valuation engine.

Aggregates a reserve's value from its vault positions, in list order:

    contribution_i = trunc(raw_value_i * weight_numerator_i / weight_denominator_i)
    reserve_value  = Σ contribution_i

Weights stay exact integers until the per-position division, which truncates
toward zero like fixed-point integer arithmetic.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from reserve_ledger.errors import CalculationFailure, LedgerError
from reserve_ledger.fixed_point import weighted_amount
from reserve_ledger.services.calculators import Calculator, CalculatorService, calculator_service
from reserve_ledger.services.reserves import ReserveService, reserve_service

logger = logging.getLogger(__name__)


class ReserveValuator:
    """Calculates reserve values from vault positions and their calculators."""

    def calculate_value(
        self,
        positions: list[dict[str, Any]],
        calculators: dict[str, Calculator],
    ) -> dict[str, Any]:
        """Value a list of vault positions.

        Args:
            positions: List of {vault, calculator, weight_numerator,
                weight_denominator}, in reserve order.
            calculators: Dict of calculator handle -> calculator object.

        Returns:
            {value, details: [{vault, calculator, raw_value, weight_numerator,
             weight_denominator, contribution}]}
        """
        value = 0
        details = []

        for position in positions:
            vault = position["vault"]
            handle = position["calculator"]
            calculator = calculators.get(handle)
            if calculator is None:
                logger.error(f"No calculator at {handle} for vault {vault}")
                raise CalculationFailure(f"no calculator deployed at {handle}")

            raw = self._read(calculator, vault)

            contribution = weighted_amount(
                raw, position["weight_numerator"], position["weight_denominator"]
            )
            value += contribution

            details.append(
                {
                    "vault": vault,
                    "calculator": handle,
                    "raw_value": raw,
                    "weight_numerator": position["weight_numerator"],
                    "weight_denominator": position["weight_denominator"],
                    "contribution": contribution,
                }
            )

        return {"value": value, "details": details}

    def _read(self, calculator: Calculator, vault: str) -> int:
        try:
            raw = calculator.value_of(vault)
        except LedgerError:
            raise
        except Exception as e:
            logger.error(f"Calculator failed for vault {vault}: {e}")
            raise CalculationFailure(f"calculator failed for vault {vault}: {e}") from e
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise CalculationFailure(f"calculator returned non-integer value for vault {vault}")
        return raw


class ValuationService:
    """Loads a reserve's positions and values them."""

    def __init__(
        self,
        reserves: ReserveService = reserve_service,
        calculators: CalculatorService = calculator_service,
        valuator: ReserveValuator | None = None,
    ):
        self.reserves = reserves
        self.calculators = calculators
        self.valuator = valuator or ReserveValuator()

    async def get_reserve_value(
        self, session: AsyncSession, reserve_id: str
    ) -> dict[str, Any]:
        """Value ``reserve_id``. Raises ReserveNotFound for unknown or deleted ids."""
        positions = await self.reserves.get_reserve_vaults(session, reserve_id)

        calculators: dict[str, Calculator] = {}
        for p in positions:
            if p.calculator not in calculators:
                calculator = await self.calculators.resolve(session, p.calculator)
                if calculator is not None:
                    calculators[p.calculator] = calculator

        positions_data = [
            {
                "vault": p.vault,
                "calculator": p.calculator,
                "weight_numerator": p.weight_numerator,
                "weight_denominator": p.weight_denominator,
            }
            for p in positions
        ]
        return self.valuator.calculate_value(positions_data, calculators)


# Global instances
reserve_valuator = ReserveValuator()
valuation_service = ValuationService(valuator=reserve_valuator)
