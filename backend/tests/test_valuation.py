"""Tests for the reserve valuation engine."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from reserve_ledger.errors import CalculationFailure, ReserveNotFound
from reserve_ledger.models.database import Base
from reserve_ledger.models.reserve import Reserve  # noqa: F401
from reserve_ledger.models.calculator import CalculatorDeployment  # noqa: F401
from reserve_ledger.services.calculators import CalculatorService
from reserve_ledger.services.reserves import ReserveService
from reserve_ledger.services.valuation import (
    ReserveValuator,
    ValuationService,
    weighted_amount,
)

VAULT_A = "0x" + "a1" * 20
VAULT_B = "0x" + "b2" * 20
CALC_1000 = "0x" + "01" * 20
CALC_500 = "0x" + "02" * 20
CALC_BROKEN = "0x" + "03" * 20


class FixedCalculator:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    def value_of(self, vault, context=None):
        self.calls += 1
        return self.value


class VaultPriceCalculator:
    """Values each vault from a lookup table."""

    def __init__(self, values: dict[str, int]):
        self.values = values

    def value_of(self, vault, context=None):
        return self.values[vault]


class BrokenCalculator:
    def value_of(self, vault, context=None):
        raise ConnectionError("price feed unreachable")


def _position(vault, calculator, num=1, den=1):
    return {
        "vault": vault,
        "calculator": calculator,
        "weight_numerator": num,
        "weight_denominator": den,
    }


@pytest.fixture
def valuator():
    return ReserveValuator()


class TestWeightedAmount:
    def test_exact_weight(self):
        assert weighted_amount(1200, 1, 1) == 1200

    def test_truncates(self):
        assert weighted_amount(900, 3, 4) == 675
        assert weighted_amount(800, 2, 3) == 533

    def test_truncates_toward_zero_for_negative_values(self):
        assert weighted_amount(-7, 1, 2) == -3

    def test_large_values_keep_precision(self):
        raw = 123456789012345678901234567890
        assert weighted_amount(raw, 2, 3) == raw * 2 // 3


class TestCalculateValue:
    def test_empty_positions(self, valuator):
        result = valuator.calculate_value([], {})
        assert result["value"] == 0
        assert result["details"] == []

    def test_weighted_sum(self, valuator):
        calc = VaultPriceCalculator({VAULT_A: 900, VAULT_B: 800})
        positions = [
            _position(VAULT_A, CALC_1000, 3, 4),
            _position(VAULT_B, CALC_1000, 2, 3),
        ]
        result = valuator.calculate_value(positions, {CALC_1000: calc})
        assert result["value"] == 1208
        assert [d["contribution"] for d in result["details"]] == [675, 533]
        assert result["details"][0]["raw_value"] == 900

    def test_missing_calculator(self, valuator):
        with pytest.raises(CalculationFailure):
            valuator.calculate_value([_position(VAULT_A, CALC_1000)], {})

    def test_calculator_error_propagates(self, valuator):
        with pytest.raises(CalculationFailure, match="price feed unreachable"):
            valuator.calculate_value(
                [_position(VAULT_A, CALC_BROKEN)], {CALC_BROKEN: BrokenCalculator()}
            )

    def test_calculation_failure_passes_through_unchanged(self, valuator):
        class Failing:
            def value_of(self, vault, context=None):
                raise CalculationFailure("feed stale")

        with pytest.raises(CalculationFailure, match="feed stale"):
            valuator.calculate_value([_position(VAULT_A, CALC_1000)], {CALC_1000: Failing()})

    def test_non_integer_value_rejected(self, valuator):
        with pytest.raises(CalculationFailure):
            valuator.calculate_value(
                [_position(VAULT_A, CALC_1000)], {CALC_1000: FixedCalculator(1.5)}
            )

    def test_each_position_read_once_per_pass(self, valuator):
        calc = FixedCalculator(100)
        positions = [_position(VAULT_A, CALC_1000, 1, 2), _position(VAULT_B, CALC_1000, 1, 4)]
        result = valuator.calculate_value(positions, {CALC_1000: calc})
        assert calc.calls == 2
        assert result["value"] == 75

        # No reading carries over into the next pass
        valuator.calculate_value(positions, {CALC_1000: calc})
        assert calc.calls == 4


@pytest_asyncio.fixture
async def db_session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def services():
    calculators = CalculatorService()
    calculators.register(CALC_1000, FixedCalculator(1000))
    calculators.register(CALC_500, FixedCalculator(500))
    calculators.register(CALC_BROKEN, BrokenCalculator())
    reserves = ReserveService(calculators=calculators)
    return reserves, ValuationService(reserves=reserves, calculators=calculators)


@pytest.mark.asyncio
async def test_empty_reserve_values_zero(db_session, services):
    reserves, valuation = services
    r = await reserves.create_reserve(db_session, "UNI-R01", "", 1)
    result = await valuation.get_reserve_value(db_session, r.reserve_id)
    assert result["value"] == 0


@pytest.mark.asyncio
async def test_missing_reserve_raises(db_session, services):
    _, valuation = services
    with pytest.raises(ReserveNotFound):
        await valuation.get_reserve_value(db_session, "0x" + "9" * 64)


@pytest.mark.asyncio
async def test_add_remove_delete_scenario(db_session, services):
    reserves, valuation = services
    r = await reserves.create_reserve(db_session, "R", "scenario", 1)

    await reserves.add_reserve_vault(db_session, r.reserve_id, VAULT_A, CALC_1000, 1, 1)
    assert (await valuation.get_reserve_value(db_session, r.reserve_id))["value"] == 1000

    await reserves.add_reserve_vault(db_session, r.reserve_id, VAULT_B, CALC_500, 1, 2)
    assert (await valuation.get_reserve_value(db_session, r.reserve_id))["value"] == 1250

    await reserves.remove_reserve_vault(db_session, r.reserve_id, 0)
    assert (await valuation.get_reserve_value(db_session, r.reserve_id))["value"] == 250

    await reserves.remove_reserve_vault(db_session, r.reserve_id, 0)
    assert (await valuation.get_reserve_value(db_session, r.reserve_id))["value"] == 0

    await reserves.delete_reserve(db_session, r.reserve_id)
    with pytest.raises(ReserveNotFound):
        await valuation.get_reserve_value(db_session, r.reserve_id)


@pytest.mark.asyncio
async def test_removing_vault_lowers_value(db_session, services):
    reserves, valuation = services
    r = await reserves.create_reserve(db_session, "cxUSD-R01", "", 1)
    await reserves.add_reserve_vault(db_session, r.reserve_id, VAULT_A, CALC_1000, 3, 4)
    await reserves.add_reserve_vault(db_session, r.reserve_id, VAULT_B, CALC_500, 2, 3)

    full = (await valuation.get_reserve_value(db_session, r.reserve_id))["value"]
    assert full == 750 + 333

    await reserves.remove_reserve_vault(db_session, r.reserve_id, 0)
    reduced = (await valuation.get_reserve_value(db_session, r.reserve_id))["value"]
    assert 0 < reduced < full


@pytest.mark.asyncio
async def test_failing_calculator_surfaces_error(db_session, services):
    reserves, valuation = services
    r = await reserves.create_reserve(db_session, "UNI-R01", "", 1)
    await reserves.add_reserve_vault(db_session, r.reserve_id, VAULT_A, CALC_1000, 1, 1)
    await reserves.add_reserve_vault(db_session, r.reserve_id, VAULT_B, CALC_BROKEN, 1, 1)

    with pytest.raises(CalculationFailure):
        await valuation.get_reserve_value(db_session, r.reserve_id)


@pytest.mark.asyncio
async def test_unregistered_calculator_fails_valuation(db_session, services):
    reserves, valuation = services
    r = await reserves.create_reserve(db_session, "UNI-R01", "", 1)
    await reserves.add_reserve_vault(db_session, r.reserve_id, VAULT_A, CALC_500, 1, 1)
    valuation.calculators.unregister(CALC_500)

    with pytest.raises(CalculationFailure):
        await valuation.get_reserve_value(db_session, r.reserve_id)


@pytest.mark.asyncio
async def test_fixed_point_weights_value_exactly(db_session, services):
    reserves, valuation = services
    r = await reserves.create_reserve(db_session, "cxUSD-R01", "", 1)
    # 18-decimal weights: 0.75 and 1.0
    await reserves.add_reserve_vault(
        db_session, r.reserve_id, VAULT_A, CALC_1000, 75 * 10**16, 10**18
    )
    await reserves.add_reserve_vault(
        db_session, r.reserve_id, VAULT_B, CALC_500, 10**19, 10**19
    )
    result = await valuation.get_reserve_value(db_session, r.reserve_id)
    assert [d["contribution"] for d in result["details"]] == [750, 500]
    assert result["value"] == 1250
    assert result["details"][1]["weight_numerator"] == 10**19
