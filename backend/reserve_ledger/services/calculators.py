"""Vault value calculators and the directory of deployed calculators.

A calculator answers one question: what is ``vault`` worth, as an integer in
base units. Standard calculators price the whole vault; custom calculators
price one shares holder's stake. Both come in a token flavour (denominated in
an asset) and a currency flavour (denominated in USD).

Calculator deployments are stored as rows keyed by an address-like handle.
Vault positions keep only the handle; ``CalculatorService.resolve`` turns a
handle back into a live calculator when a reserve is valued.
"""

import logging
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reserve_ledger.addresses import derive_id, is_address, is_zero_address, normalize_address
from reserve_ledger.config import (
    TOKEN_VALUE_CALCULATOR,
    CURRENCY_VALUE_CALCULATOR,
    SHARES_HOLDER,
)
from reserve_ledger.errors import InvalidCalculator
from reserve_ledger.fixed_point import weighted_amount
from reserve_ledger.models.calculator import CalculatorDeployment
from reserve_ledger.services.fund_value import (
    FundValueClient,
    PriceFeedClient,
    fund_value_client,
    price_feed_client,
)

logger = logging.getLogger(__name__)

TOKEN_STANDARD = "token-standard"
TOKEN_CUSTOM = "token-custom"
CURRENCY_STANDARD = "currency-standard"
CURRENCY_CUSTOM = "currency-custom"

CALCULATOR_KINDS = (TOKEN_STANDARD, TOKEN_CUSTOM, CURRENCY_STANDARD, CURRENCY_CUSTOM)

# Fields each kind needs, beyond ``kind`` itself
_REQUIRED_FIELDS = {
    TOKEN_STANDARD: ("router",),
    TOKEN_CUSTOM: ("router", "holder", "asset"),
    CURRENCY_STANDARD: ("router", "price_feed"),
    CURRENCY_CUSTOM: ("router", "holder"),
}


class Calculator(Protocol):
    def value_of(self, vault: str, context: dict[str, Any] | None = None) -> int:
        ...


class TokenCalculatorStandard:
    """Vault gross asset value in its denomination asset."""

    def __init__(self, router: str, fund_values: FundValueClient = fund_value_client):
        self.router = router
        self.fund_values = fund_values

    def value_of(self, vault: str, context: dict[str, Any] | None = None) -> int:
        return self.fund_values.calc_gav(self.router, vault)


class CurrencyCalculatorStandard:
    """Vault gross asset value converted to USD through one price feed.

    value = trunc(gav * answer / 10**decimals)
    """

    def __init__(
        self,
        router: str,
        price_feed: str,
        fund_values: FundValueClient = fund_value_client,
        price_feeds: PriceFeedClient = price_feed_client,
    ):
        self.router = router
        self.price_feed = price_feed
        self.fund_values = fund_values
        self.price_feeds = price_feeds

    def value_of(self, vault: str, context: dict[str, Any] | None = None) -> int:
        gav = self.fund_values.calc_gav(self.router, vault)
        answer, decimals = self.price_feeds.latest_answer(self.price_feed)
        return weighted_amount(gav, answer, 10**decimals)


class TokenCalculatorCustom:
    """A shares holder's net value in ``asset``, from the valuation router."""

    def __init__(
        self,
        router: str,
        holder: str,
        asset: str,
        fund_values: FundValueClient = fund_value_client,
    ):
        self.router = router
        self.holder = holder
        self.asset = asset
        self.fund_values = fund_values

    def value_of(self, vault: str, context: dict[str, Any] | None = None) -> int:
        holder = (context or {}).get("holder", self.holder)
        return self.fund_values.calc_net_value_for_shares_holder_in_asset(
            self.router, vault, holder, self.asset
        )


class CurrencyCalculatorCustom:
    """A shares holder's net value in USD, from the USD wrapper."""

    def __init__(
        self,
        usd_wrapper: str,
        holder: str,
        fund_values: FundValueClient = fund_value_client,
    ):
        self.usd_wrapper = usd_wrapper
        self.holder = holder
        self.fund_values = fund_values

    def value_of(self, vault: str, context: dict[str, Any] | None = None) -> int:
        holder = (context or {}).get("holder", self.holder)
        return self.fund_values.calc_net_value_for_shares_holder(
            self.usd_wrapper, vault, holder
        )


def build_calculator(
    deployment: CalculatorDeployment,
    fund_values: FundValueClient = fund_value_client,
    price_feeds: PriceFeedClient = price_feed_client,
) -> Calculator:
    """Instantiate the calculator described by a deployment row."""
    kind = deployment.kind
    if kind == TOKEN_STANDARD:
        return TokenCalculatorStandard(deployment.router, fund_values)
    if kind == CURRENCY_STANDARD:
        return CurrencyCalculatorStandard(
            deployment.router, deployment.price_feed, fund_values, price_feeds
        )
    if kind == TOKEN_CUSTOM:
        return TokenCalculatorCustom(
            deployment.router, deployment.holder, deployment.asset, fund_values
        )
    if kind == CURRENCY_CUSTOM:
        return CurrencyCalculatorCustom(
            deployment.router, deployment.holder, fund_values
        )
    raise InvalidCalculator(f"unknown calculator kind: {kind}")


def _default_router(kind: str) -> str:
    if kind == CURRENCY_CUSTOM:
        return CURRENCY_VALUE_CALCULATOR
    return TOKEN_VALUE_CALCULATOR


class CalculatorService:
    """Stores calculator deployments and resolves handles into calculators."""

    def __init__(
        self,
        fund_values: FundValueClient = fund_value_client,
        price_feeds: PriceFeedClient = price_feed_client,
    ):
        self.fund_values = fund_values
        self.price_feeds = price_feeds
        # handle -> calculator object, for handles registered in-process
        self._instances: dict[str, Calculator] = {}

    async def deploy(
        self,
        session: AsyncSession,
        kind: str,
        router: str | None = None,
        price_feed: str | None = None,
        holder: str | None = None,
        asset: str | None = None,
    ) -> CalculatorDeployment:
        """Record a new calculator deployment and return it with its handle.

        ``router`` and ``holder`` fall back to the configured router, USD
        wrapper and shares holder.
        """
        if kind not in CALCULATOR_KINDS:
            raise InvalidCalculator(f"unknown calculator kind: {kind}")

        fields = {
            "router": router or _default_router(kind),
            "price_feed": price_feed,
            "holder": holder or (SHARES_HOLDER if kind in (TOKEN_CUSTOM, CURRENCY_CUSTOM) else None),
            "asset": asset,
        }
        for name in _REQUIRED_FIELDS[kind]:
            if not is_address(fields[name]) or is_zero_address(fields[name]):
                raise InvalidCalculator(f"{kind} calculator requires a valid {name}")
        for name, value in fields.items():
            if value and not is_address(value):
                raise InvalidCalculator(f"{kind} calculator got a malformed {name}: {value}")
        fields = {k: normalize_address(v) if v else None for k, v in fields.items()}

        deployment = CalculatorDeployment(kind=kind, **fields)
        try:
            session.add(deployment)
            await session.flush()
            deployment.address = derive_id(
                "calculator", deployment.seq, kind, *fields.values(), length=40
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        logger.info(f"Deployed {kind} calculator at {deployment.address}")
        return deployment

    def register(self, address: str, calculator: Calculator) -> str:
        """Make an already constructed calculator resolvable under ``address``."""
        if not is_address(address) or is_zero_address(address):
            raise InvalidCalculator()
        address = normalize_address(address)
        self._instances[address] = calculator
        return address

    def unregister(self, address: str) -> None:
        self._instances.pop(address.lower(), None)

    async def get_deployment(
        self, session: AsyncSession, address: str
    ) -> CalculatorDeployment | None:
        result = await session.execute(
            select(CalculatorDeployment).where(
                CalculatorDeployment.address == address.lower()
            )
        )
        return result.scalar_one_or_none()

    async def exists(self, session: AsyncSession, address: str) -> bool:
        if address.lower() in self._instances:
            return True
        return await self.get_deployment(session, address) is not None

    async def resolve(self, session: AsyncSession, address: str) -> Calculator | None:
        instance = self._instances.get(address.lower())
        if instance is not None:
            return instance
        deployment = await self.get_deployment(session, address)
        if deployment is None:
            return None
        return build_calculator(deployment, self.fund_values, self.price_feeds)


calculator_service = CalculatorService()
