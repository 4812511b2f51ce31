"""Pydantic schemas for API request/response."""

from typing import Literal

from pydantic import BaseModel, Field

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"

CalculatorKind = Literal[
    "token-standard", "token-custom", "currency-standard", "currency-custom"
]


class ReserveCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    classification: int = Field(default=0, ge=0)


class ReserveResponse(BaseModel):
    reserve_id: str
    name: str
    description: str
    classification: int
    created_at: str


class VaultAddRequest(BaseModel):
    vault: str = Field(pattern=ADDRESS_PATTERN)
    # Not pattern-checked: a zero or malformed handle is an InvalidCalculator
    calculator: str | None = None
    weight_numerator: int = 1
    weight_denominator: int = 1


class VaultPositionResponse(BaseModel):
    index: int
    vault: str
    calculator: str
    weight_numerator: int
    weight_denominator: int
    added_at: str


class VaultOwnerResponse(BaseModel):
    vault: str
    reserve_id: str | None = None


class PositionValueDetail(BaseModel):
    vault: str
    calculator: str
    raw_value: int
    weight_numerator: int
    weight_denominator: int
    contribution: int


class ReserveValueResponse(BaseModel):
    reserve_id: str
    value: int
    details: list[PositionValueDetail]


class LedgerEventResponse(BaseModel):
    id: int
    kind: str
    reserve_id: str
    vault: str | None = None
    created_at: str


class CalculatorDeployRequest(BaseModel):
    kind: CalculatorKind
    router: str | None = Field(default=None, pattern=ADDRESS_PATTERN)
    price_feed: str | None = Field(default=None, pattern=ADDRESS_PATTERN)
    holder: str | None = Field(default=None, pattern=ADDRESS_PATTERN)
    asset: str | None = Field(default=None, pattern=ADDRESS_PATTERN)


class CalculatorResponse(BaseModel):
    address: str
    kind: str
    router: str | None = None
    price_feed: str | None = None
    holder: str | None = None
    asset: str | None = None
    created_at: str


class OwnershipResponse(BaseModel):
    owner: str | None = None


class OwnershipTransferRequest(BaseModel):
    new_owner: str = Field(pattern=ADDRESS_PATTERN)
