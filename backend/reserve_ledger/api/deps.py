"""Shared route dependencies."""

from fastapi import Header

from reserve_ledger.services.ownership import ownership_gate


async def require_owner(x_caller: str | None = Header(default=None)) -> str:
    """Reject mutating requests whose ``X-Caller`` is not the ledger owner."""
    return ownership_gate.check(x_caller)
