"""Single-owner gate for ledger mutations."""

from reserve_ledger.addresses import is_address, is_zero_address
from reserve_ledger.config import LEDGER_OWNER
from reserve_ledger.errors import Unauthorized


class OwnershipGate:
    """Allows mutations only from the owner set at initialization."""

    def __init__(self, owner: str = LEDGER_OWNER):
        self.owner = owner.lower() if is_address(owner) else None

    def check(self, caller: str | None) -> str:
        """Return the normalized caller, or raise Unauthorized."""
        if self.owner is None or is_zero_address(caller) or not is_address(caller):
            raise Unauthorized()
        if caller.lower() != self.owner:
            raise Unauthorized()
        return caller.lower()

    def transfer_ownership(self, caller: str | None, new_owner: str) -> None:
        self.check(caller)
        if is_zero_address(new_owner) or not is_address(new_owner):
            raise Unauthorized("new owner is the zero address")
        self.owner = new_owner.lower()


ownership_gate = OwnershipGate()
