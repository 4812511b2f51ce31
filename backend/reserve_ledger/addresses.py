"""Address helpers shared by the models, services and API schemas."""

import hashlib
import re

ZERO_ADDRESS = "0x" + "0" * 40

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_address(value: str | None) -> bool:
    return bool(value) and _ADDRESS_RE.match(value) is not None


def normalize_address(value: str) -> str:
    """Return ``value`` as a lower-case ``0x`` address, or raise ValueError."""
    if not is_address(value):
        raise ValueError(f"not an address: {value!r}")
    return value.lower()


def is_zero_address(value: str | None) -> bool:
    return not value or value.lower() == ZERO_ADDRESS


def derive_id(*parts: object, length: int = 64) -> str:
    """Hex digest identifier over ``parts``, truncated to ``length`` hex digits."""
    payload = "|".join(str(p) for p in parts).encode()
    return "0x" + hashlib.sha256(payload).hexdigest()[:length]
