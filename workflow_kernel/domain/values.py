"""
Principal and amount value rules (``workflow_kernel.domain.values``).

Principals are opaque caller identities supplied by the authentication
layer.  The null principal is ``None``, an empty string, or the all-zero
address.  Amounts are integers in the
uint256 range, strictly positive.  Record ids start at 1; 0 is the
"does not exist" sentinel.
"""

from __future__ import annotations

ZERO_ADDRESS = "0x" + "0" * 40

# Largest uint256 value.
MAX_AMOUNT = 2**256 - 1


def is_null_principal(principal: str | None) -> bool:
    """True for ``None``, blank strings and the zero address."""
    if principal is None:
        return True
    if not isinstance(principal, str):
        return True
    stripped = principal.strip()
    return stripped == "" or stripped.lower() == ZERO_ADDRESS


def is_valid_amount(amount: object) -> bool:
    """True iff ``amount`` is an int (not bool) with 0 < amount <= MAX_AMOUNT."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        return False
    return 0 < amount <= MAX_AMOUNT


def is_record_id(value: object) -> bool:
    """True iff ``value`` can name a stored record: an int (not bool) >= 1."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0
