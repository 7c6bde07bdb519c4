"""
One-Way Channel - Input Validators
====================================
Validation functions per amount, chiavi, txid e range uint32.

Ogni validatore ritorna True oppure solleva InvalidTransactionShape.
"""

from one_way_channel.constants import (
    MAX_MONEY,
    UINT32_MAX,
    COMPRESSED_PUBKEY_SIZE,
)
from one_way_channel.errors import InvalidTransactionShape, InvalidKeyError


# ============================================================================
# AMOUNT VALIDATION
# ============================================================================

def validate_amount(amount: int, field: str = "amount", allow_zero: bool = True) -> bool:
    """
    Validate amount (Satoshi) nel range di consenso.

    Args:
        amount: Amount in Satoshi
        field: Nome campo (per il messaggio di errore)
        allow_zero: Allow zero amount

    Returns:
        bool: True if valid

    Raises:
        InvalidTransactionShape: If negative, zero (when not allowed) or > MAX_MONEY

    Examples:
        >>> validate_amount(100000)
        True
    """
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidTransactionShape(
            f"{field} must be integer, got {type(amount).__name__}",
            code="INVALID_AMOUNT_TYPE",
            details={"field": field}
        )

    if amount < 0:
        raise InvalidTransactionShape(
            f"{field} cannot be negative: {amount}",
            code="NEGATIVE_AMOUNT",
            details={"field": field, "amount": amount}
        )

    if not allow_zero and amount == 0:
        raise InvalidTransactionShape(
            f"{field} cannot be zero",
            code="ZERO_AMOUNT",
            details={"field": field}
        )

    if amount > MAX_MONEY:
        raise InvalidTransactionShape(
            f"{field} exceeds MAX_MONEY: {amount}",
            code="AMOUNT_OVERFLOW",
            details={"field": field, "amount": amount, "max": MAX_MONEY}
        )

    return True


def validate_uint32(value: int, field: str) -> bool:
    """Validate campo uint32 (sequence, locktime, output index)."""
    if not isinstance(value, int) or isinstance(value, bool) or not (0 <= value <= UINT32_MAX):
        raise InvalidTransactionShape(
            f"{field} outside uint32 range: {value}",
            code="UINT32_OUT_OF_RANGE",
            details={"field": field, "value": value}
        )
    return True


# ============================================================================
# KEY / HASH VALIDATION
# ============================================================================

def validate_pubkey(pubkey: bytes, field: str = "pubkey") -> bool:
    """
    Validate public key compressa SEC1 (33 bytes, prefisso 02/03).

    Raises:
        InvalidKeyError: If malformed
    """
    if (
        not isinstance(pubkey, (bytes, bytearray))
        or len(pubkey) != COMPRESSED_PUBKEY_SIZE
        or pubkey[0] not in (0x02, 0x03)
    ):
        raise InvalidKeyError(
            f"{field} must be a 33-byte compressed public key",
            code="INVALID_PUBKEY",
            details={"field": field}
        )
    return True


def validate_txid(txid: str) -> bool:
    """
    Validate transaction ID (hex, 64 caratteri).

    Raises:
        InvalidTransactionShape: If invalid
    """
    if not txid or len(txid) != 64:
        raise InvalidTransactionShape(
            f"Invalid txid length: {len(txid) if txid else 0} (expected 64)",
            code="INVALID_TXID"
        )

    if not all(c in '0123456789abcdefABCDEF' for c in txid):
        raise InvalidTransactionShape("Invalid hex characters in txid", code="INVALID_TXID")

    return True


__all__ = [
    "validate_amount",
    "validate_uint32",
    "validate_pubkey",
    "validate_txid",
]
