"""
One-Way Channel - Protocol Constants
======================================
Costanti di consenso e di policy per le transazioni di canale.

Security Level: CRITICAL
Version: 1.0.0

IMPORTANTE: i valori di consenso (MAX_MONEY, soglie locktime, flag
sighash) devono coincidere con le regole della rete target.
"""

from enum import IntEnum, Enum
from typing import Final


# ============================================================================
# IDENTIFICAZIONE PROGETTO
# ============================================================================

PROJECT_NAME: Final[str] = "one-way-channel"
SOFTWARE_VERSION: Final[str] = "1.0.0"

# ============================================================================
# SISTEMA MONETARIO
# ============================================================================

SATOSHI_PER_COIN: Final[int] = 100_000_000

# Supply massima consenso (21M coin)
MAX_MONEY: Final[int] = 21_000_000 * SATOSHI_PER_COIN

# ============================================================================
# TRANSACTION FORMAT
# ============================================================================

# Version 2 abilita OP_CHECKSEQUENCEVERIFY (BIP68/112)
DEFAULT_TX_VERSION: Final[int] = 2

UINT32_MAX: Final[int] = 0xFFFFFFFF

# Sequence finale: disabilita nLockTime e lock relativi
SEQUENCE_FINAL: Final[int] = 0xFFFFFFFF

# Sequence che abilita nLockTime senza attivare BIP68
SEQUENCE_LOCKTIME_ENABLED: Final[int] = 0xFFFFFFFE

# BIP68: bit 31 disabilita lock relativo, bit 22 = unita' di 512s
SEQUENCE_LOCKTIME_DISABLE_FLAG: Final[int] = 1 << 31
SEQUENCE_LOCKTIME_TYPE_FLAG: Final[int] = 1 << 22
SEQUENCE_LOCKTIME_MASK: Final[int] = 0x0000FFFF

# nLockTime < soglia => altezza blocco, altrimenti timestamp
LOCKTIME_THRESHOLD: Final[int] = 500_000_000

MAX_ABSOLUTE_LOCKTIME_HEIGHT: Final[int] = LOCKTIME_THRESHOLD - 1
MAX_RELATIVE_LOCKTIME_BLOCKS: Final[int] = SEQUENCE_LOCKTIME_MASK

# Segwit serialization (BIP144)
SEGWIT_MARKER: Final[int] = 0x00
SEGWIT_FLAG: Final[int] = 0x01

WITNESS_SCALE_FACTOR: Final[int] = 4

# ============================================================================
# POLICY DEFAULTS
# ============================================================================

# Soglia dust standard per output non-segwit (Bitcoin Core)
DEFAULT_DUST_THRESHOLD: Final[int] = 546

DEFAULT_COMMITMENT_FEE: Final[int] = 100
DEFAULT_REFUND_FEE: Final[int] = 100

DEFAULT_SIGNING_TIMEOUT_SECONDS: Final[float] = 30.0

# Indice output canale nella funding transaction
FUNDING_OUTPUT_INDEX: Final[int] = 0

# ============================================================================
# KEYS
# ============================================================================

COMPRESSED_PUBKEY_SIZE: Final[int] = 33
PRIVATE_KEY_SIZE: Final[int] = 32

# Ordine curva secp256k1
SECP256K1_ORDER: Final[int] = (
    0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
)


# ============================================================================
# SIGHASH FLAGS
# ============================================================================

class SighashFlag(IntEnum):
    """Flag signature hash (byte finale della firma)"""
    ALL = 0x01
    NONE = 0x02
    SINGLE = 0x03
    ALL_ANYONECANPAY = 0x81
    NONE_ANYONECANPAY = 0x82
    SINGLE_ANYONECANPAY = 0x83


SIGHASH_ANYONECANPAY: Final[int] = 0x80
SIGHASH_BASE_MASK: Final[int] = 0x1F


# ============================================================================
# TIMELOCK
# ============================================================================

class TimelockKind(Enum):
    """Tipo timelock del ramo refund"""
    ABSOLUTE = "absolute"   # altezza blocco (CLTV + nLockTime)
    RELATIVE = "relative"   # delay blocchi dalla conferma funding (CSV + nSequence)


# ============================================================================
# CHANNEL ROLES
# ============================================================================

class ChannelRole(Enum):
    """Ruolo della parte locale"""
    PAYER = "payer"
    PAYEE = "payee"


__all__ = [
    "PROJECT_NAME",
    "SOFTWARE_VERSION",
    "SATOSHI_PER_COIN",
    "MAX_MONEY",
    "DEFAULT_TX_VERSION",
    "UINT32_MAX",
    "SEQUENCE_FINAL",
    "SEQUENCE_LOCKTIME_ENABLED",
    "SEQUENCE_LOCKTIME_DISABLE_FLAG",
    "SEQUENCE_LOCKTIME_TYPE_FLAG",
    "SEQUENCE_LOCKTIME_MASK",
    "LOCKTIME_THRESHOLD",
    "MAX_ABSOLUTE_LOCKTIME_HEIGHT",
    "MAX_RELATIVE_LOCKTIME_BLOCKS",
    "SEGWIT_MARKER",
    "SEGWIT_FLAG",
    "WITNESS_SCALE_FACTOR",
    "DEFAULT_DUST_THRESHOLD",
    "DEFAULT_COMMITMENT_FEE",
    "DEFAULT_REFUND_FEE",
    "DEFAULT_SIGNING_TIMEOUT_SECONDS",
    "FUNDING_OUTPUT_INDEX",
    "COMPRESSED_PUBKEY_SIZE",
    "PRIVATE_KEY_SIZE",
    "SECP256K1_ORDER",
    "SighashFlag",
    "SIGHASH_ANYONECANPAY",
    "SIGHASH_BASE_MASK",
    "TimelockKind",
    "ChannelRole",
]
