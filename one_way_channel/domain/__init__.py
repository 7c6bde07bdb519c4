"""
One-Way Channel - Domain Package
==================================
Transaction model, scripts, sighash and crypto primitives.
"""

from one_way_channel.domain.models import OutPoint, TxInput, TxOutput, Transaction
from one_way_channel.domain.crypto_core import (
    Signer,
    ECDSASigner,
    generate_keypair,
    public_key_from_secret,
)
from one_way_channel.domain.sighash import bip143_preimage, bip143_signature_hash

__all__ = [
    "OutPoint",
    "TxInput",
    "TxOutput",
    "Transaction",
    "Signer",
    "ECDSASigner",
    "generate_keypair",
    "public_key_from_secret",
    "bip143_preimage",
    "bip143_signature_hash",
]
