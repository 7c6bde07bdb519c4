"""
One-Way Channel - Signature Set
=================================
Firme raccolte per (txid, input index), una per public key.

Le firme sono legate al txid: una firma registrata per un commitment
non viene mai restituita per un altro, anche se stesso input index.
"""

from __future__ import annotations
from typing import Dict, Iterable, Optional, Tuple, Any

from one_way_channel.channel.transactions import ChannelTransaction
from one_way_channel.domain.crypto_core import Signer
from one_way_channel.errors import InvalidTransactionShape
from one_way_channel.utils.validators import validate_pubkey


SignatureKey = Tuple[str, int]


class SignatureSet:
    """
    Mapping (txid, input_index) -> {pubkey: signature}.

    Examples:
        >>> sigs = SignatureSet()
        >>> sigs.add(commitment.txid, 0, payer_pubkey, payer_sig)
        >>> sigs.has_all(commitment.txid, 0, [payer_pubkey, payee_pubkey])
        False
    """

    def __init__(self):
        self._signatures: Dict[SignatureKey, Dict[bytes, bytes]] = {}

    def add(self, txid: str, input_index: int, pubkey: bytes, signature: bytes):
        """
        Registra una firma.

        Raises:
            InvalidTransactionShape: Firma vuota o indice negativo
            InvalidKeyError: Public key non valida
        """
        validate_pubkey(pubkey)
        if not signature:
            raise InvalidTransactionShape("Empty signature", code="EMPTY_SIGNATURE")
        if input_index < 0:
            raise InvalidTransactionShape(
                f"Negative input index: {input_index}",
                code="INPUT_INDEX_OUT_OF_RANGE"
            )
        self._signatures.setdefault((txid, input_index), {})[bytes(pubkey)] = bytes(signature)

    def get(self, txid: str, input_index: int, pubkey: bytes) -> Optional[bytes]:
        return self._signatures.get((txid, input_index), {}).get(bytes(pubkey))

    def has_all(self, txid: str, input_index: int, pubkeys: Iterable[bytes]) -> bool:
        recorded = self._signatures.get((txid, input_index), {})
        return all(bytes(pk) in recorded for pk in pubkeys)

    def verify_all(
        self,
        channel_tx: ChannelTransaction,
        input_index: int,
        pubkeys: Iterable[bytes],
        signer: Signer,
    ) -> bool:
        """Tutte le pubkey hanno una firma valida sul sighash dell'input"""
        pubkeys = list(pubkeys)
        if not self.has_all(channel_tx.txid, input_index, pubkeys):
            return False
        return all(
            channel_tx.verify_input_signature(
                input_index,
                self.get(channel_tx.txid, input_index, pk),
                pk,
                signer,
            )
            for pk in pubkeys
        )

    def discard(self, txid: str):
        """Rimuove tutte le firme di una transazione"""
        for key in [k for k in self._signatures if k[0] == txid]:
            del self._signatures[key]

    def __len__(self) -> int:
        return sum(len(sigs) for sigs in self._signatures.values())

    def __contains__(self, key: SignatureKey) -> bool:
        return key in self._signatures

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    def to_dict(self) -> Dict[str, Any]:
        return {
            f"{txid}:{index}": {pk.hex(): sig.hex() for pk, sig in sigs.items()}
            for (txid, index), sigs in sorted(self._signatures.items())
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SignatureSet:
        signature_set = cls()
        for key, sigs in data.items():
            txid, _, index = key.rpartition(":")
            for pk_hex, sig_hex in sigs.items():
                signature_set.add(txid, int(index), bytes.fromhex(pk_hex), bytes.fromhex(sig_hex))
        return signature_set


__all__ = ["SignatureSet"]
