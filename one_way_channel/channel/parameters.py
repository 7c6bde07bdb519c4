"""
One-Way Channel - Channel Parameters
=====================================
Parametri immutabili di un canale payer -> payee.

Security Level: CRITICAL
Version: 1.0.0
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Optional, Dict, Any

from one_way_channel.constants import (
    TimelockKind,
    ChannelRole,
    MAX_ABSOLUTE_LOCKTIME_HEIGHT,
    MAX_RELATIVE_LOCKTIME_BLOCKS,
)
from one_way_channel.domain.crypto_core import compute_sha256
from one_way_channel.domain.models import OutPoint
from one_way_channel.domain.script import p2wpkh_script
from one_way_channel.errors import InvalidTransactionShape
from one_way_channel.utils.validators import validate_amount, validate_pubkey


# ============================================================================
# TIMELOCK
# ============================================================================

@dataclass(frozen=True)
class Timelock:
    """
    Timelock del ramo refund.

    Attributes:
        kind (TimelockKind): ABSOLUTE (altezza blocco) o RELATIVE (delay blocchi)
        value (int): Altezza o delay

    Examples:
        >>> Timelock.absolute(800_000).maturity_height()
        800001
        >>> Timelock.relative(144).maturity_height(funding_height=1000)
        1144
    """

    kind: TimelockKind
    value: int

    def __post_init__(self):
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise InvalidTransactionShape(
                f"Timelock value must be integer, got {type(self.value).__name__}",
                code="INVALID_TIMELOCK"
            )

        if self.kind == TimelockKind.ABSOLUTE:
            upper = MAX_ABSOLUTE_LOCKTIME_HEIGHT
        else:
            upper = MAX_RELATIVE_LOCKTIME_BLOCKS

        if not 1 <= self.value <= upper:
            raise InvalidTransactionShape(
                f"{self.kind.value} timelock outside accepted range: {self.value}",
                code="TIMELOCK_OUT_OF_RANGE",
                details={"kind": self.kind.value, "value": self.value, "max": upper}
            )

    @classmethod
    def absolute(cls, height: int) -> Timelock:
        return cls(TimelockKind.ABSOLUTE, height)

    @classmethod
    def relative(cls, blocks: int) -> Timelock:
        return cls(TimelockKind.RELATIVE, blocks)

    @property
    def is_absolute(self) -> bool:
        return self.kind == TimelockKind.ABSOLUTE

    def maturity_height(self, funding_height: Optional[int] = None) -> int:
        """
        Prima altezza di blocco in cui il refund e' includibile.

        ABSOLUTE: nLockTime deve essere < altezza blocco -> value + 1.
        RELATIVE: l'input deve avere `value` conferme -> funding_height + value.

        Raises:
            InvalidTransactionShape: RELATIVE senza funding_height
        """
        if self.is_absolute:
            return self.value + 1

        if funding_height is None:
            raise InvalidTransactionShape(
                "Relative timelock maturity requires the funding confirmation height",
                code="MISSING_FUNDING_HEIGHT"
            )
        return funding_height + self.value

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Timelock:
        return cls(TimelockKind(data["kind"]), data["value"])


# ============================================================================
# CHANNEL PARAMETERS
# ============================================================================

@dataclass(frozen=True)
class ChannelParameters:
    """
    Parametri del canale.

    Immutabili una volta confermata la funding transaction: il
    funding_outpoint si aggiunge con with_funding_outpoint().

    Attributes:
        payer_pubkey (bytes): Public key compressa del payer
        payee_pubkey (bytes): Public key compressa del payee
        funding_amount (int): Valore del channel output
        refund_timelock (Timelock): Timelock del ramo refund
        funding_outpoint (Optional[OutPoint]): Channel id una volta noto
        payer_script (Optional[bytes]): scriptPubKey payout payer (default P2WPKH)
        payee_script (Optional[bytes]): scriptPubKey payout payee (default P2WPKH)
    """

    payer_pubkey: bytes
    payee_pubkey: bytes
    funding_amount: int
    refund_timelock: Timelock
    funding_outpoint: Optional[OutPoint] = None
    payer_script: Optional[bytes] = None
    payee_script: Optional[bytes] = None

    def __post_init__(self):
        validate_pubkey(self.payer_pubkey, "payer_pubkey")
        validate_pubkey(self.payee_pubkey, "payee_pubkey")
        validate_amount(self.funding_amount, "funding_amount", allow_zero=False)

        if self.payer_pubkey == self.payee_pubkey:
            raise InvalidTransactionShape(
                "Payer and payee must use distinct public keys",
                code="DUPLICATE_PUBKEY"
            )

        for field_name in ("payer_script", "payee_script"):
            script = getattr(self, field_name)
            if script is not None and not script:
                raise InvalidTransactionShape(
                    f"{field_name} cannot be empty",
                    code="EMPTY_OUTPUT_SCRIPT"
                )

        if self.payer_script is not None and self.payer_script == self.payee_script:
            raise InvalidTransactionShape(
                "Payer and payee payout scripts must differ",
                code="DUPLICATE_OUTPUT_SCRIPT"
            )

    # ========================================================================
    # IDENTIFIERS
    # ========================================================================

    @property
    def pending_id(self) -> str:
        """Id deterministico prima che il funding outpoint sia noto"""
        material = b"".join([
            self.payer_pubkey,
            self.payee_pubkey,
            self.funding_amount.to_bytes(8, 'little'),
            self.refund_timelock.kind.value.encode(),
            self.refund_timelock.value.to_bytes(4, 'little'),
        ])
        return "pending:" + compute_sha256(material).hex()[:32]

    @property
    def channel_id(self) -> str:
        if self.funding_outpoint is not None:
            return str(self.funding_outpoint)
        return self.pending_id

    def with_funding_outpoint(self, outpoint: OutPoint) -> ChannelParameters:
        return replace(self, funding_outpoint=outpoint)

    def require_funding_outpoint(self) -> OutPoint:
        if self.funding_outpoint is None:
            raise InvalidTransactionShape(
                "Channel has no funding outpoint yet",
                code="MISSING_FUNDING_OUTPOINT",
                details={"channel_id": self.pending_id}
            )
        return self.funding_outpoint

    # ========================================================================
    # PAYOUT SCRIPTS
    # ========================================================================

    def payer_output_script(self) -> bytes:
        return self.payer_script if self.payer_script is not None else p2wpkh_script(self.payer_pubkey)

    def payee_output_script(self) -> bytes:
        return self.payee_script if self.payee_script is not None else p2wpkh_script(self.payee_pubkey)

    def pubkey_for(self, role: ChannelRole) -> bytes:
        return self.payer_pubkey if role == ChannelRole.PAYER else self.payee_pubkey

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Serializza parametri (persistenza esterna)"""
        return {
            "payer_pubkey": self.payer_pubkey.hex(),
            "payee_pubkey": self.payee_pubkey.hex(),
            "funding_amount": self.funding_amount,
            "refund_timelock": self.refund_timelock.to_dict(),
            "funding_outpoint": str(self.funding_outpoint) if self.funding_outpoint else None,
            "payer_script": self.payer_script.hex() if self.payer_script is not None else None,
            "payee_script": self.payee_script.hex() if self.payee_script is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChannelParameters:
        """Deserializza parametri"""
        outpoint = data.get("funding_outpoint")
        payer_script = data.get("payer_script")
        payee_script = data.get("payee_script")
        return cls(
            payer_pubkey=bytes.fromhex(data["payer_pubkey"]),
            payee_pubkey=bytes.fromhex(data["payee_pubkey"]),
            funding_amount=data["funding_amount"],
            refund_timelock=Timelock.from_dict(data["refund_timelock"]),
            funding_outpoint=OutPoint.parse(outpoint) if outpoint else None,
            payer_script=bytes.fromhex(payer_script) if payer_script is not None else None,
            payee_script=bytes.fromhex(payee_script) if payee_script is not None else None,
        )

    def __repr__(self) -> str:
        return (
            f"ChannelParameters(channel_id={self.channel_id}, "
            f"funding_amount={self.funding_amount}, "
            f"timelock={self.refund_timelock.kind.value}:{self.refund_timelock.value})"
        )


__all__ = [
    "Timelock",
    "ChannelParameters",
]
