"""
One-Way Channel - Channel Manager
===================================
Registro di TransactionAssembler indipendenti.

Ogni assembler ha il proprio lock; il lock del manager protegge solo
il registro e non viene mai tenuto durante un'operazione di canale.
"""

import threading
from typing import Dict, List, Optional, Any

from one_way_channel.channel.assembler import (
    ChannelState,
    CounterpartySigner,
    TransactionAssembler,
)
from one_way_channel.channel.commitment import CommitmentTransaction
from one_way_channel.channel.parameters import ChannelParameters
from one_way_channel.config import ChannelSettings, get_settings, validate_config
from one_way_channel.constants import ChannelRole
from one_way_channel.domain.crypto_core import Signer
from one_way_channel.domain.models import OutPoint
from one_way_channel.errors import ChannelNotFound, ConfigError, InvalidStateTransition
from one_way_channel.logging_setup import get_logger, AuditLogger


logger = get_logger("manager")


class ChannelManager:
    """
    Gestione canali.

    Lookup per pending id (prima della funding) o per funding outpoint
    (dopo confirm_funding).

    Examples:
        >>> manager = ChannelManager()
        >>> channel = manager.open_channel(params, ChannelRole.PAYER, secret, counterparty=payee)
        >>> manager.confirm_funding(channel.channel_id, outpoint)
        >>> manager.pay(str(outpoint), 1000)
    """

    def __init__(
        self,
        settings: Optional[ChannelSettings] = None,
        signer: Optional[Signer] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.settings = settings or get_settings()

        is_valid, problems = validate_config(self.settings)
        if not is_valid:
            raise ConfigError(
                "Inconsistent channel settings",
                code="INVALID_CONFIG",
                details={"network": self.settings.network, "errors": problems}
            )

        self.signer = signer
        self.audit = audit_logger
        self.channels: Dict[str, TransactionAssembler] = {}
        self._aliases: Dict[str, str] = {}
        self._lock = threading.Lock()

    def open_channel(
        self,
        parameters: ChannelParameters,
        role: ChannelRole,
        key: bytes,
        counterparty: Optional[CounterpartySigner] = None,
    ) -> TransactionAssembler:
        """
        Registra un nuovo canale (stato UNFUNDED).

        Raises:
            InvalidStateTransition: Canale gia' registrato
        """
        assembler = TransactionAssembler(
            parameters,
            role,
            key,
            signer=self.signer,
            counterparty=counterparty,
            settings=self.settings,
            audit_logger=self.audit,
        )
        channel_id = parameters.channel_id

        with self._lock:
            if channel_id in self.channels or channel_id in self._aliases:
                raise InvalidStateTransition(
                    f"Channel already registered: {channel_id}",
                    code="CHANNEL_EXISTS",
                    details={"channel_id": channel_id}
                )
            self.channels[channel_id] = assembler

        logger.info(
            "Channel registered",
            extra_data={
                "channel_id": channel_id,
                "role": assembler.role.value,
                "funding_amount": parameters.funding_amount,
            }
        )
        return assembler

    def get_channel(self, channel_id: str) -> TransactionAssembler:
        """
        Raises:
            ChannelNotFound: Id sconosciuto
        """
        with self._lock:
            key = self._aliases.get(channel_id, channel_id)
            assembler = self.channels.get(key)

        if assembler is None:
            raise ChannelNotFound(
                f"Channel not found: {channel_id}",
                details={"channel_id": channel_id}
            )
        return assembler

    def confirm_funding(
        self,
        channel_id: str,
        funding_outpoint: Optional[OutPoint] = None,
        funding_height: Optional[int] = None,
    ) -> TransactionAssembler:
        """Conferma funding e registra l'outpoint come alias"""
        assembler = self.get_channel(channel_id)
        pending_id = assembler.parameters.pending_id
        parameters = assembler.confirm_funding(funding_outpoint, funding_height)

        with self._lock:
            self._aliases[parameters.channel_id] = pending_id

        return assembler

    def pay(self, channel_id: str, cumulative_payment: int) -> CommitmentTransaction:
        return self.get_channel(channel_id).pay(cumulative_payment)

    def close_channel(self, channel_id: str) -> bytes:
        """Bytes dell'ultimo commitment firmato"""
        return self.get_channel(channel_id).close()

    def refund_channel(
        self,
        channel_id: str,
        block_height: int,
        funding_height: Optional[int] = None,
    ) -> bytes:
        return self.get_channel(channel_id).refund(block_height, funding_height)

    def mark_closed(self, channel_id: str, txid: Optional[str] = None):
        self.get_channel(channel_id).mark_closed(txid)

    def list_channels(self, state: Optional[ChannelState] = None) -> List[str]:
        """Id correnti dei canali (outpoint se finanziati)"""
        with self._lock:
            assemblers = list(self.channels.values())
        return [
            a.channel_id for a in assemblers
            if state is None or a.state == state
        ]

    def shutdown(self):
        with self._lock:
            assemblers = list(self.channels.values())
        for assembler in assemblers:
            assembler.shutdown()

    def get_statistics(self) -> Dict[str, Any]:
        """Get channel statistics"""
        with self._lock:
            assemblers = list(self.channels.values())

        by_state = {state.value: 0 for state in ChannelState}
        for assembler in assemblers:
            by_state[assembler.state.value] += 1

        return {
            "total_channels": len(assemblers),
            "channels_by_state": by_state,
            "total_capacity": sum(a.parameters.funding_amount for a in assemblers),
            "total_paid": sum(a.cumulative_payment for a in assemblers),
        }


__all__ = ["ChannelManager"]
