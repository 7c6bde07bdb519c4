"""
One-Way Channel - Transaction Assembler
=========================================
State machine di un singolo canale: compone, firma e valida le
transazioni di canale.

Security Level: CRITICAL
Version: 1.0.0

States:
    UNFUNDED -> FUNDED      funding costruita e confermata (esternamente)
    FUNDED/ACTIVE -> ACTIVE nuovo commitment firmato da entrambe le parti
    ACTIVE -> CLOSING       broadcast ultimo commitment
    FUNDED/ACTIVE -> CLOSING refund del payer dopo maturazione
    CLOSING -> CLOSED       conferma on-chain (osservata esternamente)

Concurrency:
- Un lock per assembler: gli update sono strettamente serializzati,
  il lock resta acquisito per tutto il round trip di firma.
- Nessuno stato condiviso tra canali.
- La richiesta di firma alla controparte gira su un executor a un
  worker con timeout; timeout o rifiuto lasciano lo stato invariato.
- Il "latest" commitment e' un record immutabile sostituito in un
  solo assegnamento.
"""

from __future__ import annotations
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Sequence, Tuple, Protocol

from one_way_channel.channel.commitment import CommitmentTransaction
from one_way_channel.channel.fees import configured_commitment_fee, configured_refund_fee
from one_way_channel.channel.funding import FundingInput, FundingTransaction
from one_way_channel.channel.parameters import ChannelParameters
from one_way_channel.channel.refund import RefundTransaction
from one_way_channel.channel.signatures import SignatureSet
from one_way_channel.channel.transactions import channel_transaction_from_dict
from one_way_channel.config import ChannelSettings, get_settings
from one_way_channel.constants import ChannelRole, SighashFlag
from one_way_channel.domain.crypto_core import Signer, ECDSASigner
from one_way_channel.domain.models import OutPoint
from one_way_channel.errors import (
    ChannelException,
    CounterpartyRejected,
    InvalidStateTransition,
    InvalidTransactionShape,
    SignatureMismatch,
    SigningError,
    SigningTimeout,
)
from one_way_channel.logging_setup import get_logger, PerformanceLogger, AuditLogger


logger = get_logger("assembler")


# ============================================================================
# STATE & RECORDS
# ============================================================================

class ChannelState(Enum):
    """Stati del canale"""
    UNFUNDED = "unfunded"
    FUNDED = "funded"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(frozen=True)
class CommitmentRecord:
    """
    Versione accettata del commitment.

    Attributes:
        update_number (int): Indice progressivo dell'update
        cumulative_payment (int): Payment index (cumulativo al payee)
        commitment (CommitmentTransaction): Commitment firmato da entrambi
        accepted_at (int): Timestamp accettazione
    """

    update_number: int
    cumulative_payment: int
    commitment: CommitmentTransaction
    accepted_at: int = field(default_factory=lambda: int(time.time()))

    @property
    def txid(self) -> str:
        return self.commitment.txid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "update_number": self.update_number,
            "cumulative_payment": self.cumulative_payment,
            "accepted_at": self.accepted_at,
            "commitment": self.commitment.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], parameters: ChannelParameters) -> CommitmentRecord:
        return cls(
            update_number=data["update_number"],
            cumulative_payment=data["cumulative_payment"],
            commitment=channel_transaction_from_dict(data["commitment"], parameters),
            accepted_at=data["accepted_at"],
        )


def _commits_to_outputs(signature: bytes) -> bool:
    """Solo SIGHASH_ALL lega la firma agli output del commitment"""
    return len(signature) > 1 and signature[-1] == SighashFlag.ALL


@dataclass(frozen=True)
class SignatureRequest:
    """
    Richiesta di controfirma inviata alla controparte.

    Attributes:
        channel_id (str): Canale
        commitment (CommitmentTransaction): Commitment non finalizzato
        requester_role (ChannelRole): Chi ha gia' firmato
        requester_signature (bytes): Firma del richiedente (con byte sighash)
        sighash_flag (SighashFlag): Flag della controfirma, solo SIGHASH_ALL accettato
    """

    channel_id: str
    commitment: CommitmentTransaction
    requester_role: ChannelRole
    requester_signature: bytes
    sighash_flag: SighashFlag = SighashFlag.ALL

    @property
    def cumulative_payment(self) -> int:
        return self.commitment.cumulative_payment

    @property
    def signature_hash(self) -> bytes:
        return self.commitment.signature_hash(0, self.sighash_flag)


class CounterpartySigner(Protocol):
    """
    Controparte remota (o hardware signer) che controfirma i commitment.

    Ritorna la firma (DER + byte sighash) oppure None per rifiutare.
    Puo' bloccare: l'assembler applica il timeout.
    """

    def request_signature(self, request: SignatureRequest) -> Optional[bytes]:
        ...


# ============================================================================
# TRANSACTION ASSEMBLER
# ============================================================================

class TransactionAssembler:
    """
    Orchestratore build + firma di un canale, lato PAYER o PAYEE.

    Attributes:
        parameters (ChannelParameters): Parametri (outpoint dopo confirm_funding)
        role (ChannelRole): Ruolo locale
        state (ChannelState): Stato corrente
        funding (FundingTransaction): Funding (solo se costruita localmente)
        refund_transaction (RefundTransaction): Refund del canale
        funding_height (int): Altezza conferma funding

    Examples:
        >>> payer = TransactionAssembler(params, ChannelRole.PAYER, payer_secret, counterparty=payee)
        >>> funding = payer.build_funding(inputs, fee=500, change_script=change)
        >>> payer.confirm_funding(funding_height=800_000)
        >>> payer.pay(1000).payee_amount
        1000
    """

    def __init__(
        self,
        parameters: ChannelParameters,
        role: ChannelRole,
        key: bytes,
        signer: Optional[Signer] = None,
        counterparty: Optional[CounterpartySigner] = None,
        settings: Optional[ChannelSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.parameters = parameters
        self.role = ChannelRole(role)
        self._key = key
        self.signer = signer or ECDSASigner()
        self.counterparty = counterparty
        self.settings = settings or get_settings()

        if audit_logger is None and self.settings.audit_log_enabled:
            audit_logger = AuditLogger(self.settings.log_dir)
        self.audit = audit_logger

        self.state = ChannelState.UNFUNDED
        self.funding: Optional[FundingTransaction] = None
        self.refund_transaction: Optional[RefundTransaction] = None
        self.funding_height: Optional[int] = None
        self.closing_txid: Optional[str] = None
        self.signatures = SignatureSet()

        self._latest: Optional[CommitmentRecord] = None
        self._history: List[CommitmentRecord] = []
        self._lock = threading.RLock()
        self._executor: Optional[ThreadPoolExecutor] = None

        self.logger = logger.bind(channel_id=parameters.channel_id, role=self.role.value)

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def channel_id(self) -> str:
        return self.parameters.channel_id

    @property
    def latest(self) -> Optional[CommitmentRecord]:
        """Unico commitment broadcastable"""
        return self._latest

    @property
    def cumulative_payment(self) -> int:
        return self._latest.cumulative_payment if self._latest else 0

    @property
    def update_number(self) -> int:
        return self._latest.update_number if self._latest else 0

    @property
    def own_pubkey(self) -> bytes:
        return self.parameters.pubkey_for(self.role)

    @property
    def counterparty_role(self) -> ChannelRole:
        return ChannelRole.PAYEE if self.role == ChannelRole.PAYER else ChannelRole.PAYER

    @property
    def counterparty_pubkey(self) -> bytes:
        return self.parameters.pubkey_for(self.counterparty_role)

    def history(self) -> Tuple[CommitmentRecord, ...]:
        """Commitment superati (audit trail, mai broadcastabili)"""
        with self._lock:
            return tuple(self._history)

    # ========================================================================
    # GUARDS
    # ========================================================================

    def _require_state(self, operation: str, *allowed: ChannelState):
        if self.state not in allowed:
            raise InvalidStateTransition(
                f"Cannot {operation} in state {self.state.value}",
                details={
                    "channel_id": self.channel_id,
                    "state": self.state.value,
                    "allowed": [s.value for s in allowed],
                }
            )

    def _require_role(self, operation: str, role: ChannelRole):
        if self.role != role:
            raise InvalidStateTransition(
                f"Only the {role.value} can {operation}",
                code="ROLE_NOT_ALLOWED",
                details={"channel_id": self.channel_id, "role": self.role.value}
            )

    def _commitment_fee(self) -> int:
        return configured_commitment_fee(self.parameters, self.settings)

    def _refund_fee(self) -> int:
        return configured_refund_fee(self.parameters, self.settings)

    # ========================================================================
    # FUNDING
    # ========================================================================

    def build_funding(
        self,
        inputs: Sequence[FundingInput],
        fee: int,
        change_script: Optional[bytes] = None,
    ) -> FundingTransaction:
        """
        Costruisce la funding transaction (solo payer).

        La firma degli input e' del wallet esterno; il broadcast pure.
        """
        with self._lock:
            self._require_role("build the funding transaction", ChannelRole.PAYER)
            self._require_state("build funding", ChannelState.UNFUNDED)

            self.funding = FundingTransaction.build(
                inputs,
                self.parameters,
                fee,
                change_script=change_script,
                dust_threshold=self.settings.dust_threshold,
                version=self.settings.tx_version,
            )
            return self.funding

    def confirm_funding(
        self,
        funding_outpoint: Optional[OutPoint] = None,
        funding_height: Optional[int] = None,
    ) -> ChannelParameters:
        """
        UNFUNDED -> FUNDED: funding confermata on-chain.

        Args:
            funding_outpoint: Richiesto se la funding non e' stata costruita qui
            funding_height: Altezza conferma (necessaria per lock relativi)

        Returns:
            ChannelParameters: Parametri con funding_outpoint
        """
        with self._lock:
            self._require_state("confirm funding", ChannelState.UNFUNDED)

            if self.funding is not None:
                expected = self.funding.funding_outpoint
                if funding_outpoint is not None and funding_outpoint != expected:
                    raise InvalidTransactionShape(
                        "Confirmed outpoint differs from the built funding transaction",
                        code="FUNDING_OUTPOINT_MISMATCH",
                        details={
                            "channel_id": self.channel_id,
                            "expected": str(expected),
                            "received": str(funding_outpoint),
                        }
                    )
                funding_outpoint = expected

            if funding_outpoint is None:
                raise InvalidTransactionShape(
                    "Funding outpoint required to confirm funding",
                    code="MISSING_FUNDING_OUTPOINT",
                    details={"channel_id": self.channel_id}
                )

            parameters = self.parameters.with_funding_outpoint(funding_outpoint)
            refund = RefundTransaction.build(
                funding_outpoint,
                parameters,
                fee=self._refund_fee(),
                dust_threshold=self.settings.dust_threshold,
                version=self.settings.tx_version,
            )

            pending_id = self.parameters.pending_id
            self.parameters = parameters
            self.refund_transaction = refund
            self.funding_height = funding_height
            self.state = ChannelState.FUNDED
            self.logger = logger.bind(channel_id=parameters.channel_id, role=self.role.value)

            self.logger.info(
                "Channel funded",
                extra_data={
                    "pending_id": pending_id,
                    "funding_amount": parameters.funding_amount,
                    "funding_height": funding_height,
                    "refund_txid": refund.txid,
                }
            )
            return parameters

    # ========================================================================
    # PAYMENTS
    # ========================================================================

    def pay(self, cumulative_payment: int) -> CommitmentTransaction:
        """
        Nuovo commitment con cumulativo cumulative_payment (solo payer).

        Firma localmente, richiede la controfirma del payee, la verifica
        e solo allora sostituisce il latest commitment.

        Raises:
            NonMonotonicPayment, AmountExceedsFunding, DegenerateTransaction
            SigningTimeout: Controparte non ha risposto in tempo
            CounterpartyRejected: Controparte ha rifiutato
            SignatureMismatch: Controfirma non valida
        """
        with self._lock:
            self._require_role("initiate a payment", ChannelRole.PAYER)
            self._require_state("pay", ChannelState.FUNDED, ChannelState.ACTIVE)

            commitment = CommitmentTransaction.build(
                self.parameters.require_funding_outpoint(),
                self.parameters,
                cumulative_payment,
                fee=self._commitment_fee(),
                previous_payment=self.cumulative_payment,
                dust_threshold=self.settings.dust_threshold,
                update_number=self.update_number + 1,
                version=self.settings.tx_version,
            )

            own_signature = self._sign_commitment(commitment)

            request = SignatureRequest(
                channel_id=self.channel_id,
                commitment=commitment,
                requester_role=self.role,
                requester_signature=own_signature,
            )
            counter_signature = self._request_counter_signature(request)

            if not (
                _commits_to_outputs(counter_signature)
                and commitment.verify_input_signature(0, counter_signature, self.counterparty_pubkey, self.signer)
            ):
                self.logger.warning(
                    "Counter-signature rejected, keeping previous commitment",
                    extra_data={"attempted": cumulative_payment, "txid": commitment.txid}
                )
                raise SignatureMismatch(
                    "Counterparty signature does not verify against the commitment sighash",
                    details={
                        "channel_id": self.channel_id,
                        "attempted": cumulative_payment,
                        "txid": commitment.txid,
                    }
                )

            finalized = commitment.with_signatures(own_signature, counter_signature)
            self._install(finalized, own_signature, counter_signature)
            return finalized

    def increment(self, amount: int) -> CommitmentTransaction:
        """Paga amount in piu' rispetto all'ultimo cumulativo"""
        with self._lock:
            return self.pay(self.cumulative_payment + amount)

    def accept_commitment(self, request: SignatureRequest) -> bytes:
        """
        Controfirma un commitment proposto dal payer (solo payee).

        Il commitment viene ricostruito localmente: amount, fee e script
        devono coincidere con quelli attesi.

        Returns:
            bytes: Firma del payee (DER + byte sighash)
        """
        with self._lock:
            self._require_role("accept a commitment", ChannelRole.PAYEE)
            self._require_state("accept a commitment", ChannelState.FUNDED, ChannelState.ACTIVE)

            proposed = request.commitment
            expected = CommitmentTransaction.build(
                self.parameters.require_funding_outpoint(),
                self.parameters,
                proposed.cumulative_payment,
                fee=self._commitment_fee(),
                previous_payment=self.cumulative_payment,
                dust_threshold=self.settings.dust_threshold,
                update_number=self.update_number + 1,
                version=self.settings.tx_version,
            )

            if expected.tx != proposed.tx.without_witness():
                raise InvalidTransactionShape(
                    "Proposed commitment differs from the locally built one",
                    code="COMMITMENT_MISMATCH",
                    details={
                        "channel_id": self.channel_id,
                        "attempted": proposed.cumulative_payment,
                        "expected_txid": expected.txid,
                        "proposed_txid": proposed.txid,
                    }
                )

            if request.sighash_flag != SighashFlag.ALL or not _commits_to_outputs(request.requester_signature):
                raise SignatureMismatch(
                    "Commitment signatures must use SIGHASH_ALL",
                    code="SIGHASH_NOT_ALL",
                    details={
                        "channel_id": self.channel_id,
                        "attempted": proposed.cumulative_payment,
                        "sighash_flag": int(request.sighash_flag),
                    }
                )

            if not expected.verify_input_signature(
                0, request.requester_signature, self.counterparty_pubkey, self.signer
            ):
                raise SignatureMismatch(
                    "Payer signature does not verify against the commitment sighash",
                    details={
                        "channel_id": self.channel_id,
                        "attempted": proposed.cumulative_payment,
                    }
                )

            own_signature = self._sign_commitment(expected)
            finalized = expected.with_signatures(request.requester_signature, own_signature)
            self._install(finalized, request.requester_signature, own_signature)
            return own_signature

    def request_signature(self, request: SignatureRequest) -> Optional[bytes]:
        """Un assembler PAYEE puo' fare da CounterpartySigner per il payer"""
        return self.accept_commitment(request)

    def _sign_commitment(self, commitment: CommitmentTransaction) -> bytes:
        signature = commitment.sign_input(0, self.signer, self._key, SighashFlag.ALL)
        if not commitment.verify_input_signature(0, signature, self.own_pubkey, self.signer):
            raise SignatureMismatch(
                f"Local key does not match the {self.role.value} public key",
                details={"channel_id": self.channel_id}
            )
        return signature

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1,
                thread_name_prefix=f"signing-{self.channel_id[:8]}"
            )
        return self._executor

    def _request_counter_signature(self, request: SignatureRequest) -> bytes:
        if self.counterparty is None:
            raise SigningError(
                "No counterparty signer configured",
                code="NO_COUNTERPARTY",
                details={"channel_id": self.channel_id}
            )

        timeout = self.settings.signing_timeout_seconds
        future = self._get_executor().submit(self.counterparty.request_signature, request)

        try:
            with PerformanceLogger(
                self.logger,
                "counterparty_signature",
                threshold_ms=self.settings.signing_slow_threshold_ms
            ):
                signature = future.result(timeout=timeout)
        except FuturesTimeoutError:
            future.cancel()
            # il worker resta occupato dalla chiamata in corso: il prossimo round usa un executor nuovo
            self.shutdown()
            self.logger.warning(
                "Counterparty signature timed out",
                extra_data={"attempted": request.cumulative_payment, "timeout_s": timeout}
            )
            raise SigningTimeout(
                f"Counterparty did not sign within {timeout}s",
                details={
                    "channel_id": self.channel_id,
                    "attempted": request.cumulative_payment,
                    "timeout_seconds": timeout,
                }
            )
        except ChannelException as e:
            raise CounterpartyRejected(
                f"Counterparty refused to sign: {e.message}",
                details={
                    "channel_id": self.channel_id,
                    "attempted": request.cumulative_payment,
                    "cause": e.to_dict(),
                }
            ) from e

        if not signature:
            raise CounterpartyRejected(
                "Counterparty declined to sign",
                details={"channel_id": self.channel_id, "attempted": request.cumulative_payment}
            )
        return signature

    def _install(self, commitment: CommitmentTransaction, payer_signature: bytes, payee_signature: bytes):
        """Sostituzione atomica del latest commitment"""
        record = CommitmentRecord(
            update_number=commitment.update_number,
            cumulative_payment=commitment.cumulative_payment,
            commitment=commitment,
        )
        previous = self._latest
        self._latest = record
        self.state = ChannelState.ACTIVE

        self.signatures.add(record.txid, 0, self.parameters.payer_pubkey, payer_signature)
        self.signatures.add(record.txid, 0, self.parameters.payee_pubkey, payee_signature)

        if previous is not None:
            self.signatures.discard(previous.txid)
            if self.settings.keep_commitment_history:
                self._history.append(previous)
                overflow = len(self._history) - self.settings.max_commitment_history
                if overflow > 0:
                    del self._history[:overflow]
            if self.audit:
                self.audit.log_commitment_superseded(self.channel_id, previous.update_number, previous.txid)

        if self.audit:
            self.audit.log_commitment_accepted(
                self.channel_id, record.update_number, record.cumulative_payment, record.txid
            )

        self.logger.info(
            "Commitment accepted",
            extra_data={
                "update_number": record.update_number,
                "cumulative_payment": record.cumulative_payment,
                "txid": record.txid,
            }
        )

    # ========================================================================
    # SETTLEMENT
    # ========================================================================

    def close(self) -> bytes:
        """
        ACTIVE -> CLOSING: bytes dell'ultimo commitment firmato.

        Raises:
            SignatureMismatch: Il latest commitment non ha firme valide
        """
        with self._lock:
            self._require_state("close", ChannelState.ACTIVE)
            record = self._latest

            if not record.commitment.is_valid(for_broadcast=True, signer=self.signer):
                raise SignatureMismatch(
                    "Latest commitment is not fully signed",
                    details={"channel_id": self.channel_id, "txid": record.txid}
                )

            self.state = ChannelState.CLOSING
            self.closing_txid = record.txid

            if self.audit:
                self.audit.log_settlement(self.channel_id, "commitment", record.txid, record.cumulative_payment)

            self.logger.info(
                "Channel closing with latest commitment",
                extra_data={"txid": record.txid, "cumulative_payment": record.cumulative_payment}
            )
            return record.commitment.to_data()

    def refund(self, block_height: int, funding_height: Optional[int] = None) -> bytes:
        """
        FUNDED/ACTIVE -> CLOSING: refund firmata dal payer.

        Raises:
            TimelockNotMatured: Refund non includibile a block_height
        """
        with self._lock:
            self._require_role("refund", ChannelRole.PAYER)
            self._require_state("refund", ChannelState.FUNDED, ChannelState.ACTIVE)

            if funding_height is None:
                funding_height = self.funding_height

            refund = self.refund_transaction
            refund.check_maturity(block_height, funding_height)

            signed = refund.sign(self.signer, self._key)
            self.refund_transaction = signed
            self.state = ChannelState.CLOSING
            self.closing_txid = signed.txid

            if self.audit:
                self.audit.log_settlement(self.channel_id, "refund", signed.txid, signed.refund_amount)

            self.logger.info(
                "Channel refunded to payer",
                extra_data={"txid": signed.txid, "block_height": block_height}
            )
            return signed.to_data()

    def mark_closed(self, txid: Optional[str] = None):
        """CLOSING -> CLOSED: settlement confermato"""
        with self._lock:
            self._require_state("mark closed", ChannelState.CLOSING)
            if txid is not None:
                self.closing_txid = txid
            self.state = ChannelState.CLOSED
            self.shutdown()
            self.logger.info("Channel closed", extra_data={"txid": self.closing_txid})

    def shutdown(self):
        """Rilascia l'executor di firma"""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    # ========================================================================
    # PERSISTENCE
    # ========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot per persistenza esterna (senza materiale chiave)"""
        with self._lock:
            return {
                "parameters": self.parameters.to_dict(),
                "role": self.role.value,
                "state": self.state.value,
                "funding": self.funding.to_dict() if self.funding else None,
                "refund": self.refund_transaction.to_dict() if self.refund_transaction else None,
                "funding_height": self.funding_height,
                "closing_txid": self.closing_txid,
                "latest": self._latest.to_dict() if self._latest else None,
                "history": [record.to_dict() for record in self._history],
            }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        key: bytes,
        signer: Optional[Signer] = None,
        counterparty: Optional[CounterpartySigner] = None,
        settings: Optional[ChannelSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ) -> TransactionAssembler:
        """Ricostruisce l'assembler da uno snapshot to_dict()"""
        parameters = ChannelParameters.from_dict(data["parameters"])
        assembler = cls(
            parameters,
            ChannelRole(data["role"]),
            key,
            signer=signer,
            counterparty=counterparty,
            settings=settings,
            audit_logger=audit_logger,
        )
        assembler.state = ChannelState(data["state"])
        assembler.funding_height = data.get("funding_height")
        assembler.closing_txid = data.get("closing_txid")

        if data.get("funding"):
            # La funding e' costruita prima dell'outpoint: parametri senza outpoint
            funding_params = ChannelParameters.from_dict({**data["parameters"], "funding_outpoint": None})
            assembler.funding = channel_transaction_from_dict(data["funding"], funding_params)
        if data.get("refund"):
            assembler.refund_transaction = channel_transaction_from_dict(data["refund"], parameters)
        if data.get("latest"):
            assembler._latest = CommitmentRecord.from_dict(data["latest"], parameters)
        assembler._history = [CommitmentRecord.from_dict(r, parameters) for r in data.get("history", [])]

        latest = assembler._latest
        if latest is not None:
            signatures = latest.commitment.signatures()
            if signatures is None:
                raise InvalidTransactionShape(
                    "Persisted latest commitment is not fully signed",
                    code="UNSIGNED_COMMITMENT",
                    details={"channel_id": parameters.channel_id, "txid": latest.txid}
                )
            assembler.signatures.add(latest.txid, 0, parameters.payer_pubkey, signatures[0])
            assembler.signatures.add(latest.txid, 0, parameters.payee_pubkey, signatures[1])

        return assembler

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "channel_id": self.channel_id,
                "role": self.role.value,
                "state": self.state.value,
                "funding_amount": self.parameters.funding_amount,
                "cumulative_payment": self.cumulative_payment,
                "update_number": self.update_number,
                "superseded_commitments": len(self._history),
            }

    def __repr__(self) -> str:
        return (
            f"TransactionAssembler(channel_id={self.channel_id}, role={self.role.value}, "
            f"state={self.state.value}, cumulative={self.cumulative_payment})"
        )


__all__ = [
    "ChannelState",
    "CommitmentRecord",
    "SignatureRequest",
    "CounterpartySigner",
    "TransactionAssembler",
]
