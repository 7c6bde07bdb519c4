"""
One-Way Channel - Custom Exceptions
=====================================
Gerarchia eccezioni per la costruzione delle transazioni di canale.

Security Level: HIGH
Version: 1.0.0

Ogni errore e' locale e recuperabile: il chiamante riceve abbastanza
contesto (channel id, amount tentato) per ritentare o abbandonare.
"""

from typing import Optional, Any


# ============================================================================
# BASE EXCEPTION
# ============================================================================

class ChannelException(Exception):
    """
    Eccezione base per tutte le eccezioni del canale.

    Attributes:
        message (str): Messaggio errore
        code (str): Codice errore (es. "NON_MONOTONIC_PAYMENT")
        details (dict): Dettagli aggiuntivi (channel_id, amount, ...)
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Serializza eccezione per logging"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code}] {self.message} | Details: {self.details}"
        return f"[{self.code}] {self.message}"


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================

class ConfigError(ChannelException):
    """Errore configurazione"""
    pass


# ============================================================================
# VALIDATION ERRORS
# ============================================================================

class ValidationError(ChannelException):
    """Errore validazione (base)"""
    pass


class InvalidTransactionShape(ValidationError):
    """Transazione strutturalmente invalida (input vuoti, amount, locktime)"""
    pass


class TransactionDecodeError(ValidationError):
    """Bytes non decodificabili come transazione"""
    pass


class InsufficientFunds(ValidationError):
    """Input insufficienti per funding amount + fee"""
    pass


class NonMonotonicPayment(ValidationError):
    """Pagamento cumulativo inferiore all'ultimo accettato"""
    pass


class AmountExceedsFunding(ValidationError):
    """Pagamento cumulativo + fee oltre il funding amount"""
    pass


class DegenerateTransaction(ValidationError):
    """Tutti gli output sotto la soglia dust"""
    pass


class TimelockNotMatured(ValidationError):
    """Refund non ancora includibile in un blocco"""
    pass


# ============================================================================
# SIGNING ERRORS
# ============================================================================

class SigningError(ChannelException):
    """Errore raccolta firme"""
    pass


class SignatureMismatch(SigningError):
    """Firma della controparte non verifica sul sighash atteso"""
    pass


class SigningTimeout(SigningError):
    """Richiesta firma scaduta"""
    pass


class CounterpartyRejected(SigningError):
    """Controparte ha rifiutato di firmare"""
    pass


# ============================================================================
# CHANNEL STATE ERRORS
# ============================================================================

class ChannelStateError(ChannelException):
    """Errore state machine canale"""
    pass


class InvalidStateTransition(ChannelStateError):
    """Operazione non ammessa nello stato corrente"""
    pass


class ChannelNotFound(ChannelStateError):
    """Canale non registrato"""
    pass


# ============================================================================
# CRYPTOGRAPHY ERRORS
# ============================================================================

class CryptoError(ChannelException):
    """Errore crittografia"""
    pass


class InvalidKeyError(CryptoError):
    """Chiave crittografica invalida"""
    pass


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def format_validation_error(
    field: str,
    value: Any,
    expected: str,
    code: Optional[str] = None
) -> InvalidTransactionShape:
    """
    Helper per creare InvalidTransactionShape formattati.

    Args:
        field: Nome campo invalido
        value: Valore ricevuto
        expected: Valore/tipo atteso
        code: Codice errore custom

    Returns:
        InvalidTransactionShape: Eccezione formattata

    Example:
        >>> raise format_validation_error("amount", -100, "0 <= amount <= MAX_MONEY")
    """
    return InvalidTransactionShape(
        message=f"Invalid field '{field}': expected {expected}, got {value}",
        code=code or "INVALID_SHAPE",
        details={"field": field, "value": value, "expected": expected}
    )


# ============================================================================
# EXPORT ALL
# ============================================================================

__all__ = [
    # Base
    "ChannelException",

    # Config
    "ConfigError",

    # Validation
    "ValidationError",
    "InvalidTransactionShape",
    "TransactionDecodeError",
    "InsufficientFunds",
    "NonMonotonicPayment",
    "AmountExceedsFunding",
    "DegenerateTransaction",
    "TimelockNotMatured",

    # Signing
    "SigningError",
    "SignatureMismatch",
    "SigningTimeout",
    "CounterpartyRejected",

    # State
    "ChannelStateError",
    "InvalidStateTransition",
    "ChannelNotFound",

    # Crypto
    "CryptoError",
    "InvalidKeyError",

    # Helpers
    "format_validation_error",
]
