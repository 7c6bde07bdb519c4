"""
One-Way Channel - Cryptographic Core Layer
============================================
Hash di consenso e capability di firma consumata dal core.

Security Level: CRITICAL
Version: 1.0.0

SECURITY NOTICE:
Il core non ispeziona mai il materiale chiave: riceve un Signer
(sign/verify) e gli passa il digest sighash da firmare.

Algorithms:
- Hash: SHA-256, double SHA-256, HASH160 (SHA-256 + RIPEMD-160)
- Signature: ECDSA secp256k1, DER, low-S

Dependencies:
- cryptography (>=41.0.0)
- hashlib (stdlib)
"""

import hashlib
import secrets
from typing import Tuple, Protocol

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.exceptions import InvalidSignature as CryptoInvalidSignature

from one_way_channel.constants import PRIVATE_KEY_SIZE, SECP256K1_ORDER
from one_way_channel.errors import CryptoError, InvalidKeyError
from one_way_channel.logging_setup import get_logger


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("crypto")


# ============================================================================
# HASH FUNCTIONS
# ============================================================================

def compute_sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 hash.

    Examples:
        >>> compute_sha256(b"").hex()
        'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    """
    if not isinstance(data, (bytes, bytearray)):
        raise CryptoError(
            f"compute_sha256 requires bytes, got {type(data).__name__}",
            code="INVALID_INPUT_TYPE"
        )
    return hashlib.sha256(data).digest()


def compute_double_sha256(data: bytes) -> bytes:
    """
    Compute double SHA-256 (SHA256(SHA256(data))).

    Usato per txid, hashPrevouts/hashSequence/hashOutputs e digest sighash.
    """
    return compute_sha256(compute_sha256(data))


def compute_hash160(data: bytes) -> bytes:
    """
    Compute RIPEMD160(SHA256(data)).

    Usato per gli script P2WPKH di payout.

    Raises:
        CryptoError: Se RIPEMD-160 non e' disponibile nella build OpenSSL
    """
    try:
        hasher = hashlib.new('ripemd160')
    except ValueError:
        raise CryptoError(
            "RIPEMD-160 not available in this hashlib build; "
            "supply explicit payout scripts instead",
            code="RIPEMD160_UNAVAILABLE"
        )
    hasher.update(compute_sha256(data))
    return hasher.digest()


# ============================================================================
# SIGNER PROTOCOL
# ============================================================================

class Signer(Protocol):
    """
    Capability di firma esterna.

    Il preimage passato e' il digest sighash a 32 byte della transazione.
    Il core tratta sign() come infallibile-o-errore.
    """

    def sign(self, preimage: bytes, key: bytes) -> bytes:
        ...

    def verify(self, preimage: bytes, signature: bytes, pubkey: bytes) -> bool:
        ...


# ============================================================================
# ECDSA SIGNER (secp256k1)
# ============================================================================

class ECDSASigner:
    """
    Signer ECDSA secp256k1 basato sulla libreria cryptography.

    Features:
    - Digest gia' calcolato (Prehashed SHA-256 size)
    - Firma DER con S normalizzato (low-S, BIP62)
    - Public key SEC1 compresse (33 bytes)

    Examples:
        >>> signer = ECDSASigner()
        >>> secret, pubkey = generate_keypair()
        >>> sig = signer.sign(b"\\x11" * 32, secret)
        >>> signer.verify(b"\\x11" * 32, sig, pubkey)
        True
    """

    def __init__(self):
        self.curve = ec.SECP256K1()
        self.algorithm = ec.ECDSA(Prehashed(hashes.SHA256()))

    def _load_private(self, key: bytes) -> ec.EllipticCurvePrivateKey:
        if len(key) != PRIVATE_KEY_SIZE:
            raise InvalidKeyError(
                f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(key)}",
                code="INVALID_PRIVATE_KEY"
            )
        secret = int.from_bytes(key, 'big')
        if not (0 < secret < SECP256K1_ORDER):
            raise InvalidKeyError("Private key out of curve range", code="INVALID_PRIVATE_KEY")
        return ec.derive_private_key(secret, self.curve)

    def _load_public(self, pubkey: bytes) -> ec.EllipticCurvePublicKey:
        try:
            return ec.EllipticCurvePublicKey.from_encoded_point(self.curve, bytes(pubkey))
        except ValueError as e:
            raise InvalidKeyError(f"Invalid public key: {e}", code="INVALID_PUBKEY")

    def sign(self, preimage: bytes, key: bytes) -> bytes:
        """
        Firma il digest sighash.

        Args:
            preimage: Digest 32 bytes
            key: Private key raw (32 bytes big-endian)

        Returns:
            bytes: Firma DER low-S (senza byte sighash)
        """
        if len(preimage) != 32:
            raise CryptoError(
                f"Signature digest must be 32 bytes, got {len(preimage)}",
                code="INVALID_DIGEST"
            )

        private_key = self._load_private(key)
        der = private_key.sign(bytes(preimage), self.algorithm)

        r, s = decode_dss_signature(der)
        if s > SECP256K1_ORDER // 2:
            s = SECP256K1_ORDER - s

        return encode_dss_signature(r, s)

    def verify(self, preimage: bytes, signature: bytes, pubkey: bytes) -> bool:
        """
        Verifica firma DER sul digest.

        Accetta solo DER canonico con S nella meta' bassa (BIP62), come
        la policy di relay dei nodi.

        Returns:
            bool: True se firma valida, False altrimenti
        """
        try:
            r, s = decode_dss_signature(bytes(signature))
            if s > SECP256K1_ORDER // 2:
                logger.debug("ECDSA signature rejected: high S")
                return False
            if encode_dss_signature(r, s) != bytes(signature):
                logger.debug("ECDSA signature rejected: non-canonical DER")
                return False

            public_key = self._load_public(pubkey)
            public_key.verify(bytes(signature), bytes(preimage), self.algorithm)
            return True
        except CryptoInvalidSignature:
            logger.debug("ECDSA signature verification failed: invalid signature")
            return False
        except (InvalidKeyError, ValueError) as e:
            logger.debug(f"ECDSA verification rejected malformed input: {e}")
            return False


# ============================================================================
# KEY HELPERS
# ============================================================================

def public_key_from_secret(secret: bytes) -> bytes:
    """
    Deriva public key compressa da private key raw.

    Examples:
        >>> len(public_key_from_secret(b"\\x01" * 32))
        33
    """
    private_key = ECDSASigner()._load_private(secret)
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint,
    )


def generate_keypair() -> Tuple[bytes, bytes]:
    """
    Genera keypair secp256k1.

    Returns:
        tuple: (private_key_raw_32, public_key_compressed_33)
    """
    while True:
        secret = secrets.token_bytes(PRIVATE_KEY_SIZE)
        if 0 < int.from_bytes(secret, 'big') < SECP256K1_ORDER:
            break
    return secret, public_key_from_secret(secret)


__all__ = [
    "compute_sha256",
    "compute_double_sha256",
    "compute_hash160",
    "Signer",
    "ECDSASigner",
    "public_key_from_secret",
    "generate_keypair",
]
