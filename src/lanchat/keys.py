"""
LanChat - Elliptic-curve key exchange and message signing.

This module implements:
- secp256k1 key pair generation
- ECDH shared secret computation
- Session key derivation from a shared secret (HKDF-SHA256)
- Deterministic ECDSA signatures (RFC 6979, SHA-256) over message bytes
- A thread-safe key ring holding local and peer key material

Public keys travel as hex-encoded uncompressed SEC1 points, signatures
as hex-encoded DER. Private keys never leave the process.
"""

import hashlib
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Union

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .ciphers import EncryptionMode
from .constants import (
    CAESAR_MAX_SHIFT,
    HKDF_INFO_SESSION_KEY,
    PLAYFAIR_ALPHABET,
    PLAYFAIR_SESSION_KEY_LENGTH,
    SESSION_KEY_HEX_LENGTH,
)
from .errors import CryptoError, ErrorCode
from .hybrid import HybridKeyPair
from .hybrid import is_valid_public_key as is_valid_rsa_key

logger = logging.getLogger(__name__)

CURVE = ec.SECP256K1()


class KeyMaterial:
    """
    A local secp256k1 key pair used for key agreement and signing.

    Never used for bulk encryption.
    """

    def __init__(self, private_key: Optional[ec.EllipticCurvePrivateKey] = None):
        if private_key is None:
            private_key = ec.generate_private_key(CURVE)
        self.private_key = private_key
        self.public_key = private_key.public_key()

    def public_key_hex(self) -> str:
        """Uncompressed SEC1 point as hex (130 characters)."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.UncompressedPoint,
        ).hex()

    def private_key_hex(self) -> str:
        """Private scalar as 64 hex characters."""
        return format(self.private_key.private_numbers().private_value, "064x")

    def fingerprint(self) -> str:
        return generate_fingerprint(self.public_key_hex())

    def to_dict(self) -> Dict[str, str]:
        """Export key pair to dictionary for storage."""
        return {"private": self.private_key_hex(), "public": self.public_key_hex()}

    @staticmethod
    def from_dict(data: Dict[str, str]) -> "KeyMaterial":
        """Import key pair from dictionary."""
        return KeyMaterial.from_private_hex(data["private"])

    @staticmethod
    def from_private_hex(private_hex: str) -> "KeyMaterial":
        """
        Rebuild a key pair from its private scalar.

        Raises:
            CryptoError: If the value is not a valid secp256k1 scalar
        """
        try:
            private_value = int(private_hex, 16)
            return KeyMaterial(ec.derive_private_key(private_value, CURVE))
        except (ValueError, TypeError) as e:
            raise CryptoError(ErrorCode.E103_INVALID_KEY, f"Invalid private key: {e}")


PrivateKeyLike = Union[KeyMaterial, str]


def generate_key_pair() -> KeyMaterial:
    """Generate a fresh key pair."""
    return KeyMaterial()


def load_public_key(public_hex: str) -> ec.EllipticCurvePublicKey:
    """
    Load a peer public key from its hex-encoded SEC1 point.

    Raises:
        ValueError: If the value is not a point on the curve
    """
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, bytes.fromhex(public_hex))
    except (TypeError, UnsupportedAlgorithm) as e:
        raise ValueError(f"Invalid public key: {e}") from e


def is_valid_public_key(public_hex: Optional[str]) -> bool:
    if not public_hex:
        return False
    try:
        load_public_key(public_hex)
    except ValueError:
        return False
    return True


def _private_key(own_private: PrivateKeyLike) -> ec.EllipticCurvePrivateKey:
    if isinstance(own_private, KeyMaterial):
        return own_private.private_key
    return KeyMaterial.from_private_hex(own_private).private_key


def compute_shared_secret(own_private: PrivateKeyLike, peer_public: str) -> Optional[str]:
    """
    Perform ECDH with a peer's public key.

    Returns:
        Hex-encoded shared secret, or None if either key is malformed
    """
    try:
        private_key = _private_key(own_private)
        shared = private_key.exchange(ec.ECDH(), load_public_key(peer_public))
        return shared.hex()
    except (CryptoError, ValueError) as e:
        logger.error(f"Failed to compute shared secret: {e}")
        return None


def derive_session_key(shared_secret: str, mode: EncryptionMode) -> str:
    """
    Derive a symmetric key valid for a cipher mode from a shared secret.

    HKDF-SHA256 output is rendered as:
    - Caesar: an integer shift from 1 to 25
    - Playfair: 16 letters of the Playfair alphabet
    - every other mode: 32 hex characters

    Raises:
        CryptoError: If the shared secret is not hex
    """
    try:
        secret = bytes.fromhex(shared_secret)
    except (ValueError, TypeError) as e:
        raise CryptoError(ErrorCode.E108_KEY_DERIVATION_FAILED, f"Invalid shared secret: {e}")

    okm = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=HKDF_INFO_SESSION_KEY,
    ).derive(secret)

    if mode == EncryptionMode.CAESAR:
        return str(1 + int.from_bytes(okm, "big") % CAESAR_MAX_SHIFT)
    if mode == EncryptionMode.PLAYFAIR:
        return "".join(PLAYFAIR_ALPHABET[b % 25] for b in okm[:PLAYFAIR_SESSION_KEY_LENGTH])
    return okm.hex()[:SESSION_KEY_HEX_LENGTH]


def sign(own_private: PrivateKeyLike, message: bytes) -> str:
    """
    Sign message bytes with deterministic ECDSA.

    Returns:
        Hex DER signature, or an empty string if the key is malformed
    """
    try:
        private_key = _private_key(own_private)
        signature = private_key.sign(
            message, ec.ECDSA(hashes.SHA256(), deterministic_signing=True)
        )
        return signature.hex()
    except (CryptoError, ValueError, TypeError) as e:
        logger.error(f"Failed to sign message: {e}")
        return ""


def verify(peer_public: str, message: bytes, signature: str) -> bool:
    """
    Verify a signature. Never raises.

    Returns:
        True only if the signature is valid for the message and key
    """
    try:
        public_key = load_public_key(peer_public)
        public_key.verify(bytes.fromhex(signature), message, ec.ECDSA(hashes.SHA256()))
        return True
    except (InvalidSignature, ValueError, TypeError):
        return False


def generate_fingerprint(public_hex: str) -> str:
    """
    SHA-256 fingerprint of a public key for out-of-band comparison.

    Returns a 64-character hexadecimal fingerprint.
    """
    return hashlib.sha256(public_hex.lower().encode("ascii")).hexdigest()


@dataclass(frozen=True)
class KeySnapshot:
    """Immutable view of all key material, captured once per frame."""

    own: KeyMaterial
    hybrid: Optional[HybridKeyPair]
    peer_public_key: Optional[str]
    peer_rsa_public_key: Optional[str]


class KeyRing:
    """
    Holds local key pairs and the peer's public keys.

    Written by explicit user actions or a completed handshake and read
    by every connection. Readers take a snapshot under the lock.
    """

    def __init__(self, own: Optional[KeyMaterial] = None,
                 hybrid: Optional[HybridKeyPair] = None,
                 generate_hybrid: bool = True):
        if hybrid is None and generate_hybrid:
            hybrid = HybridKeyPair()
        self._lock = threading.Lock()
        self._snapshot = KeySnapshot(
            own=own or generate_key_pair(),
            hybrid=hybrid,
            peer_public_key=None,
            peer_rsa_public_key=None,
        )

    def snapshot(self) -> KeySnapshot:
        with self._lock:
            return self._snapshot

    def set_peer_keys(self, public_key: Optional[str] = None,
                      rsa_public_key: Optional[str] = None) -> None:
        """
        Record the peer's public keys. Keys left as None are unchanged.

        Raises:
            CryptoError: If a supplied key is malformed
        """
        if public_key is not None and not is_valid_public_key(public_key):
            raise CryptoError(ErrorCode.E103_INVALID_KEY, "Invalid peer public key")
        if rsa_public_key is not None and not is_valid_rsa_key(rsa_public_key):
            raise CryptoError(ErrorCode.E103_INVALID_KEY, "Invalid peer RSA public key")

        with self._lock:
            current = self._snapshot
            self._snapshot = KeySnapshot(
                own=current.own,
                hybrid=current.hybrid,
                peer_public_key=public_key.lower() if public_key is not None else current.peer_public_key,
                peer_rsa_public_key=rsa_public_key if rsa_public_key is not None else current.peer_rsa_public_key,
            )
        logger.info("Peer public keys updated")

    def clear_peer_keys(self) -> None:
        with self._lock:
            current = self._snapshot
            self._snapshot = KeySnapshot(current.own, current.hybrid, None, None)
