"""
LanChat - Hybrid asymmetric encryption.

Each outgoing message gets a fresh random session key. The message body
is encrypted with that key under the AES rules of lanchat.ciphers and the
session key itself is wrapped with RSA-OAEP under the recipient's public
key. The wrapped key travels next to the ciphertext in the envelope.

Key wrapping uses:
- RSA-2048 key pairs, public keys exchanged as PEM text
- OAEP padding with SHA-256 and MGF1-SHA-256
"""

import base64
import logging
import secrets
from typing import Dict, Optional, Tuple

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .ciphers import AESCipher, DecryptResult
from .constants import HYBRID_SESSION_KEY_LENGTH, RSA_KEY_SIZE, RSA_PUBLIC_EXPONENT
from .errors import CryptoError, ErrorCode

logger = logging.getLogger(__name__)

_OAEP = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA256()),
    algorithm=hashes.SHA256(),
    label=None,
)

_body_cipher = AESCipher()


class HybridKeyPair:
    """
    RSA key pair used only to wrap per-message session keys.

    Independent of the elliptic-curve key material used for the
    handshake and for signatures.
    """

    def __init__(self, private_key: Optional[rsa.RSAPrivateKey] = None):
        if private_key is None:
            private_key = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT,
                key_size=RSA_KEY_SIZE,
            )
        self.private_key = private_key
        self.public_key = private_key.public_key()

    def public_pem(self) -> str:
        """Public key as PEM text for the handshake envelope."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    def private_pem(self) -> str:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("ascii")

    def to_dict(self) -> Dict[str, str]:
        """Export key pair to dictionary for storage."""
        return {"private": self.private_pem(), "public": self.public_pem()}

    @staticmethod
    def from_dict(data: Dict[str, str]) -> "HybridKeyPair":
        """Import key pair from dictionary."""
        try:
            private_key = serialization.load_pem_private_key(
                data["private"].encode("ascii"), password=None
            )
        except (KeyError, ValueError, TypeError) as e:
            raise CryptoError(ErrorCode.E103_INVALID_KEY, f"Invalid hybrid private key: {e}")
        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise CryptoError(ErrorCode.E103_INVALID_KEY, "Hybrid private key is not an RSA key")
        return HybridKeyPair(private_key)


def load_public_key(public_pem: str) -> rsa.RSAPublicKey:
    """
    Load a peer's RSA public key from PEM text.

    Raises:
        CryptoError: If the text is not an RSA public key
    """
    try:
        public_key = serialization.load_pem_public_key(public_pem.encode("ascii"))
    except (ValueError, TypeError, AttributeError, UnicodeEncodeError) as e:
        raise CryptoError(ErrorCode.E103_INVALID_KEY, f"Invalid RSA public key: {e}")
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise CryptoError(ErrorCode.E103_INVALID_KEY, "Public key is not an RSA key")
    return public_key


def is_valid_public_key(public_pem: Optional[str]) -> bool:
    if not public_pem:
        return False
    try:
        load_public_key(public_pem)
    except CryptoError:
        return False
    return True


def generate_session_key() -> str:
    """Fresh random session key, one per message."""
    # token_urlsafe(n) yields ceil(4n/3) characters
    return secrets.token_urlsafe(HYBRID_SESSION_KEY_LENGTH * 3 // 4)


def wrap_key(session_key: str, public_pem: str) -> str:
    """Encrypt a session key under the recipient's RSA public key (base64)."""
    public_key = load_public_key(public_pem)
    wrapped = public_key.encrypt(session_key.encode("utf-8"), _OAEP)
    return base64.b64encode(wrapped).decode("ascii")


def unwrap_key(wrapped_key: str, key_pair: Optional[HybridKeyPair]) -> str:
    """
    Recover a session key with the local RSA private key.

    Raises:
        CryptoError: If no private key is available or unwrapping fails
    """
    if key_pair is None:
        raise CryptoError(
            ErrorCode.E109_KEY_UNWRAP_FAILED,
            "No hybrid private key available to unwrap the message key",
        )
    try:
        wrapped = base64.b64decode(wrapped_key.encode("ascii"), validate=True)
        return key_pair.private_key.decrypt(wrapped, _OAEP).decode("utf-8")
    except (ValueError, TypeError, AttributeError) as e:
        raise CryptoError(
            ErrorCode.E109_KEY_UNWRAP_FAILED,
            f"Failed to unwrap message key: {e}",
        )


def encrypt_hybrid(plaintext: str, public_pem: str) -> Tuple[str, str]:
    """
    Encrypt a message body for a recipient.

    Returns:
        (ciphertext, wrapped_key) tuple
    """
    session_key = generate_session_key()
    ciphertext = _body_cipher.encrypt(plaintext, session_key)
    wrapped = wrap_key(session_key, public_pem)
    return ciphertext, wrapped


def decrypt_hybrid(ciphertext: str, wrapped_key: str,
                   key_pair: Optional[HybridKeyPair]) -> DecryptResult:
    """
    Unwrap the session key and decrypt the message body.

    Raises:
        CryptoError: If the session key cannot be unwrapped
    """
    session_key = unwrap_key(wrapped_key, key_pair)
    return _body_cipher.decrypt(ciphertext, session_key)
