"""
LanChat - Packet envelope wire format.

A frame payload is a compact JSON object. Ordinary messages carry:
- content: ciphertext (or plaintext in None mode), required
- signature: hex DER ECDSA signature over the content string, optional
- encryptedAESKey: base64 RSA-wrapped session key (hybrid mode), optional

Handshake control messages carry a type tag instead:
- type: "HANDSHAKE_INIT" or "HANDSHAKE_REPLY"
- publicKey: sender's EC public key (hex)
- rsaPublicKey: sender's RSA public key (PEM), optional
- port: port the sender listens on, optional (init only)

Peers running the older protocol send bare ciphertext with no envelope.
decode_envelope() reports those explicitly as LegacyRaw.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .constants import (
    ENVELOPE_CONTENT,
    ENVELOPE_PORT,
    ENVELOPE_PUBLIC_KEY,
    ENVELOPE_RSA_PUBLIC_KEY,
    ENVELOPE_SIGNATURE,
    ENVELOPE_TYPE,
    ENVELOPE_WRAPPED_KEY,
    ENVELOPE_WRAPPED_KEY_ALIAS,
    HANDSHAKE_INIT,
    HANDSHAKE_REPLY,
)

logger = logging.getLogger(__name__)


class HandshakeType(Enum):
    INIT = HANDSHAKE_INIT
    REPLY = HANDSHAKE_REPLY


@dataclass(frozen=True)
class Envelope:
    """An ordinary message envelope."""

    content: str
    signature: Optional[str] = None
    wrapped_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {ENVELOPE_CONTENT: self.content}
        if self.signature:
            data[ENVELOPE_SIGNATURE] = self.signature
        if self.wrapped_key:
            data[ENVELOPE_WRAPPED_KEY] = self.wrapped_key
        return data

    def encode(self) -> bytes:
        return _dumps(self.to_dict())


@dataclass(frozen=True)
class HandshakeEnvelope:
    """A handshake control message."""

    type: HandshakeType
    public_key: str
    rsa_public_key: Optional[str] = None
    port: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            ENVELOPE_TYPE: self.type.value,
            ENVELOPE_PUBLIC_KEY: self.public_key,
        }
        if self.rsa_public_key:
            data[ENVELOPE_RSA_PUBLIC_KEY] = self.rsa_public_key
        if self.port is not None:
            data[ENVELOPE_PORT] = self.port
        return data

    def encode(self) -> bytes:
        return _dumps(self.to_dict())


@dataclass(frozen=True)
class LegacyRaw:
    """A frame from a peer that does not wrap messages in envelopes."""

    text: str


@dataclass(frozen=True)
class ParseFailure:
    """A frame that is neither a valid envelope nor usable as legacy text."""

    reason: str


DecodedFrame = Union[Envelope, HandshakeEnvelope, LegacyRaw, ParseFailure]


def _dumps(data: Dict[str, Any]) -> bytes:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _optional_str(data: Dict[str, Any], *names: str) -> Optional[str]:
    """Return the first present field among names; raise TypeError if it is not a string."""
    for name in names:
        if name in data and data[name] is not None:
            value = data[name]
            if not isinstance(value, str):
                raise TypeError(f"field '{name}' must be a string")
            return value
    return None


def _decode_handshake(data: Dict[str, Any]) -> DecodedFrame:
    try:
        handshake_type = HandshakeType(data[ENVELOPE_TYPE])
    except ValueError:
        return ParseFailure(f"unknown envelope type {data[ENVELOPE_TYPE]!r}")

    try:
        public_key = _optional_str(data, ENVELOPE_PUBLIC_KEY)
        rsa_public_key = _optional_str(data, ENVELOPE_RSA_PUBLIC_KEY)
    except TypeError as e:
        return ParseFailure(str(e))
    if not public_key:
        return ParseFailure(f"{handshake_type.value} without a public key")

    port = data.get(ENVELOPE_PORT)
    if port is not None and (isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536):
        logger.warning(f"Ignoring invalid port {port!r} in {handshake_type.value}")
        port = None

    return HandshakeEnvelope(
        type=handshake_type,
        public_key=public_key,
        rsa_public_key=rsa_public_key,
        port=port,
    )


def decode_envelope(payload: bytes) -> DecodedFrame:
    """
    Classify a frame payload.

    Returns:
        Envelope or HandshakeEnvelope for well-formed envelopes,
        LegacyRaw for text that is not an envelope at all,
        ParseFailure for envelopes with invalid fields or non-UTF-8 data
    """
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        return ParseFailure(f"payload is not UTF-8: {e}")

    try:
        data = json.loads(text)
    except ValueError:
        return LegacyRaw(text)

    if not isinstance(data, dict):
        return LegacyRaw(text)

    if ENVELOPE_TYPE in data:
        return _decode_handshake(data)

    if ENVELOPE_CONTENT not in data:
        return LegacyRaw(text)

    try:
        content = _optional_str(data, ENVELOPE_CONTENT)
        signature = _optional_str(data, ENVELOPE_SIGNATURE)
        wrapped_key = _optional_str(data, ENVELOPE_WRAPPED_KEY, ENVELOPE_WRAPPED_KEY_ALIAS)
    except TypeError as e:
        return ParseFailure(str(e))

    if content is None:
        return ParseFailure("content is null")

    return Envelope(content=content, signature=signature or None, wrapped_key=wrapped_key or None)
