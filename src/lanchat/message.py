"""
LanChat - Message model.

A Message is what the core hands to the outside world: one per outbound
send and one per decoded inbound frame. Messages are immutable once
created.

Image and audio payloads travel as base64 text behind a literal type tag
("IMAGE:" or "AUDIO:") that is applied to the plaintext before encryption.
Plaintext without a tag is a text message.
"""

import base64
import binascii
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from .constants import AUDIO_TAG, IMAGE_TAG

logger = logging.getLogger(__name__)

Payload = Union[str, bytes]


class MessageKind(Enum):
    """Kinds of content a message can carry."""

    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"

    @property
    def is_media(self) -> bool:
        return self is not MessageKind.TEXT


class Direction(Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"


class TrustStatus(Enum):
    """Result of signature verification for an inbound message."""

    VERIFIED = "verified"  # Signature valid for the known peer key
    UNVERIFIED = "unverified"  # No signature, or no peer key to check it with
    INVALID = "invalid"  # Signature present and rejected
    LOCAL = "local"  # Outbound messages


_TAGS = {
    MessageKind.IMAGE: IMAGE_TAG,
    MessageKind.AUDIO: AUDIO_TAG,
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Message:
    """Represents a message in the conversation."""

    kind: MessageKind
    payload: Payload
    direction: Direction
    encrypted: bool
    sender: Optional[str] = None
    trust: TrustStatus = TrustStatus.UNVERIFIED
    decrypt_failed: bool = False
    timestamp: str = field(default_factory=_now)
    message_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def text(self) -> str:
        """Payload as text; media payloads are rendered as base64."""
        if isinstance(self.payload, bytes):
            return base64.b64encode(self.payload).decode("ascii")
        return self.payload

    def to_dict(self) -> Dict[str, Any]:
        """Convert message to dictionary for display or logging."""
        return {
            "message_id": self.message_id,
            "kind": self.kind.value,
            "payload": self.text,
            "direction": self.direction.value,
            "timestamp": self.timestamp,
            "encrypted": self.encrypted,
            "sender": self.sender,
            "trust": self.trust.value,
            "decrypt_failed": self.decrypt_failed,
        }


def tag_payload(kind: MessageKind, content: Payload) -> str:
    """
    Build the plaintext for a message before encryption.

    Media given as bytes is base64-encoded; media given as str is assumed
    to be base64 already. Text must be str.

    Raises:
        TypeError: If text content is not a string
    """
    if not kind.is_media:
        if not isinstance(content, str):
            raise TypeError("Text content must be a string")
        return content

    if isinstance(content, bytes):
        content = base64.b64encode(content).decode("ascii")
    return _TAGS[kind] + content


def classify_payload(plaintext: str) -> Tuple[MessageKind, Payload]:
    """
    Split decrypted plaintext into its kind and payload.

    Tagged media is base64-decoded. A tag followed by invalid base64 is
    treated as plain text.
    """
    for kind, tag in _TAGS.items():
        if plaintext.startswith(tag):
            encoded = plaintext[len(tag):]
            try:
                return kind, base64.b64decode(encoded.encode("ascii"), validate=True)
            except (binascii.Error, ValueError):
                logger.warning(f"{kind.value} payload is not valid base64, delivering as text")
                return MessageKind.TEXT, plaintext
    return MessageKind.TEXT, plaintext


def is_empty(content: Optional[Payload]) -> bool:
    if content is None:
        return True
    if isinstance(content, str):
        return not content.strip()
    return len(content) == 0
