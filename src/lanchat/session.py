"""
LanChat - Message pipeline for one local peer.

ChatSession turns caller content into wire frames and wire frames back
into Message objects:

Outbound: validate -> tag -> encrypt (cipher suite or hybrid) -> sign
          -> envelope -> frame
Inbound:  envelope decode -> handshake dispatch | signature check
          -> hybrid unwrap or symmetric decrypt -> tag classification

The session holds no sockets. Every frame is processed against one
snapshot of the cipher settings and one snapshot of the key ring, taken
when processing of that frame starts.
"""

import base64
import binascii
import logging
from dataclasses import dataclass, replace
from typing import Optional

from .ciphers import DecryptResult, EncryptionMode, PlayfairCipher, get_cipher
from .constants import MAX_FRAME_SIZE
from .envelope import (
    Envelope,
    HandshakeEnvelope,
    HandshakeType,
    LegacyRaw,
    ParseFailure,
    decode_envelope,
)
from .errors import CryptoError, ErrorCode, ValidationError
from .framing import encode_frame
from .hybrid import decrypt_hybrid, encrypt_hybrid
from .keys import KeyRing, KeySnapshot, compute_shared_secret, derive_session_key, sign, verify
from .message import (
    Direction,
    Message,
    MessageKind,
    Payload,
    TrustStatus,
    classify_payload,
    is_empty,
    tag_payload,
)
from .settings import CipherSettings, SecurityPolicy, SettingsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundPacket:
    """A framed message ready to write, plus the record shown to the sender."""

    frame: bytes
    message: Message


@dataclass(frozen=True)
class HandshakeReply:
    """A handshake reply to send back to the initiator."""

    frame: bytes
    port: Optional[int] = None


@dataclass(frozen=True)
class FrameResult:
    """What processing one inbound frame produced."""

    message: Optional[Message] = None
    reply: Optional[HandshakeReply] = None
    session_key_installed: bool = False


class ChatSession:
    """Encryption, signing and handshake state for the local peer."""

    def __init__(self, settings: Optional[SettingsStore] = None,
                 keyring: Optional[KeyRing] = None,
                 policy: Optional[SecurityPolicy] = None,
                 max_frame_size: Optional[int] = MAX_FRAME_SIZE):
        self.settings = settings or SettingsStore()
        self.keyring = keyring or KeyRing()
        self.policy = policy or SecurityPolicy()
        self.max_frame_size = max_frame_size

    # Outbound

    def validate_outbound(self, kind: MessageKind, content: Payload, destination: str,
                          settings: CipherSettings, keys: KeySnapshot) -> None:
        """
        Reject a send before any network I/O.

        Raises:
            ValidationError: With the reason the message cannot be sent
        """
        if is_empty(content):
            raise ValidationError(ErrorCode.E002_INVALID_ARGUMENT, "Message content is empty")

        if not destination or not destination.strip():
            raise ValidationError(ErrorCode.E002_INVALID_ARGUMENT, "Destination address is empty")

        if settings.mode == EncryptionMode.RSA_HYBRID:
            if not keys.peer_rsa_public_key:
                raise ValidationError(
                    ErrorCode.E103_INVALID_KEY,
                    "Hybrid mode needs the peer's RSA public key; complete a handshake first",
                )
            return

        cipher = get_cipher(settings.mode)
        if not cipher.is_valid_key(settings.key):
            raise ValidationError(
                ErrorCode.E103_INVALID_KEY,
                cipher.key_error(),
                {"mode": settings.mode.value},
            )

        if kind.is_media and not cipher.supports_media:
            raise ValidationError(
                ErrorCode.E110_UNSUPPORTED_KIND,
                f"{settings.mode.value} mode only supports text messages",
                {"mode": settings.mode.value, "kind": kind.value},
            )

        if (settings.mode == EncryptionMode.PLAYFAIR and isinstance(content, str)
                and not PlayfairCipher.canonicalize(content)):
            raise ValidationError(
                ErrorCode.E002_INVALID_ARGUMENT,
                "Playfair can only encrypt letters and the message contains none",
            )

    @staticmethod
    def _normalize_content(kind: MessageKind, content: Payload) -> Payload:
        if not kind.is_media:
            if not isinstance(content, str):
                raise ValidationError(ErrorCode.E002_INVALID_ARGUMENT, "Text content must be a string")
            return content
        if isinstance(content, bytes):
            return content
        try:
            return base64.b64decode(content.encode("ascii"), validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError(
                ErrorCode.E002_INVALID_ARGUMENT,
                f"{kind.value} content must be bytes or base64 text",
            )

    def prepare_outbound(self, kind: MessageKind, content: Payload, destination: str) -> OutboundPacket:
        """
        Encrypt, sign and frame a message.

        Raises:
            ValidationError: If the message cannot be sent with current settings
            NetworkError: If the framed message is too large
        """
        settings = self.settings.snapshot()
        keys = self.keyring.snapshot()

        self.validate_outbound(kind, content, destination, settings, keys)
        payload = self._normalize_content(kind, content)
        plaintext = tag_payload(kind, payload)

        wrapped_key = None
        if settings.mode == EncryptionMode.RSA_HYBRID:
            ciphertext, wrapped_key = encrypt_hybrid(plaintext, keys.peer_rsa_public_key)
        else:
            ciphertext = get_cipher(settings.mode).encrypt(plaintext, settings.key)

        signature = None
        if self.policy.sign_messages:
            signature = sign(keys.own, ciphertext.encode("utf-8")) or None

        envelope = Envelope(content=ciphertext, signature=signature, wrapped_key=wrapped_key)
        frame = encode_frame(envelope.encode(), self.max_frame_size)

        message = Message(
            kind=kind,
            payload=payload,
            direction=Direction.OUTBOUND,
            encrypted=settings.encrypted,
            sender=None,
            trust=TrustStatus.LOCAL,
        )
        logger.debug(
            f"Prepared {kind.value} message for {destination} "
            f"(mode={settings.mode.value}, {len(frame)} bytes)"
        )
        return OutboundPacket(frame=frame, message=message)

    def create_handshake(self, handshake_type: HandshakeType = HandshakeType.INIT,
                         port: Optional[int] = None) -> bytes:
        """Frame a handshake message carrying the local public keys."""
        keys = self.keyring.snapshot()
        envelope = HandshakeEnvelope(
            type=handshake_type,
            public_key=keys.own.public_key_hex(),
            rsa_public_key=keys.hybrid.public_pem() if keys.hybrid else None,
            port=port,
        )
        return encode_frame(envelope.encode(), self.max_frame_size)

    # Inbound

    def process_frame(self, payload: bytes, sender: Optional[str] = None) -> FrameResult:
        """
        Turn one frame payload into a message or a handshake action.

        Never raises for malformed input; problems are logged and the
        frame yields an empty result.
        """
        decoded = decode_envelope(payload)

        if isinstance(decoded, ParseFailure):
            logger.warning(f"Dropping unparseable frame from {sender}: {decoded.reason}")
            return FrameResult()

        if isinstance(decoded, HandshakeEnvelope):
            return self._handle_handshake(decoded, sender)

        settings = self.settings.snapshot()
        keys = self.keyring.snapshot()

        if isinstance(decoded, LegacyRaw):
            logger.debug(f"Legacy un-enveloped frame from {sender}")
            result = self._decrypt(decoded.text, settings)
            return FrameResult(message=self._build_inbound(
                result, settings.encrypted, sender, TrustStatus.UNVERIFIED
            ))

        return self._handle_envelope(decoded, settings, keys, sender)

    def _handle_envelope(self, envelope: Envelope, settings: CipherSettings,
                         keys: KeySnapshot, sender: Optional[str]) -> FrameResult:
        trust = self._check_signature(envelope, keys)
        if trust == TrustStatus.INVALID:
            if self.policy.reject_invalid_signatures:
                logger.warning(f"Rejected message from {sender}: signature verification failed")
                return FrameResult()
            logger.warning(f"Message from {sender} has an invalid signature, delivering anyway")

        if envelope.wrapped_key:
            try:
                result = decrypt_hybrid(envelope.content, envelope.wrapped_key, keys.hybrid)
            except CryptoError as e:
                logger.error(f"Dropping hybrid message from {sender}: {e}")
                return FrameResult()
            encrypted = True
        else:
            result = self._decrypt(envelope.content, settings)
            encrypted = settings.encrypted

        return FrameResult(message=self._build_inbound(result, encrypted, sender, trust))

    def _check_signature(self, envelope: Envelope, keys: KeySnapshot) -> TrustStatus:
        if not envelope.signature or not keys.peer_public_key:
            return TrustStatus.UNVERIFIED
        if verify(keys.peer_public_key, envelope.content.encode("utf-8"), envelope.signature):
            return TrustStatus.VERIFIED
        return TrustStatus.INVALID

    @staticmethod
    def _decrypt(text: str, settings: CipherSettings) -> DecryptResult:
        if settings.mode == EncryptionMode.RSA_HYBRID:
            logger.warning("Hybrid mode is active but the message carries no wrapped key")
            return DecryptResult.failure(text)

        cipher = get_cipher(settings.mode)
        if not cipher.is_valid_key(settings.key):
            logger.warning(f"Cannot decrypt: {cipher.key_error()}")
            return DecryptResult.failure(text)
        return cipher.decrypt(text, settings.key)

    @staticmethod
    def _build_inbound(result: DecryptResult, encrypted: bool,
                       sender: Optional[str], trust: TrustStatus) -> Message:
        if result.ok:
            kind, payload = classify_payload(result.text)
        else:
            kind, payload = MessageKind.TEXT, result.text
        return Message(
            kind=kind,
            payload=payload,
            direction=Direction.INBOUND,
            encrypted=encrypted,
            sender=sender,
            trust=trust,
            decrypt_failed=not result.ok,
        )

    # Handshake

    def _handle_handshake(self, envelope: HandshakeEnvelope, sender: Optional[str]) -> FrameResult:
        try:
            self.keyring.set_peer_keys(envelope.public_key, envelope.rsa_public_key)
        except CryptoError as e:
            logger.warning(f"Ignoring {envelope.type.value} from {sender}: {e}")
            return FrameResult()

        if envelope.type == HandshakeType.INIT:
            logger.info(f"Handshake requested by {sender}")
            installed = False
            if self.policy.symmetric_handshake:
                installed = self.install_session_key(envelope.public_key)
            reply = HandshakeReply(
                frame=self.create_handshake(HandshakeType.REPLY),
                port=envelope.port,
            )
            return FrameResult(reply=reply, session_key_installed=installed)

        logger.info(f"Handshake reply received from {sender}")
        return FrameResult(session_key_installed=self.install_session_key(envelope.public_key))

    def install_session_key(self, peer_public_key: str) -> bool:
        """
        Derive the shared secret with a peer key and make it the active key.

        Returns:
            True if a key was installed
        """
        keys = self.keyring.snapshot()
        secret = compute_shared_secret(keys.own, peer_public_key)
        if secret is None:
            return False

        def rekey(current: CipherSettings) -> CipherSettings:
            return replace(current, key=derive_session_key(secret, current.mode))

        installed = self.settings.update_with(rekey)
        logger.info(f"Session key derived from handshake installed for {installed.mode.value} mode")
        return True
