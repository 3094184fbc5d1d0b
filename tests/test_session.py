"""
LanChat - Message pipeline tests.

Tests outbound validation and encryption, inbound decoding, signature
trust, hybrid mode and the handshake, without any sockets.
"""

import json

import pytest

from lanchat.ciphers import EncryptionMode, get_cipher
from lanchat.envelope import HandshakeType
from lanchat.errors import ErrorCode, NetworkError, ValidationError
from lanchat.framing import FrameDecoder, encode_frame
from lanchat.message import Direction, MessageKind, TrustStatus
from lanchat.settings import CipherSettings, SecurityPolicy, SettingsStore


def deliver(sender, receiver, kind, content, sender_address="10.0.0.1"):
    """Prepare on one session, decode on the other, return the inbound result."""
    packet = sender.prepare_outbound(kind, content, "10.0.0.2")
    (payload,) = FrameDecoder().feed(packet.frame)
    return receiver.process_frame(payload, sender_address)


def envelope_of(frame: bytes) -> dict:
    (payload,) = FrameDecoder().feed(frame)
    return json.loads(payload)


class TestOutboundValidation:
    """Sends that must fail before any I/O."""

    def test_empty_content(self, session_factory):
        session = session_factory()
        for content in ("", "   ", b""):
            with pytest.raises(ValidationError):
                session.prepare_outbound(MessageKind.TEXT, content, "10.0.0.2")

    def test_empty_destination(self, session_factory):
        with pytest.raises(ValidationError):
            session_factory().prepare_outbound(MessageKind.TEXT, "hi", "  ")

    def test_invalid_key_for_mode(self, session_factory):
        session = session_factory(EncryptionMode.CAESAR, "30")
        with pytest.raises(ValidationError) as exc_info:
            session.prepare_outbound(MessageKind.TEXT, "hi", "10.0.0.2")
        assert exc_info.value.code == ErrorCode.E103_INVALID_KEY

    def test_short_aes_key(self, session_factory):
        with pytest.raises(ValidationError):
            session_factory(EncryptionMode.AES, "short").prepare_outbound(MessageKind.TEXT, "hi", "h")

    @pytest.mark.parametrize("mode,key", [(EncryptionMode.CAESAR, "3"), (EncryptionMode.PLAYFAIR, "keyword")])
    @pytest.mark.parametrize("kind", [MessageKind.IMAGE, MessageKind.AUDIO])
    def test_media_not_supported(self, session_factory, sample_png, mode, key, kind):
        session = session_factory(mode, key)
        with pytest.raises(ValidationError) as exc_info:
            session.prepare_outbound(kind, sample_png, "10.0.0.2")
        assert exc_info.value.code == ErrorCode.E110_UNSUPPORTED_KIND

    def test_playfair_without_letters(self, session_factory):
        with pytest.raises(ValidationError):
            session_factory(EncryptionMode.PLAYFAIR, "keyword").prepare_outbound(
                MessageKind.TEXT, "1234 !!", "10.0.0.2"
            )

    def test_hybrid_without_peer_key(self, session_factory):
        session = session_factory(EncryptionMode.RSA_HYBRID, "")
        with pytest.raises(ValidationError) as exc_info:
            session.prepare_outbound(MessageKind.TEXT, "hi", "10.0.0.2")
        assert exc_info.value.code == ErrorCode.E103_INVALID_KEY

    def test_media_must_be_bytes_or_base64(self, session_factory):
        with pytest.raises(ValidationError):
            session_factory().prepare_outbound(MessageKind.IMAGE, "not base64!", "10.0.0.2")

    def test_frame_too_large(self, session_factory):
        session = session_factory(EncryptionMode.NONE, "")
        session.max_frame_size = 64
        with pytest.raises(NetworkError):
            session.prepare_outbound(MessageKind.TEXT, "x" * 200, "10.0.0.2")


class TestOutbound:
    def test_outbound_message(self, session_factory):
        packet = session_factory().prepare_outbound(MessageKind.TEXT, "hi", "10.0.0.2")
        message = packet.message
        assert message.direction == Direction.OUTBOUND
        assert message.trust == TrustStatus.LOCAL
        assert message.encrypted is True
        assert message.payload == "hi"

    def test_envelope_is_signed(self, session_factory):
        packet = session_factory().prepare_outbound(MessageKind.TEXT, "hi", "10.0.0.2")
        data = envelope_of(packet.frame)
        assert data["content"] != "hi"
        assert data["signature"]
        assert "encryptedAESKey" not in data

    def test_signing_disabled(self, session_factory):
        session = session_factory()
        session.policy = SecurityPolicy(sign_messages=False)
        data = envelope_of(session.prepare_outbound(MessageKind.TEXT, "hi", "h").frame)
        assert "signature" not in data

    def test_none_mode_sends_plaintext(self, session_factory):
        packet = session_factory(EncryptionMode.NONE, "").prepare_outbound(MessageKind.TEXT, "hi", "h")
        assert envelope_of(packet.frame)["content"] == "hi"
        assert packet.message.encrypted is False

    def test_base64_media_is_decoded_for_display(self, session_factory):
        packet = session_factory().prepare_outbound(MessageKind.IMAGE, "aGVsbG8=", "h")
        assert packet.message.payload == b"hello"


class TestInbound:
    @pytest.mark.parametrize("mode,key,text", [
        (EncryptionMode.NONE, "", "plain words"),
        (EncryptionMode.CAESAR, "7", "Hello 2024"),
        (EncryptionMode.AES, "shared_secret_key", "Hello, World! 你好"),
        (EncryptionMode.TRIPLE_DES, "shared_secret_key", "Triple DES text"),
        (EncryptionMode.PLAYFAIR, "monarchy", "instruments"),
    ])
    def test_text_each_mode(self, session_factory, introduce_sessions, mode, key, text):
        alice = session_factory(mode, key)
        bob = session_factory(mode, key)
        introduce_sessions(alice, bob)

        message = deliver(alice, bob, MessageKind.TEXT, text).message
        assert message is not None
        assert message.kind == MessageKind.TEXT
        assert message.direction == Direction.INBOUND
        assert message.sender == "10.0.0.1"
        assert message.trust == TrustStatus.VERIFIED
        assert not message.decrypt_failed
        assert message.encrypted == (mode != EncryptionMode.NONE)
        if mode == EncryptionMode.PLAYFAIR:
            assert message.payload == "INSTRUMENTS"
        else:
            assert message.payload == text

    @pytest.mark.parametrize("mode", [EncryptionMode.NONE, EncryptionMode.AES, EncryptionMode.TRIPLE_DES])
    def test_media(self, session_factory, introduce_sessions, sample_png, mode):
        alice = session_factory(mode, "shared_secret_key")
        bob = session_factory(mode, "shared_secret_key")
        introduce_sessions(alice, bob)

        image = deliver(alice, bob, MessageKind.IMAGE, sample_png).message
        assert image.kind == MessageKind.IMAGE
        assert image.payload == sample_png

        audio = deliver(alice, bob, MessageKind.AUDIO, b"RIFF....WAVE").message
        assert audio.kind == MessageKind.AUDIO
        assert audio.payload == b"RIFF....WAVE"

    def test_wrong_key_delivers_ciphertext(self, session_factory):
        alice = session_factory(EncryptionMode.AES, "alice_key_123")
        bob = session_factory(EncryptionMode.AES, "bob_key_4567")
        packet = alice.prepare_outbound(MessageKind.TEXT, "secret plans", "h")

        (payload,) = FrameDecoder().feed(packet.frame)
        message = bob.process_frame(payload, "10.0.0.1").message

        assert message.decrypt_failed
        assert message.kind == MessageKind.TEXT
        assert message.payload == envelope_of(packet.frame)["content"]
        assert message.trust == TrustStatus.UNVERIFIED

    def test_unknown_peer_is_unverified(self, session_factory):
        alice = session_factory()
        bob = session_factory()
        message = deliver(alice, bob, MessageKind.TEXT, "hi").message
        assert message.payload == "hi"
        assert message.trust == TrustStatus.UNVERIFIED

    def test_invalid_signature_rejected(self, session_pair, session_factory):
        alice, bob = session_pair
        mallory = session_factory()
        # Bob expects Alice's key but Mallory signs
        result = deliver(mallory, bob, MessageKind.TEXT, "trust me")
        assert result.message is None

    def test_invalid_signature_delivered_when_policy_allows(self, session_pair, session_factory):
        alice, bob = session_pair
        bob.policy = SecurityPolicy(reject_invalid_signatures=False)
        message = deliver(session_factory(), bob, MessageKind.TEXT, "trust me").message
        assert message.payload == "trust me"
        assert message.trust == TrustStatus.INVALID

    def test_unsigned_sender_reaches_known_peer(self, session_pair, session_factory):
        alice, bob = session_pair
        # A separate process sending once has a new key pair and does not sign
        one_shot = session_factory()
        one_shot.policy = SecurityPolicy(sign_messages=False)
        message = deliver(one_shot, bob, MessageKind.TEXT, "from the command line").message
        assert message is not None
        assert message.payload == "from the command line"
        assert message.trust == TrustStatus.UNVERIFIED

    def test_tampered_content_fails_signature(self, session_pair):
        alice, bob = session_pair
        packet = alice.prepare_outbound(MessageKind.TEXT, "hi", "h")
        data = envelope_of(packet.frame)
        data["content"] = data["content"][:-4] + "AAA="
        result = bob.process_frame(json.dumps(data).encode(), "10.0.0.1")
        assert result.message is None

    def test_legacy_raw_frame(self, session_factory):
        bob = session_factory(EncryptionMode.CAESAR, "3")
        message = bob.process_frame(b"Khoor zruog 345", "10.0.0.1").message
        assert message.payload == "Hello world 012"
        assert message.trust == TrustStatus.UNVERIFIED
        assert not message.decrypt_failed

    def test_legacy_raw_tagged_media(self, session_factory):
        bob = session_factory(EncryptionMode.NONE, "")
        message = bob.process_frame(b"AUDIO:aGVsbG8=", "10.0.0.1").message
        assert message.kind == MessageKind.AUDIO
        assert message.payload == b"hello"

    def test_bad_base64_media_falls_back_to_text(self, session_factory):
        bob = session_factory(EncryptionMode.NONE, "")
        message = bob.process_frame(b"IMAGE:***", "10.0.0.1").message
        assert message.kind == MessageKind.TEXT
        assert message.payload == "IMAGE:***"

    def test_parse_failure_dropped(self, session_factory):
        result = session_factory().process_frame(b'{"content": 42}', "10.0.0.1")
        assert result.message is None
        assert result.reply is None

    def test_settings_change_between_frames(self, session_factory):
        alice = session_factory(EncryptionMode.CAESAR, "4")
        bob = session_factory(EncryptionMode.CAESAR, "4")
        assert deliver(alice, bob, MessageKind.TEXT, "abc").message.payload == "abc"

        alice.settings.update(mode=EncryptionMode.AES, key="new_shared_key")
        bob.settings.update(mode=EncryptionMode.AES, key="new_shared_key")
        assert deliver(alice, bob, MessageKind.TEXT, "xyz").message.payload == "xyz"


class TestHybrid:
    @pytest.fixture
    def hybrid_pair(self, session_factory, introduce_sessions):
        alice = session_factory(EncryptionMode.RSA_HYBRID, "")
        bob = session_factory(EncryptionMode.AES, "unrelated_key")
        introduce_sessions(alice, bob)
        return alice, bob

    def test_text(self, hybrid_pair):
        alice, bob = hybrid_pair
        packet = alice.prepare_outbound(MessageKind.TEXT, "top secret", "h")
        assert envelope_of(packet.frame)["encryptedAESKey"]

        (payload,) = FrameDecoder().feed(packet.frame)
        message = bob.process_frame(payload, "10.0.0.1").message
        # Receiver decrypts regardless of its own active mode
        assert message.payload == "top secret"
        assert message.encrypted
        assert message.trust == TrustStatus.VERIFIED

    def test_media(self, hybrid_pair, sample_png):
        alice, bob = hybrid_pair
        message = deliver(alice, bob, MessageKind.IMAGE, sample_png).message
        assert message.kind == MessageKind.IMAGE
        assert message.payload == sample_png

    def test_unwrap_failure_drops_message(self, hybrid_pair, session_factory):
        alice, _ = hybrid_pair
        outsider = session_factory()
        result = deliver(alice, outsider, MessageKind.TEXT, "not for you")
        assert result.message is None

    def test_hybrid_mode_without_wrapped_key(self, session_factory):
        bob = session_factory(EncryptionMode.RSA_HYBRID, "")
        message = bob.process_frame(b'{"content":"abc"}', "10.0.0.1").message
        assert message.decrypt_failed
        assert message.payload == "abc"


class TestHandshake:
    def test_init_carries_keys_and_port(self, session_factory):
        session = session_factory()
        data = envelope_of(session.create_handshake(HandshakeType.INIT, port=9100))
        keys = session.keyring.snapshot()
        assert data["type"] == "HANDSHAKE_INIT"
        assert data["publicKey"] == keys.own.public_key_hex()
        assert data["rsaPublicKey"] == keys.hybrid.public_pem()
        assert data["port"] == 9100

    def test_full_exchange(self, session_factory):
        alice = session_factory(EncryptionMode.AES, "alice_default_key")
        bob = session_factory(EncryptionMode.AES, "bob_default_key")

        (init,) = FrameDecoder().feed(alice.create_handshake(HandshakeType.INIT, port=9100))
        result = bob.process_frame(init, "10.0.0.1")
        assert result.message is None
        assert result.reply is not None
        assert result.reply.port == 9100
        assert result.session_key_installed

        (reply,) = FrameDecoder().feed(result.reply.frame)
        assert envelope_of(result.reply.frame)["type"] == "HANDSHAKE_REPLY"
        final = alice.process_frame(reply, "10.0.0.2")
        assert final.reply is None
        assert final.session_key_installed

        assert alice.settings.snapshot().key == bob.settings.snapshot().key
        assert alice.settings.snapshot().key != "alice_default_key"

        alice_keys = alice.keyring.snapshot()
        bob_keys = bob.keyring.snapshot()
        assert alice_keys.peer_public_key == bob_keys.own.public_key_hex()
        assert bob_keys.peer_public_key == alice_keys.own.public_key_hex()
        assert alice_keys.peer_rsa_public_key == bob_keys.hybrid.public_pem()

        message = deliver(alice, bob, MessageKind.TEXT, "after handshake").message
        assert message.payload == "after handshake"
        assert message.trust == TrustStatus.VERIFIED

    def test_key_rendered_for_active_mode(self, session_factory):
        alice = session_factory(EncryptionMode.CAESAR, "3")
        bob = session_factory(EncryptionMode.CAESAR, "3")
        (init,) = FrameDecoder().feed(alice.create_handshake())
        result = bob.process_frame(init, "10.0.0.1")
        (reply,) = FrameDecoder().feed(result.reply.frame)
        alice.process_frame(reply, "10.0.0.2")

        key = alice.settings.snapshot().key
        assert key == bob.settings.snapshot().key
        assert 1 <= int(key) <= 25

    def test_asymmetric_policy(self, session_factory):
        alice = session_factory()
        bob = session_factory(EncryptionMode.AES, "bob_default_key")
        bob.policy = SecurityPolicy(symmetric_handshake=False)

        (init,) = FrameDecoder().feed(alice.create_handshake())
        result = bob.process_frame(init, "10.0.0.1")
        assert result.reply is not None
        assert not result.session_key_installed
        assert bob.settings.snapshot().key == "bob_default_key"

    def test_invalid_public_key_ignored(self, session_factory):
        bob = session_factory()
        frame = b'{"type":"HANDSHAKE_INIT","publicKey":"04deadbeef"}'
        result = bob.process_frame(frame, "10.0.0.1")
        assert result.reply is None
        assert bob.keyring.snapshot().peer_public_key is None

    def test_handshake_frame_fits_default_limit(self, session_factory):
        frame = session_factory().create_handshake()
        assert len(frame) < 4096
        assert encode_frame(frame[8:]) == frame

    def test_mode_change_during_install(self, session_factory):
        class SwitchingStore(SettingsStore):
            """Switches to Caesar right after being read, like a /mode command arriving mid-install."""

            def snapshot(self):
                current = super().snapshot()
                self.update(mode=EncryptionMode.CAESAR)
                return current

        alice = session_factory()
        bob = session_factory()
        bob.settings = SwitchingStore(CipherSettings(EncryptionMode.AES, "bob_default_key"))

        assert bob.install_session_key(alice.keyring.snapshot().own.public_key_hex())
        final = SettingsStore.snapshot(bob.settings)
        assert get_cipher(final.mode).is_valid_key(final.key)
