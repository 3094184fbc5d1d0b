"""
LanChat - Peer-to-Peer Encrypted LAN Messenger

Direct TCP messaging between two peers on a local network with
selectable ciphers, EC key agreement, message signing, and an
RSA-wrapped hybrid mode.

Author: lanchat contributors
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "lanchat contributors"
__license__ = "MIT"

# Import core modules for easy access
from .ciphers import DecryptResult, EncryptionMode, get_cipher
from .config import Config
from .constants import APP_NAME, VERSION
from .envelope import Envelope, HandshakeEnvelope, HandshakeType, LegacyRaw, ParseFailure, decode_envelope
from .errors import (
    ConfigError,
    CryptoError,
    ErrorCode,
    LanchatError,
    NetworkError,
    ServerError,
    ValidationError,
)
from .framing import FrameDecoder, encode_frame
from .keys import KeyMaterial, KeyRing
from .message import Direction, Message, MessageKind, TrustStatus
from .network import TransportManager
from .session import ChatSession
from .settings import CipherSettings, SecurityPolicy, SettingsStore

__all__ = [
    "APP_NAME",
    "VERSION",
    "ChatSession",
    "CipherSettings",
    "Config",
    "ConfigError",
    "CryptoError",
    "DecryptResult",
    "Direction",
    "EncryptionMode",
    "Envelope",
    "ErrorCode",
    "FrameDecoder",
    "HandshakeEnvelope",
    "HandshakeType",
    "KeyMaterial",
    "KeyRing",
    "LanchatError",
    "LegacyRaw",
    "Message",
    "MessageKind",
    "NetworkError",
    "ParseFailure",
    "SecurityPolicy",
    "ServerError",
    "SettingsStore",
    "TransportManager",
    "TrustStatus",
    "ValidationError",
    "__author__",
    "__license__",
    "__version__",
    "decode_envelope",
    "encode_frame",
    "get_cipher",
]
