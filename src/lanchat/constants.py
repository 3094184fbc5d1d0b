"""
LanChat - Global Constants and Configuration Values

This module defines all constants used throughout the LanChat application.
All magic numbers and configuration defaults are centralized here.

Author: lanchat contributors
Version: 1.0.0
"""

# Version Information
VERSION = "1.0.0"
APP_NAME = "LanChat"

# Network Constants
DEFAULT_PORT = 8888
DEFAULT_HOST = "0.0.0.0"

# Connection Timeouts (seconds)
CONNECTION_TIMEOUT = 5
WRITE_TIMEOUT = 10
READ_CHUNK_SIZE = 4096

# Framing
FRAME_HEADER_SIZE = 8  # hex digits
MAX_FRAME_LENGTH = 0xFFFFFFFF
MAX_FRAME_SIZE = 64 * 1024 * 1024  # 64 MB

# Inbound queue
INBOUND_QUEUE_MAX_SIZE = 1000

# Payload type tags (prefixed to plaintext before encryption)
IMAGE_TAG = "IMAGE:"
AUDIO_TAG = "AUDIO:"

# Envelope fields
ENVELOPE_CONTENT = "content"
ENVELOPE_SIGNATURE = "signature"
ENVELOPE_WRAPPED_KEY = "encryptedAESKey"
ENVELOPE_WRAPPED_KEY_ALIAS = "wrappedKey"
ENVELOPE_TYPE = "type"
ENVELOPE_PUBLIC_KEY = "publicKey"
ENVELOPE_RSA_PUBLIC_KEY = "rsaPublicKey"
ENVELOPE_PORT = "port"

HANDSHAKE_INIT = "HANDSHAKE_INIT"
HANDSHAKE_REPLY = "HANDSHAKE_REPLY"

# Cipher Key Rules
CAESAR_MIN_SHIFT = 1
CAESAR_MAX_SHIFT = 25
AES_MIN_KEY_LENGTH = 8
DES_MIN_KEY_LENGTH = 8
PLAYFAIR_FILLER = "X"
PLAYFAIR_ALPHABET = "ABCDEFGHIKLMNOPQRSTUVWXYZ"  # J merged into I

# Cryptography Constants
AES_KEY_SIZE = 32  # AES-256
AES_IV_SIZE = 16
DES_KEY_SIZE = 24  # three-key 3DES
DES_IV_SIZE = 8
SALT_SIZE = 16
ARGON2_TIME_COST = 2
ARGON2_MEMORY_COST = 19456  # 19 MB
ARGON2_PARALLELISM = 1
RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537
HYBRID_SESSION_KEY_LENGTH = 32
SESSION_KEY_HEX_LENGTH = 32
PLAYFAIR_SESSION_KEY_LENGTH = 16
HKDF_INFO_SESSION_KEY = b"lanchat-session-key"

# File Paths
DEFAULT_DATA_DIR = "~/.lanchat"
CONFIG_FILENAME = "config.toml"
LOGS_DIR = "logs"
LOG_FILENAME = "lanchat.log"

# Defaults for user-editable encryption settings
DEFAULT_ENCRYPTION_MODE = "AES"
DEFAULT_ENCRYPTION_KEY = "my_secret_aes_key_123"

# Logging Configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5
