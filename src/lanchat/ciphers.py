"""
LanChat - Interchangeable message ciphers.

This module implements the five symmetric/classical cipher modes that can be
selected for a conversation:
- None: identity transform
- Caesar: shift cipher over upper-case, lower-case and digit alphabets
- AES: AES-256-CBC with PKCS7 padding
- TripleDES: 3DES-CBC with PKCS7 padding
- Playfair: classical 5x5 digraph substitution (text only)

Every cipher exposes the same contract: encrypt(plaintext, key) -> str,
decrypt(ciphertext, key) -> DecryptResult and is_valid_key(key) -> bool.

Decryption never raises for bad input. A failed decryption returns the
ciphertext unchanged with ok=False so callers can tell real plaintext
from an unrecovered message.

Block cipher keys are user-entered strings, stretched into fixed-width
secrets with Argon2id using a random salt carried in the ciphertext:

    base64( salt (16) || iv (block size) || ciphertext )
"""

import base64
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict

from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher as _CipherContext
from cryptography.hazmat.primitives.ciphers import algorithms, modes

from .constants import (
    AES_IV_SIZE,
    AES_KEY_SIZE,
    AES_MIN_KEY_LENGTH,
    ARGON2_MEMORY_COST,
    ARGON2_PARALLELISM,
    ARGON2_TIME_COST,
    CAESAR_MAX_SHIFT,
    CAESAR_MIN_SHIFT,
    DES_IV_SIZE,
    DES_KEY_SIZE,
    DES_MIN_KEY_LENGTH,
    PLAYFAIR_ALPHABET,
    PLAYFAIR_FILLER,
    SALT_SIZE,
)

logger = logging.getLogger(__name__)


class EncryptionMode(Enum):
    """Available encryption modes."""

    NONE = "None"
    CAESAR = "Caesar"
    AES = "AES"
    TRIPLE_DES = "TripleDES"
    PLAYFAIR = "Playfair"
    RSA_HYBRID = "RSA"

    @classmethod
    def from_name(cls, name: str) -> "EncryptionMode":
        """
        Resolve a mode from a user-facing name.

        Accepts the enum value or member name in any case, plus the
        aliases "DES", "3DES" and "RSA-Hybrid".

        Raises:
            ValueError: If the name matches no mode
        """
        normalized = name.strip().upper().replace("-", "_")
        aliases = {
            "DES": cls.TRIPLE_DES,
            "3DES": cls.TRIPLE_DES,
            "TRIPLEDES": cls.TRIPLE_DES,
            "RSA": cls.RSA_HYBRID,
            "HYBRID": cls.RSA_HYBRID,
        }
        if normalized in aliases:
            return aliases[normalized]
        for mode in cls:
            if normalized in (mode.name, mode.value.upper()):
                return mode
        raise ValueError(f"Unknown encryption mode: {name}")


@dataclass(frozen=True)
class DecryptResult:
    """Outcome of a decryption attempt."""

    text: str
    ok: bool

    @classmethod
    def success(cls, text: str) -> "DecryptResult":
        return cls(text=text, ok=True)

    @classmethod
    def failure(cls, original: str) -> "DecryptResult":
        return cls(text=original, ok=False)


class Cipher:
    """Base class for message ciphers."""

    mode: EncryptionMode = EncryptionMode.NONE

    # Caesar and Playfair mangle base64 media payloads
    supports_media = True

    def encrypt(self, plaintext: str, key: str) -> str:
        raise NotImplementedError

    def decrypt(self, ciphertext: str, key: str) -> DecryptResult:
        raise NotImplementedError

    def is_valid_key(self, key: str) -> bool:
        raise NotImplementedError

    def key_error(self) -> str:
        """Human-readable description of what a valid key looks like."""
        return "Invalid key"


class NoneCipher(Cipher):
    """Identity transform."""

    mode = EncryptionMode.NONE

    def encrypt(self, plaintext: str, key: str) -> str:
        return plaintext

    def decrypt(self, ciphertext: str, key: str) -> DecryptResult:
        return DecryptResult.success(ciphertext)

    def is_valid_key(self, key: str) -> bool:
        return True


class CaesarCipher(Cipher):
    """
    Shift cipher over three independent ASCII alphabets.

    Upper-case and lower-case letters wrap modulo 26, digits wrap modulo 10.
    Every other character passes through unchanged.
    """

    mode = EncryptionMode.CAESAR
    supports_media = False

    @staticmethod
    def parse_key(key: str) -> int:
        """Parse a shift value. Raises ValueError for non-integers."""
        return int(str(key).strip(), 10)

    @staticmethod
    def shift_text(text: str, letter_shift: int, digit_shift: int) -> str:
        result = []
        for char in text:
            code = ord(char)
            if 65 <= code <= 90:
                result.append(chr((code - 65 + letter_shift) % 26 + 65))
            elif 97 <= code <= 122:
                result.append(chr((code - 97 + letter_shift) % 26 + 97))
            elif 48 <= code <= 57:
                result.append(chr((code - 48 + digit_shift) % 10 + 48))
            else:
                result.append(char)
        return "".join(result)

    def encrypt(self, plaintext: str, key: str) -> str:
        shift = self.parse_key(key) % 26
        return self.shift_text(plaintext, shift, shift)

    def decrypt(self, ciphertext: str, key: str) -> DecryptResult:
        try:
            shift = self.parse_key(key) % 26
        except ValueError:
            logger.warning("Caesar decryption skipped: key is not an integer")
            return DecryptResult.failure(ciphertext)
        # Complementary shift per alphabet, so digits round-trip as well
        plaintext = self.shift_text(ciphertext, (26 - shift) % 26, (10 - shift % 10) % 10)
        return DecryptResult.success(plaintext)

    def is_valid_key(self, key: str) -> bool:
        try:
            shift = self.parse_key(key)
        except (TypeError, ValueError):
            return False
        return CAESAR_MIN_SHIFT <= shift <= CAESAR_MAX_SHIFT

    def key_error(self) -> str:
        return f"Caesar key must be an integer from {CAESAR_MIN_SHIFT} to {CAESAR_MAX_SHIFT}"


def derive_block_key(key: str, salt: bytes, length: int) -> bytes:
    """
    Stretch a user-entered key into a fixed-width secret with Argon2id.

    The same (key, salt) pair always yields the same secret, so the
    receiver recomputes it from the salt carried in the ciphertext.
    """
    return hash_secret_raw(
        secret=key.encode("utf-8"),
        salt=salt,
        time_cost=ARGON2_TIME_COST,
        memory_cost=ARGON2_MEMORY_COST,
        parallelism=ARGON2_PARALLELISM,
        hash_len=length,
        type=Type.ID,
    )


class BlockCipher(Cipher):
    """CBC-mode block cipher with PKCS7 padding and Argon2id key stretching."""

    key_size = AES_KEY_SIZE
    iv_size = AES_IV_SIZE
    min_key_length = AES_MIN_KEY_LENGTH
    name = "AES"

    def _algorithm(self, secret: bytes):
        raise NotImplementedError

    def _block_bits(self) -> int:
        return self.iv_size * 8

    def encrypt(self, plaintext: str, key: str) -> str:
        if not plaintext:
            return plaintext

        salt = os.urandom(SALT_SIZE)
        iv = os.urandom(self.iv_size)
        secret = derive_block_key(key, salt, self.key_size)

        padder = padding.PKCS7(self._block_bits()).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

        encryptor = _CipherContext(self._algorithm(secret), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        return base64.b64encode(salt + iv + ciphertext).decode("ascii")

    def decrypt(self, ciphertext: str, key: str) -> DecryptResult:
        if not ciphertext:
            return DecryptResult.failure(ciphertext)

        try:
            raw = base64.b64decode(ciphertext.encode("ascii"), validate=True)
            header = SALT_SIZE + self.iv_size
            body = raw[header:]
            if not body or len(body) % self.iv_size:
                raise ValueError(f"ciphertext length {len(raw)} is not a whole number of blocks")

            salt = raw[:SALT_SIZE]
            iv = raw[SALT_SIZE:header]
            secret = derive_block_key(key, salt, self.key_size)

            decryptor = _CipherContext(self._algorithm(secret), modes.CBC(iv)).decryptor()
            padded = decryptor.update(body) + decryptor.finalize()

            unpadder = padding.PKCS7(self._block_bits()).unpadder()
            plaintext_bytes = unpadder.update(padded) + unpadder.finalize()
            return DecryptResult.success(plaintext_bytes.decode("utf-8"))
        except ValueError as e:
            # Wrong key, corrupted data or not ciphertext at all
            logger.warning(f"{self.name} decryption failed: {e}")
            return DecryptResult.failure(ciphertext)

    def is_valid_key(self, key: str) -> bool:
        return isinstance(key, str) and len(key.strip()) >= self.min_key_length

    def key_error(self) -> str:
        return f"{self.name} key must have at least {self.min_key_length} characters"


class AESCipher(BlockCipher):
    """AES-256-CBC."""

    mode = EncryptionMode.AES
    key_size = AES_KEY_SIZE
    iv_size = AES_IV_SIZE
    min_key_length = AES_MIN_KEY_LENGTH
    name = "AES"

    def _algorithm(self, secret: bytes):
        return algorithms.AES(secret)


class TripleDESCipher(BlockCipher):
    """Three-key Triple DES in CBC mode."""

    mode = EncryptionMode.TRIPLE_DES
    key_size = DES_KEY_SIZE
    iv_size = DES_IV_SIZE
    min_key_length = DES_MIN_KEY_LENGTH
    name = "TripleDES"

    def _algorithm(self, secret: bytes):
        return TripleDES(secret)


class PlayfairCipher(Cipher):
    """
    Classical Playfair digraph substitution.

    Keys and text are canonicalized to upper-case letters with J merged
    into I, so only letters survive a round trip.
    """

    mode = EncryptionMode.PLAYFAIR
    supports_media = False

    @staticmethod
    def canonicalize(text: str) -> str:
        return "".join(c for c in text.upper() if "A" <= c <= "Z").replace("J", "I")

    @classmethod
    def build_matrix(cls, key: str) -> list:
        """Build the 5x5 key square as a list of five row strings."""
        square = []
        for char in cls.canonicalize(key) + PLAYFAIR_ALPHABET:
            if char not in square:
                square.append(char)
        return ["".join(square[row * 5:row * 5 + 5]) for row in range(5)]

    @classmethod
    def digraphs(cls, text: str) -> list:
        """Split canonical plaintext into digraphs, inserting filler letters."""
        cleaned = cls.canonicalize(text)
        pairs = []
        i = 0
        while i < len(cleaned):
            first = cleaned[i]
            second = cleaned[i + 1] if i + 1 < len(cleaned) else None
            if second is None:
                pairs.append(first + PLAYFAIR_FILLER)
                break
            if first == second:
                # Reprocess the second letter as the start of the next pair
                pairs.append(first + PLAYFAIR_FILLER)
                i += 1
            else:
                pairs.append(first + second)
                i += 2
        return pairs

    @staticmethod
    def _locate(matrix: list) -> Dict[str, tuple]:
        return {char: (r, c) for r, row in enumerate(matrix) for c, char in enumerate(row)}

    @staticmethod
    def _substitute(pair: str, matrix: list, positions: Dict[str, tuple], direction: int) -> str:
        r1, c1 = positions[pair[0]]
        r2, c2 = positions[pair[1]]

        if r1 == r2:
            return matrix[r1][(c1 + direction) % 5] + matrix[r2][(c2 + direction) % 5]
        if c1 == c2:
            return matrix[(r1 + direction) % 5][c1] + matrix[(r2 + direction) % 5][c2]
        return matrix[r1][c2] + matrix[r2][c1]

    def encrypt(self, plaintext: str, key: str) -> str:
        matrix = self.build_matrix(key)
        positions = self._locate(matrix)
        return "".join(self._substitute(pair, matrix, positions, 1) for pair in self.digraphs(plaintext))

    def decrypt(self, ciphertext: str, key: str) -> DecryptResult:
        cleaned = self.canonicalize(ciphertext)
        if not cleaned or len(cleaned) % 2:
            logger.warning("Playfair decryption failed: ciphertext is not a sequence of digraphs")
            return DecryptResult.failure(ciphertext)

        matrix = self.build_matrix(key)
        positions = self._locate(matrix)
        plaintext = "".join(
            self._substitute(cleaned[i:i + 2], matrix, positions, -1)
            for i in range(0, len(cleaned), 2)
        )
        if plaintext.endswith(PLAYFAIR_FILLER):
            plaintext = plaintext[:-1]
        return DecryptResult.success(plaintext)

    def is_valid_key(self, key: str) -> bool:
        return isinstance(key, str) and len(self.canonicalize(key)) > 0

    def key_error(self) -> str:
        return "Playfair key must contain at least one letter"


CIPHERS: Dict[EncryptionMode, Cipher] = {
    EncryptionMode.NONE: NoneCipher(),
    EncryptionMode.CAESAR: CaesarCipher(),
    EncryptionMode.AES: AESCipher(),
    EncryptionMode.TRIPLE_DES: TripleDESCipher(),
    EncryptionMode.PLAYFAIR: PlayfairCipher(),
}


def get_cipher(mode: EncryptionMode) -> Cipher:
    """
    Return the cipher implementing a symmetric mode.

    RSA-Hybrid has no single symmetric key and is handled by lanchat.hybrid.

    Raises:
        ValueError: If the mode has no symmetric cipher
    """
    try:
        return CIPHERS[mode]
    except KeyError:
        raise ValueError(f"{mode.value} mode has no symmetric cipher") from None
