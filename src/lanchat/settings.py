"""
LanChat - Encryption settings snapshots.

The active encryption mode and key are process-wide and user-editable,
while every connection reads them concurrently. Settings are therefore
immutable snapshots: an update replaces the whole snapshot, and each
frame is encrypted or decoded with the snapshot captured when it started.
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Optional

from .ciphers import EncryptionMode
from .constants import DEFAULT_ENCRYPTION_KEY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CipherSettings:
    """Active encryption mode and symmetric key."""

    mode: EncryptionMode = EncryptionMode.AES
    key: str = DEFAULT_ENCRYPTION_KEY

    @property
    def encrypted(self) -> bool:
        return self.mode != EncryptionMode.NONE


@dataclass(frozen=True)
class SecurityPolicy:
    """Signing and handshake policy.

    Attributes:
        sign_messages: Attach an ECDSA signature to outbound envelopes
        reject_invalid_signatures: Drop inbound messages whose signature
            fails verification instead of delivering them with a warning
        symmetric_handshake: Responder also derives and installs the
            session key when it answers a handshake
    """

    sign_messages: bool = True
    reject_invalid_signatures: bool = True
    symmetric_handshake: bool = True


class SettingsStore:
    """Thread-safe holder of the current CipherSettings snapshot."""

    def __init__(self, initial: Optional[CipherSettings] = None):
        self._lock = threading.Lock()
        self._current = initial or CipherSettings()

    def snapshot(self) -> CipherSettings:
        with self._lock:
            return self._current

    def update(self, mode: Optional[EncryptionMode] = None, key: Optional[str] = None) -> CipherSettings:
        """Replace the current snapshot. Fields left as None are kept."""
        with self._lock:
            changes = {}
            if mode is not None:
                changes["mode"] = mode
            if key is not None:
                changes["key"] = key
            self._current = replace(self._current, **changes)
            current = self._current
        logger.info(f"Encryption settings updated: mode={current.mode.value}")
        return current

    def update_with(self, change: Callable[[CipherSettings], CipherSettings]) -> CipherSettings:
        """
        Replace the current snapshot with change(current) under the lock.

        Use when the new value depends on the current one, so a concurrent
        update cannot land between reading and writing.
        """
        with self._lock:
            self._current = change(self._current)
            current = self._current
        logger.info(f"Encryption settings updated: mode={current.mode.value}")
        return current
