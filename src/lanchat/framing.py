"""
LanChat - Stream framing.

TCP delivers an undifferentiated byte stream. Every frame on the wire is:

    [8 ASCII hex digits: payload length in bytes][payload]

The header is zero-padded base 16, so lengths range from 0 to 0xFFFFFFFF.

FrameDecoder reassembles frames from arbitrarily fragmented or coalesced
reads. A malformed header discards everything buffered so far; losing
data is preferred over a parser stuck on garbage.
"""

import logging
import re
from typing import List, Optional

from .constants import FRAME_HEADER_SIZE, MAX_FRAME_LENGTH, MAX_FRAME_SIZE
from .errors import ErrorCode, NetworkError

logger = logging.getLogger(__name__)

_HEADER_PATTERN = re.compile(rb"[0-9a-fA-F]{%d}" % FRAME_HEADER_SIZE)


def encode_frame(payload: bytes, max_frame_size: Optional[int] = MAX_FRAME_SIZE) -> bytes:
    """
    Prefix a payload with its length header.

    Raises:
        NetworkError: If the payload cannot be described by the header
            or exceeds the configured maximum
    """
    length = len(payload)
    limit = MAX_FRAME_LENGTH if max_frame_size is None else min(max_frame_size, MAX_FRAME_LENGTH)
    if length > limit:
        raise NetworkError(
            ErrorCode.E207_MESSAGE_TOO_LARGE,
            f"Frame payload too large: {length} bytes",
            {"size": length, "max_size": limit},
        )
    return format(length, "0%dx" % FRAME_HEADER_SIZE).encode("ascii") + payload


def parse_header(header: bytes) -> Optional[int]:
    """Return the declared payload length, or None if the header is malformed."""
    if not _HEADER_PATTERN.fullmatch(header):
        return None
    return int(header, 16)


class FrameDecoder:
    """
    Incremental decoder for one connection.

    Owns the connection's receive buffer; not shared between readers.
    """

    def __init__(self, max_frame_size: Optional[int] = MAX_FRAME_SIZE):
        self.max_frame_size = max_frame_size
        self.buffer = bytearray()
        self.frames_decoded = 0
        self.discarded_bytes = 0

    def feed(self, data: bytes) -> List[bytes]:
        """
        Append received bytes and extract every complete frame.

        Returns:
            Zero, one or many frame payloads in arrival order
        """
        self.buffer.extend(data)
        frames = []

        while len(self.buffer) >= FRAME_HEADER_SIZE:
            length = parse_header(bytes(self.buffer[:FRAME_HEADER_SIZE]))

            if length is None or (self.max_frame_size is not None and length > self.max_frame_size):
                logger.warning(
                    f"Malformed frame header {bytes(self.buffer[:FRAME_HEADER_SIZE])!r}, "
                    f"discarding {len(self.buffer)} buffered bytes"
                )
                self.discarded_bytes += len(self.buffer)
                self.buffer.clear()
                break

            end = FRAME_HEADER_SIZE + length
            if len(self.buffer) < end:
                break

            frames.append(bytes(self.buffer[FRAME_HEADER_SIZE:end]))
            del self.buffer[:end]
            self.frames_decoded += 1

        return frames

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet part of a complete frame."""
        return len(self.buffer)

    def reset(self) -> None:
        self.buffer.clear()
