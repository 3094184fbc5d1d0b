"""
LanChat - Asynchronous TCP transport.

This module implements:
- A listener that accepts any number of concurrent inbound connections
- Per-connection frame reassembly feeding the ChatSession pipeline
- One short-lived outbound connection per sent message
- Handshake initiation and replies
- An inbound message queue consumed by the caller

Wire format and envelope handling live in framing, envelope and session;
this layer only moves bytes.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Optional, Set

from .constants import (
    CONNECTION_TIMEOUT,
    DEFAULT_HOST,
    DEFAULT_PORT,
    INBOUND_QUEUE_MAX_SIZE,
    MAX_FRAME_SIZE,
    READ_CHUNK_SIZE,
    WRITE_TIMEOUT,
)
from .envelope import HandshakeType
from .errors import ErrorCode, NetworkError, ServerError
from .framing import FrameDecoder
from .message import Message, MessageKind, Payload
from .session import ChatSession, FrameResult
from .utils import parse_address

logger = logging.getLogger(__name__)


class TransportManager:
    """Listens for peers and sends framed messages to them using asyncio."""

    def __init__(self, session: Optional[ChatSession] = None,
                 host: str = DEFAULT_HOST,
                 port: int = DEFAULT_PORT,
                 peer_port: int = DEFAULT_PORT,
                 timeout: float = CONNECTION_TIMEOUT,
                 max_frame_size: Optional[int] = MAX_FRAME_SIZE):
        self.session = session or ChatSession(max_frame_size=max_frame_size)
        self.host = host
        self.port = port
        self.peer_port = peer_port
        self.timeout = timeout
        self.max_frame_size = max_frame_size

        self.server: Optional[asyncio.Server] = None
        self.running = False
        self._inbound: Optional["asyncio.Queue[Message]"] = None

        self._client_tasks: Set[asyncio.Task] = set()

        # Callbacks
        self.on_message_callback: Optional[Callable] = None
        self.on_session_key_callback: Optional[Callable] = None

    @property
    def inbound(self) -> "asyncio.Queue[Message]":
        """Inbound message queue, created on first use inside the running loop."""
        if self._inbound is None:
            self._inbound = asyncio.Queue(maxsize=INBOUND_QUEUE_MAX_SIZE)
        return self._inbound

    @property
    def listen_port(self) -> int:
        """Port actually bound; differs from self.port when port 0 was requested."""
        if self.server and self.server.sockets:
            return self.server.sockets[0].getsockname()[1]
        return self.port

    async def start(self) -> None:
        """
        Start listening for connections.

        Raises:
            ServerError: If the server is already running or the port cannot be bound
        """
        if self.running:
            raise ServerError(ErrorCode.E802_SERVER_ALREADY_RUNNING, "Listener already running")

        # Bind the queue to this loop before any connection is accepted
        self.inbound

        try:
            self.server = await asyncio.start_server(self._handle_client, self.host, self.port)
        except OSError as e:
            raise ServerError(
                ErrorCode.E801_SERVER_START_FAILED,
                f"Failed to listen on {self.host}:{self.port}: {e}",
                {"host": self.host, "port": self.port},
            ) from e

        self.running = True
        logger.info(f"Listening on {self.host}:{self.listen_port}")

    async def stop(self) -> None:
        """Stop listening and close inbound connections."""
        self.running = False
        if self.server:
            self.server.close()

        for task in list(self._client_tasks):
            task.cancel()
        if self._client_tasks:
            await asyncio.gather(*self._client_tasks, return_exceptions=True)
        self._client_tasks.clear()

        if self.server:
            await self.server.wait_closed()
            self.server = None
            logger.info("Listener stopped")

    async def __aenter__(self) -> "TransportManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # Inbound

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Read frames from one inbound connection until the peer closes it."""
        task = asyncio.current_task()
        if task is not None:
            self._client_tasks.add(task)

        peername = writer.get_extra_info("peername")
        sender = peername[0] if peername else None
        decoder = FrameDecoder(self.max_frame_size)
        logger.debug(f"Incoming connection from {peername}")

        try:
            while True:
                data = await reader.read(READ_CHUNK_SIZE)
                if not data:
                    break
                for payload in decoder.feed(data):
                    await self._dispatch(payload, sender)
        except asyncio.CancelledError:
            logger.debug(f"Connection handler for {peername} cancelled")
            raise
        except (ConnectionError, OSError) as e:
            logger.warning(f"Connection from {peername} failed: {e}")
        finally:
            if decoder.pending:
                logger.debug(f"Connection from {peername} closed with {decoder.pending} bytes of partial frame")
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug(f"Error closing connection from {peername}: {e}")
            if task is not None:
                self._client_tasks.discard(task)

    async def _dispatch(self, payload: bytes, sender: Optional[str]) -> None:
        result: FrameResult = self.session.process_frame(payload, sender)

        if result.message is not None:
            await self._deliver(result.message)

        if result.reply is not None and sender is not None:
            port = result.reply.port or self.peer_port
            try:
                await self._send_frame(sender, port, result.reply.frame)
                logger.info(f"Handshake reply sent to {sender}:{port}")
            except NetworkError as e:
                logger.warning(f"Failed to send handshake reply to {sender}:{port}: {e}")

        if result.session_key_installed:
            await self._notify(self.on_session_key_callback, sender)

    async def _deliver(self, message: Message) -> None:
        await self._notify(self.on_message_callback, message)
        try:
            self.inbound.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Inbound queue full, dropping message from {message.sender}")

    @staticmethod
    async def _notify(callback: Optional[Callable], *args) -> None:
        if callback is None:
            return
        if asyncio.iscoroutinefunction(callback):
            await callback(*args)
        else:
            callback(*args)

    async def receive(self, timeout: Optional[float] = None) -> Message:
        """
        Wait for the next inbound message.

        Raises:
            asyncio.TimeoutError: If timeout elapses first
        """
        return await asyncio.wait_for(self.inbound.get(), timeout=timeout)

    async def messages(self) -> AsyncIterator[Message]:
        """Yield inbound messages in arrival order, forever."""
        while True:
            yield await self.inbound.get()

    # Outbound

    async def send_message(self, kind: MessageKind, content: Payload, address: str) -> Message:
        """
        Encrypt and send one message on a fresh connection.

        Args:
            kind: Message kind
            content: Text, or media as bytes or base64
            address: "host" or "host:port"; the peer port is used when omitted

        Returns:
            The outbound Message for local display

        Raises:
            ValidationError: If the message is rejected before any I/O
            NetworkError: If connecting or writing fails
        """
        packet = self.session.prepare_outbound(kind, content, address)
        host, port = parse_address(address, self.peer_port)
        await self._send_frame(host, port, packet.frame)
        logger.info(f"Sent {kind.value} message to {host}:{port}")
        return packet.message

    async def send_text(self, text: str, address: str) -> Message:
        return await self.send_message(MessageKind.TEXT, text, address)

    async def send_image(self, data: bytes, address: str) -> Message:
        return await self.send_message(MessageKind.IMAGE, data, address)

    async def send_audio(self, data: bytes, address: str) -> Message:
        return await self.send_message(MessageKind.AUDIO, data, address)

    async def initiate_handshake(self, address: str) -> None:
        """
        Send our public keys to a peer.

        The peer replies on a new connection to our listening port, and the
        session key is installed when that reply is processed.
        """
        host, port = parse_address(address, self.peer_port)
        frame = self.session.create_handshake(HandshakeType.INIT, port=self.listen_port)
        await self._send_frame(host, port, frame)
        logger.info(f"Handshake sent to {host}:{port}")

    async def _send_frame(self, host: str, port: int, frame: bytes) -> None:
        """
        Open a connection, write one frame and close.

        Raises:
            NetworkError: E202 on connect timeout, E201 on refusal or
                unreachable host, E204 if the write fails
        """
        details = {"host": host, "port": port}
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise NetworkError(
                ErrorCode.E202_CONNECTION_TIMEOUT,
                f"Connection to {host}:{port} timed out after {self.timeout}s",
                details,
            ) from e
        except OSError as e:
            raise NetworkError(
                ErrorCode.E201_CONNECTION_FAILED,
                f"Could not connect to {host}:{port}: {e}",
                details,
            ) from e

        try:
            writer.write(frame)
            await asyncio.wait_for(writer.drain(), timeout=WRITE_TIMEOUT)
        except (asyncio.TimeoutError, OSError) as e:
            raise NetworkError(
                ErrorCode.E204_SEND_FAILED,
                f"Failed to send to {host}:{port}: {e}",
                details,
            ) from e
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug(f"Error closing connection to {host}:{port}: {e}")
