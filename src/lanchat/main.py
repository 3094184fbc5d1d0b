"""
LanChat - Command-line entry point.

Subcommands:
  listen   Receive and print messages
  send     Send one text, image or audio message
  chat     Interactive chat with one peer
  keys     Show this process's public keys
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import __version__
from .ciphers import EncryptionMode, get_cipher
from .config import Config
from .constants import (
    DEFAULT_DATA_DIR,
    LOG_BACKUP_COUNT,
    LOG_DATE_FORMAT,
    LOG_FILENAME,
    LOG_FORMAT,
    LOG_MAX_BYTES,
    LOGS_DIR,
)
from .errors import ErrorCode, LanchatError, ValidationError
from .message import Direction, Message, MessageKind, TrustStatus
from .network import TransportManager
from .session import ChatSession
from .settings import SettingsStore
from .utils import format_fingerprint, format_timestamp

logger = logging.getLogger(__name__)

console = Console()

_TRUST_STYLES = {
    TrustStatus.VERIFIED: "[green]verified[/green]",
    TrustStatus.UNVERIFIED: "[yellow]unverified[/yellow]",
    TrustStatus.INVALID: "[red]invalid signature[/red]",
    TrustStatus.LOCAL: "[dim]you[/dim]",
}

CHAT_HELP = """\
Commands:
  /mode NAME        Switch cipher (None, Caesar, AES, TripleDES, Playfair, RSA)
  /key KEY          Set the symmetric key
  /handshake        Exchange public keys and install a shared session key
  /image PATH       Send an image file
  /audio PATH       Send an audio file
  /status           Show current mode and key fingerprint
  /quit             Leave the chat"""


def setup_logging(config: Config, debug: bool = False) -> None:
    """Configure console and rotating file logging from the [logging] section."""
    level_name = "DEBUG" if debug else str(config.get("logging", "level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    handlers = []
    if config.get("logging", "console_logging", True):
        handlers.append(RichHandler(console=Console(stderr=True), show_path=debug, rich_tracebacks=True))

    if config.get("logging", "file_logging", True):
        log_dir = Path(DEFAULT_DATA_DIR).expanduser() / LOGS_DIR
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_dir / LOG_FILENAME,
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
            handlers.append(file_handler)
        except OSError as e:
            console.print(f"[yellow]File logging disabled: {escape(str(e))}[/yellow]")

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=handlers, force=True)


def build_transport(config: Config, args: argparse.Namespace) -> TransportManager:
    """Wire settings, keys and transport together from config and CLI overrides."""
    if args.mode:
        config.set("encryption", "mode", args.mode)
    if args.key is not None:
        config.set("encryption", "key", args.key)
    if args.port is not None:
        config.set("network", "port", args.port)
    if args.peer_port is not None:
        config.set("network", "peer_port", args.peer_port)

    policy = config.security_policy()
    if args.command == "send":
        # Keys live only as long as this process, so one-shot sends go unsigned
        policy = replace(policy, sign_messages=False)

    max_frame_size = int(config.get("network", "max_frame_size"))
    session = ChatSession(
        settings=SettingsStore(config.cipher_settings()),
        policy=policy,
        max_frame_size=max_frame_size,
    )
    return TransportManager(
        session=session,
        host=str(config.get("network", "host")),
        port=int(config.get("network", "port")),
        peer_port=int(config.get("network", "peer_port")),
        timeout=float(config.get("network", "timeout")),
        max_frame_size=max_frame_size,
    )


def render_message(message: Message) -> None:
    """Print one message to the console."""
    stamp = format_timestamp(message.timestamp)
    who = "you" if message.direction == Direction.OUTBOUND else (message.sender or "peer")
    trust = _TRUST_STYLES[message.trust]
    lock = "locked" if message.encrypted else "plain"

    if message.kind == MessageKind.TEXT:
        body = escape(message.text)
    else:
        body = f"[cyan]<{message.kind.value}, {len(message.payload)} bytes>[/cyan]"

    if message.decrypt_failed:
        body = f"[red](could not decrypt)[/red] {body}"

    console.print(f"[dim]{stamp}[/dim] [bold]{escape(who)}[/bold] ({lock}, {trust}): {body}")


def _read_media(path: str) -> bytes:
    try:
        return Path(path).expanduser().read_bytes()
    except OSError as e:
        raise ValidationError(ErrorCode.E003_FILE_NOT_FOUND, f"Cannot read {path}: {e.strerror}", {"path": path})


async def run_listen(transport: TransportManager, handshake_with: Optional[str]) -> None:
    await transport.start()
    console.print(f"Listening on port [bold]{transport.listen_port}[/bold]. Press Ctrl+C to stop.")
    try:
        if handshake_with:
            await transport.initiate_handshake(handshake_with)
        async for message in transport.messages():
            render_message(message)
    finally:
        await transport.stop()


async def run_send(transport: TransportManager, args: argparse.Namespace) -> None:
    if args.image:
        message = await transport.send_image(_read_media(args.image), args.address)
    elif args.audio:
        message = await transport.send_audio(_read_media(args.audio), args.address)
    else:
        message = await transport.send_text(args.text or "", args.address)
    render_message(message)


async def _print_inbound(transport: TransportManager) -> None:
    async for message in transport.messages():
        render_message(message)


async def _handle_command(transport: TransportManager, address: str, line: str) -> bool:
    """Run a slash command. Returns False when the chat should end."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()
    settings = transport.session.settings

    if command == "/quit":
        return False
    if command == "/help":
        console.print(CHAT_HELP)
    elif command == "/mode":
        mode = EncryptionMode.from_name(argument)
        current = settings.snapshot()
        if mode != EncryptionMode.RSA_HYBRID and not get_cipher(mode).is_valid_key(current.key):
            console.print(f"[yellow]Current key is not valid for {mode.value}: {get_cipher(mode).key_error()}[/yellow]")
        settings.update(mode=mode)
        console.print(f"Mode set to [bold]{mode.value}[/bold]")
    elif command == "/key":
        settings.update(key=argument)
        console.print("Key updated")
    elif command == "/handshake":
        await transport.initiate_handshake(address)
        console.print("Handshake sent")
    elif command == "/image":
        render_message(await transport.send_image(_read_media(argument), address))
    elif command == "/audio":
        render_message(await transport.send_audio(_read_media(argument), address))
    elif command == "/status":
        current = settings.snapshot()
        keys = transport.session.keyring.snapshot()
        console.print(f"Mode: [bold]{current.mode.value}[/bold]")
        console.print(f"Fingerprint: {format_fingerprint(keys.own.fingerprint())}")
        console.print(f"Peer keys known: {'yes' if keys.peer_public_key else 'no'}")
    else:
        console.print(f"[yellow]Unknown command {escape(command)}. Type /help.[/yellow]")
    return True


async def run_chat(transport: TransportManager, address: str) -> None:
    await transport.start()
    loop = asyncio.get_running_loop()
    printer = asyncio.create_task(_print_inbound(transport))
    console.print(f"Chatting with [bold]{escape(address)}[/bold] on port {transport.listen_port}. Type /help.")

    try:
        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            try:
                if line.startswith("/"):
                    if not await _handle_command(transport, address, line):
                        break
                else:
                    render_message(await transport.send_text(line, address))
            except (LanchatError, ValueError) as e:
                console.print(f"[red]{escape(str(e))}[/red]")
    finally:
        printer.cancel()
        await asyncio.gather(printer, return_exceptions=True)
        await transport.stop()


def show_keys(transport: TransportManager) -> None:
    keys = transport.session.keyring.snapshot()
    console.print(f"[bold]Fingerprint[/bold]: {format_fingerprint(keys.own.fingerprint())}")
    console.print(f"[bold]EC public key[/bold] (secp256k1): {keys.own.public_key_hex()}")
    if keys.hybrid:
        console.print("[bold]RSA public key[/bold]:")
        console.print(keys.hybrid.public_pem())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lanchat",
        description="LanChat - peer-to-peer encrypted LAN messenger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lanchat listen                          # Receive on the default port
  lanchat --mode Caesar --key 3 send 192.168.1.20 "hello"
  lanchat send 192.168.1.20:9000 --image cat.png
  lanchat chat 192.168.1.20               # Interactive chat
        """,
    )
    parser.add_argument("--version", action="version", version=f"LanChat {__version__}")
    parser.add_argument("--config", type=str, default=None, help="Path to config.toml")
    parser.add_argument("--port", type=int, default=None, help="Local listen port (0 picks a free port)")
    parser.add_argument("--peer-port", type=int, default=None, help="Default port of remote peers")
    parser.add_argument("--mode", type=str, default=None, help="Encryption mode")
    parser.add_argument("--key", type=str, default=None, help="Symmetric key for the encryption mode")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    listen = subparsers.add_parser("listen", help="Receive and print messages")
    listen.add_argument("--handshake", metavar="ADDRESS", default=None,
                        help="Exchange keys with this peer after starting")

    send = subparsers.add_parser("send", help="Send a single message")
    send.add_argument("address", help="Peer address (host or host:port)")
    send.add_argument("text", nargs="?", default=None, help="Text to send")
    media = send.add_mutually_exclusive_group()
    media.add_argument("--image", metavar="FILE", default=None, help="Send an image file")
    media.add_argument("--audio", metavar="FILE", default=None, help="Send an audio file")

    chat = subparsers.add_parser("chat", help="Interactive chat with one peer")
    chat.add_argument("address", help="Peer address (host or host:port)")

    subparsers.add_parser("keys", help="Show this session's public keys")

    return parser


def main(argv: Optional[list] = None) -> int:
    """Main entry point for LanChat."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config(Path(args.config).expanduser() if args.config else None)
        setup_logging(config, args.debug)
        transport = build_transport(config, args)

        if args.command == "listen":
            asyncio.run(run_listen(transport, args.handshake))
        elif args.command == "send":
            asyncio.run(run_send(transport, args))
        elif args.command == "chat":
            asyncio.run(run_chat(transport, args.address))
        elif args.command == "keys":
            show_keys(transport)
    except KeyboardInterrupt:
        console.print("\nStopped.")
    except LanchatError as e:
        logger.debug(f"Command failed: {e.to_dict()}")
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
