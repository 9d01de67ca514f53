"""Command-line entry point: join a voice server and talk."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
import signal
import sys
from collections.abc import Callable, Sequence
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING

from aiomumble.client.session import VoiceSession
from aiomumble.discovery import discover_servers
from aiomumble.models.config import SessionConfig, parse_port

if TYPE_CHECKING:
    from aiomumble.client.interfaces import ConnectionFactory

logger = logging.getLogger(__name__)

BANNER = """\
,------------------------------------------------,
| VOICE CLIENT STARTED. PRESS [CTRL+C] TO QUIT.  |
'------------------------------------------------'"""


def prompt_value(prompt: str, default: str, read: Callable[[str], str] = input) -> str:
    """Ask the operator for a value, keeping ``default`` on a blank line."""
    try:
        value = read(
            f"Please enter the {prompt} or keep the line blank in order to keep "
            f"the default value '{default}'.\n"
        ).strip()
    except EOFError:
        return default
    return value or default


def load_connection_factory(path: str) -> ConnectionFactory:
    """
    Import a connection factory given as ``package.module:attribute``.

    Raises:
        ValueError: If the path is malformed or does not name a callable.
    """
    module_name, sep, attribute = path.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Connection factory must look like 'module:attribute', got '{path}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as err:
        raise ValueError(f"Cannot import connection module '{module_name}': {err}") from err
    factory = getattr(module, attribute, None)
    if not callable(factory):
        raise ValueError(f"'{path}' is not a callable connection factory")
    return factory  # type: ignore[no-any-return]


def build_config(
    args: argparse.Namespace, read: Callable[[str], str] = input
) -> SessionConfig:
    """
    Combine config file, command-line flags and operator prompts.

    Raises:
        ValueError: If any value is invalid (for example an unparsable port).
    """
    base = SessionConfig()
    if args.config is not None:
        base = SessionConfig.from_json(Path(args.config).read_text(encoding="utf-8"))

    host = args.host or base.host
    port = str(args.port) if args.port is not None else str(base.port)
    username = args.username or base.username
    password = args.password if args.password is not None else base.password

    if not args.no_prompt:
        host = prompt_value("server name", host, read)
        port = prompt_value("server port", port, read)
        username = prompt_value("user name", username, read)
        password = prompt_value("user password", password, read)

    return SessionConfig(
        host=host,
        port=parse_port(port),
        username=username,
        password=password,
        tokens=list(args.token or base.tokens),
        audio=base.audio,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aiomumble", description="Join a voice chat server with microphone and speakers"
    )
    parser.add_argument("--config", type=Path, help="JSON session config file")
    parser.add_argument("--host", help="Server host name or address")
    parser.add_argument("--port", help="Server port")
    parser.add_argument("--username", help="User name to connect as")
    parser.add_argument("--password", help="Server password")
    parser.add_argument(
        "--token", action="append", help="Access token (may be given more than once)"
    )
    parser.add_argument(
        "--connection",
        help="Connection factory to use, as 'package.module:attribute'",
    )
    parser.add_argument(
        "--no-prompt", action="store_true", help="Do not ask for missing values interactively"
    )
    parser.add_argument(
        "--discover",
        action="store_true",
        help="List servers announced on the local network and exit",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print the channel tree as JSON after connecting"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


async def _discover() -> int:
    servers = await discover_servers()
    if not servers:
        print("No servers found on the local network.")  # noqa: T201
        return 1
    for server in servers:
        print(f"{server.name}: {server.host}:{server.port}")  # noqa: T201
    return 0


async def run_session(
    config: SessionConfig, factory: ConnectionFactory, *, as_json: bool = False
) -> int:
    """Run a session until interrupted or until the connection ends."""
    session = VoiceSession(config, factory)
    try:
        await session.start()
    except (OSError, TimeoutError) as err:
        logger.error("Could not connect to %s: %s", config.host, err)
        return 1
    except Exception:
        # Audio device errors (PortAudio) do not derive from OSError.
        logger.exception("Could not start the session with %s", config.host)
        return 1

    tree = session.dispatcher.directory.tree()
    if as_json and tree is not None:
        print(tree.to_json())  # noqa: T201
    else:
        print(session.render())  # noqa: T201
    print(BANNER)  # noqa: T201

    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_requested.set)

    stop_task = loop.create_task(stop_requested.wait())
    loop_task = loop.create_task(session.wait())
    try:
        await asyncio.wait({stop_task, loop_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with suppress(NotImplementedError):
                loop.remove_signal_handler(sig)
        stop_task.cancel()
        error = await session.stop()
    return 1 if error is not None else 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the command-line client."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.discover:
        return asyncio.run(_discover())

    if args.connection is None:
        print("A connection factory is required (--connection module:attribute).")  # noqa: T201
        return 2

    try:
        factory = load_connection_factory(args.connection)
        config = build_config(args)
    except (OSError, LookupError, ValueError) as err:
        print(err, file=sys.stderr)  # noqa: T201
        return 2

    try:
        return asyncio.run(run_session(config, factory, as_json=args.json))
    except KeyboardInterrupt:
        print("\nExiting...")  # noqa: T201
        return 0


if __name__ == "__main__":
    sys.exit(main())
