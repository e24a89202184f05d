from typing import *
import argparse
import asyncio
import logging
from pathlib import Path

from .. import __version__
from ..agent import Agent
from ..base_cipher import Cipher
from ..ciphers import CIPHERS, new_cipher
from ..config import DEFAULT_CONFIG_PATH, Config
from ..console_gui import AGENT_CONSOLE
from ..exceptions import MinisocksError
from ..logger_setup import setup_logging
from ..password import generate_secret


def make_parser(prog: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description=description)
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH,
                        help=f"JSON config file, created with defaults if missing (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--listen", help="Listen address host:port, overrides the config")
    parser.add_argument("--password", help="Cipher secret, overrides the config")
    parser.add_argument("--cipher", choices=list(CIPHERS.keys()), help="Cipher, overrides the config")
    parser.add_argument("--timeout", type=float, help="Session deadline in seconds, overrides the agent default")
    parser.add_argument("--log", type=Path, help="Also write logs to this file (rotated at midnight)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--console", action="store_true", help="Run with an interactive console")
    parser.add_argument("--genkey", action="store_true", help="Print a new secret for the selected cipher and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    config = Config.read_config(args.config)
    if args.cipher is not None and args.cipher != config.cipher:
        config.cipher = args.cipher
        if args.password is None:
            raise ValueError(f'Cipher "{args.cipher}" differs from the config, pass its secret with --password')
    if args.password is not None:
        config.password = args.password
    if args.listen is not None:
        config.listen = args.listen
    if args.timeout is not None:
        config.timeout = args.timeout
    if getattr(args, 'remote', None) is not None:
        config.remote = args.remote
    return config


def build_cipher(config: Config) -> Cipher:
    return new_cipher(config.cipher, config.password)


def agent_kwargs(config: Config) -> Dict[str, Any]:
    return {} if config.timeout is None else {'timeout': config.timeout}


def banner(role: str, config: Config, logger: logging.Logger) -> Callable[[Tuple[str, int]], None]:
    def after_listen(address: Tuple[str, int]):
        logger.info(f"{role}:{__version__} started, listening on {address[0]}:{address[1]}")
        lines = [f"listen: {config.listen}"]
        if role == 'minisocks-local':
            lines.append(f"remote: {config.remote}")
        lines += [f"cipher: {config.cipher}", f"password: {config.password}"]
        logger.info("Using config:\n" + "\n".join(lines))
    return after_listen


def run(parser: argparse.ArgumentParser, argv: Optional[List[str]],
        make_agent: Callable[[Config, Cipher, Callable], Agent]) -> int:
    args = parser.parse_args(argv)
    logger = setup_logging(logging.DEBUG if args.debug else logging.INFO, log_file=args.log)

    if args.genkey:
        print(generate_secret(args.cipher or 'table'))
        return 0

    try:
        config = load_config(args)
        cipher = build_cipher(config)
        agent = make_agent(config, cipher, banner(parser.prog, config, logger))
    except (MinisocksError, ValueError) as e:
        parser.error(str(e))

    try:
        if args.console:
            asyncio.run(AGENT_CONSOLE(agent))
        else:
            agent.start()
    except KeyboardInterrupt:
        pass
    except OSError as e:
        logger.error(f"{parser.prog} failed: {e}")
        return 1
    return 0
