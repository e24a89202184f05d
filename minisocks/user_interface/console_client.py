from typing import *
import sys

from ..config import split_address
from ..proxy_client import Socks5Retranslator
from .common import agent_kwargs, make_parser, run


def make_client_parser():
    parser = make_parser(
        'minisocks-local',
        "minisocks local agent - accepts SOCKS5 clients and tunnels them, encrypted, to minisocks-server"
    )
    parser.add_argument("--remote", help="minisocks-server address host:port, overrides the config")
    return parser


def make_agent(config, cipher, after_listen) -> Socks5Retranslator:
    host, port = split_address(config.listen, default_host='127.0.0.1')
    remote_host, remote_port = split_address(config.remote, default_host='127.0.0.1')
    return Socks5Retranslator(cipher, remote_host, remote_port, host=host, port=port, after_listen=after_listen,
                              **agent_kwargs(config))


def main(argv: Optional[List[str]] = None) -> int:
    return run(make_client_parser(), argv, make_agent)


if __name__ == "__main__":
    sys.exit(main())
