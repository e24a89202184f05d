from typing import *
import sys

from ..config import split_address
from ..proxy_server import Socks5Server
from .common import agent_kwargs, make_parser, run


def make_server_parser():
    return make_parser(
        'minisocks-server',
        "minisocks remote agent - answers tunnelled SOCKS5 requests and relays them to their destination"
    )


def make_agent(config, cipher, after_listen) -> Socks5Server:
    host, port = split_address(config.listen)
    return Socks5Server(cipher, host=host, port=port, after_listen=after_listen, **agent_kwargs(config))


def main(argv: Optional[List[str]] = None) -> int:
    return run(make_server_parser(), argv, make_agent)


if __name__ == "__main__":
    sys.exit(main())
