from typing import *
import asyncio

from .agent import Agent, Session
from .base_cipher import Cipher
from .relay import relay
from .secure_socket import dial_server


DEFAULT_TIMEOUT = 10


class Socks5Retranslator(Agent):
    """
    Local agent: accepts plain SOCKS5 clients and forwards their byte stream, encrypted, to the remote agent.

    The SOCKS5 greeting and request of the application are not parsed here, they travel through the tunnel like
    any other payload and the remote agent answers them.
    """
    role = 'minisocks-local'

    def __init__(self, cipher: Cipher, remote_host: str, remote_port: int, host: str = '127.0.0.1',
                 port: int = 1080, timeout: Optional[float] = DEFAULT_TIMEOUT, **kwargs):
        super().__init__(cipher, host=host, port=port, timeout=timeout, **kwargs)
        self.remote_host = remote_host
        self.remote_port = remote_port

    async def handle_session(self, session: Session):
        session.channel = await dial_server(
            self.remote_host, self.remote_port, self.cipher, timeout=self.dial_timeout, logger=session.logger
        )
        deadline = None if self.timeout is None else asyncio.get_running_loop().time() + self.timeout

        await relay(session.channel, session.reader, session.writer, deadline=deadline,
                    logger=session.logger)

    def __str__(self):
        return (f'{self.__class__.__name__}(host="{self.host}", port={self.port}, '
                f'remote="{self.remote_host}:{self.remote_port}", cipher={self.cipher})')
