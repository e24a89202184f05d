from typing import *
import asyncio

from .agent import Agent, Session
from .base_cipher import Cipher
from .handshake import DEFAULT_UPSTREAM_TIMEOUT, Socks5Handshake
from .relay import relay
from .secure_socket import SecureSocket


class Socks5Server(Agent):
    """
    Remote agent: decrypts the SOCKS5 handshake sent through the tunnel, dials the requested destination and relays
    traffic back encrypted.
    """
    role = 'minisocks-server'

    def __init__(self, cipher: Cipher, host: str = '0.0.0.0', port: int = 7448,
                 timeout: Optional[float] = DEFAULT_UPSTREAM_TIMEOUT, **kwargs):
        super().__init__(cipher, host=host, port=port, timeout=timeout, **kwargs)

    async def handle_session(self, session: Session):
        session.channel = SecureSocket(session.reader, session.writer, self.cipher, logger=session.logger)
        handshake = Socks5Handshake(
            session.channel,
            dial_timeout=self.dial_timeout,
            upstream_timeout=self.timeout,
            logger=session.logger,
        )
        request, remote_reader, remote_writer = await handshake.run()
        session.upstream = remote_writer

        await relay(session.channel, remote_reader, remote_writer, deadline=handshake.deadline,
                    logger=session.logger)
        session.logger.debug(f"TCP connection to {request.addr} is closed")
