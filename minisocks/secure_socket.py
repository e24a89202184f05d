from typing import *
import asyncio
import logging
import struct

from .base_cipher import Cipher
from .exceptions import DialFailed, ShortCiphertext


BUFFER_SIZE = 1024
MAX_FRAME_PAYLOAD = 16 * 1024
FRAME_HEADER = struct.Struct('!H')


'''
SecureSocket pairs one TCP connection with the agent's Cipher.

Wire format depends on the cipher:
- stream cipher:  raw encrypted bytes, chunk boundaries are irrelevant
- framed cipher:  ┌──────────────┬────────────────────────────────┐
                  │ length (2B)  │ nonce | ciphertext | tag       │
                  │ big endian   │ 'length' bytes                 │
                  └──────────────┴────────────────────────────────┘
                  one record per encrypt call, decoded as a whole
'''


class SecureSocket:
    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, cipher: Cipher,
                 logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None):
        self.reader = reader
        self.writer = writer
        self.cipher = cipher
        self.logger = logging.getLogger(__name__) if logger is None else logger

        self.bytes_sent = 0
        self.bytes_received = 0
        self.closed = False

        peer = writer.get_extra_info('peername')
        self.addr = f'{peer[0]}:{peer[1]}' if peer else 'N/A'

    async def encode_write(self, data: bytes) -> int:
        if not data:
            return 0

        if self.cipher.framed:
            for start in range(0, len(data), MAX_FRAME_PAYLOAD):
                chunk = data[start:start + MAX_FRAME_PAYLOAD]
                sealed = self.cipher.encrypt(chunk)
                self.writer.write(FRAME_HEADER.pack(len(sealed)) + sealed)
                self.bytes_sent += FRAME_HEADER.size + len(sealed)
        else:
            encoded = self.cipher.encrypt(data)
            self.writer.write(encoded)
            self.bytes_sent += len(encoded)

        await self.writer.drain()
        self.logger.debug(f'Sent {len(data)} encrypted bytes to {self.addr}')
        return len(data)

    async def decode_read(self, size: int = BUFFER_SIZE) -> bytes:
        # b'' means the peer closed the stream cleanly
        if not self.cipher.framed:
            data = await self.reader.read(size)
            self.bytes_received += len(data)
            return self.cipher.decrypt(data) if data else b''

        try:
            header = await self.reader.readexactly(FRAME_HEADER.size)
        except asyncio.IncompleteReadError as e:
            if e.partial:
                raise ShortCiphertext(f'Record header from {self.addr} cut short by end of stream') from e
            return b''

        length, = FRAME_HEADER.unpack(header)
        try:
            sealed = await self.reader.readexactly(length)
        except asyncio.IncompleteReadError as e:
            raise ShortCiphertext(
                f'Record from {self.addr} cut short: {len(e.partial)} of {length} bytes'
            ) from e

        self.bytes_received += FRAME_HEADER.size + length
        return self.cipher.decrypt(sealed)

    async def encode_copy(self, src: asyncio.StreamReader):
        self.logger.debug(f'Encrypting stream into {self.addr}')
        while True:
            data = await src.read(BUFFER_SIZE)
            if not data:
                self.logger.debug(f'Plain stream for {self.addr} reached EOF')
                return
            await self.encode_write(data)

    async def decode_copy(self, dst: asyncio.StreamWriter):
        self.logger.debug(f'Decrypting stream from {self.addr}')
        while True:
            data = await self.decode_read()
            if not data:
                self.logger.debug(f'Encrypted stream from {self.addr} reached EOF')
                return
            dst.write(data)
            await dst.drain()

    async def close(self):
        if self.closed:
            return
        self.closed = True
        await close_writer(self.writer)
        self.logger.debug(
            f'Closed secure connection {self.addr} (sent {self.bytes_sent}, received {self.bytes_received} bytes)'
        )

    def __str__(self):
        return f'{self.__class__.__name__}(addr="{self.addr}", cipher={self.cipher})'


async def close_writer(writer: asyncio.StreamWriter):
    if writer.is_closing():
        return
    writer.close()
    try:
        await writer.wait_closed()
    except (ConnectionError, OSError):
        pass


async def dial_server(host: str, port: int, cipher: Cipher, timeout: Optional[float] = None,
                      logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None) -> SecureSocket:
    logger = logging.getLogger(__name__) if logger is None else logger
    logger.debug(f'Dialing remote server {host}:{port}')
    try:
        reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError) as e:
        raise DialFailed(f'Can not connect to remote server {host}:{port} => {e!r}') from e

    logger.debug(f'Connected to remote server {host}:{port}')
    return SecureSocket(reader, writer, cipher, logger=logger)
