from typing import *
import asyncio
import enum
import logging
import socket

from .exceptions import (
    DialFailed, HandshakeTimeout, MalformedRequest, ResolutionFailed,
    UnsupportedAddressType, UnsupportedCommand, UnsupportedVersion,
)
from .secure_socket import SecureSocket, close_writer


'''
SOCKS5 HANDSHAKE (remote agent side), every message travels through the agent's cipher:

▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬
[ CLIENT ]                                  [ SERVER ]
▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬
1. VER NMETHODS METHODS →                   → server_get_methods      AWAITING_GREETING
                      ← 05 00               ← (no authentication, always)
2. VER CMD RSV ATYP ADDR PORT →             → server_handle_command   AWAITING_REQUEST
                                              resolve + open_connection DIALING
                      ← 05 00 00 01 0*6     ← server_make_reply       RELAYING
▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬▬

Only CONNECT is served. The reply never echoes the bound address.
'''


SOCKS_VERSION = 5
CMD_CONNECT = 0x01

ATYP_IPV4 = 0x01
ATYP_DOMAIN = 0x03
ATYP_IPV6 = 0x04

MIN_REQUEST_LENGTH = 7
NO_AUTH_REPLY = bytes([SOCKS_VERSION, 0x00])
SUCCESS_REPLY = bytes([SOCKS_VERSION, 0x00, 0x00, ATYP_IPV4, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])

DEFAULT_UPSTREAM_TIMEOUT = 30


class HandshakeState(enum.Enum):
    AWAITING_GREETING = 'awaiting_greeting'
    AWAITING_REQUEST = 'awaiting_request'
    DIALING = 'dialing'
    RELAYING = 'relaying'
    FAILED = 'failed'


class Socks5Request:
    def __init__(self, command: int, address_type: int, host: str, port: int, domain: Optional[str] = None,
                 payload: bytes = b''):
        self.command = command
        self.address_type = address_type
        self.host = host
        self.port = port
        self.domain = domain
        self.payload = payload

    @property
    def addr(self) -> str:
        host = f'[{self.host}]' if ':' in self.host else self.host
        return f'{host}:{self.port}'

    def __str__(self):
        domain = f', domain="{self.domain}"' if self.domain else ''
        return f'{self.__class__.__name__}(addr="{self.addr}"{domain})'


def parse_request(data: bytes) -> Socks5Request:
    if len(data) < MIN_REQUEST_LENGTH:
        raise MalformedRequest(f'Request must be at least {MIN_REQUEST_LENGTH} bytes, got {len(data)}')

    version, cmd, rsv, address_type = data[:4]
    if version != SOCKS_VERSION:
        raise UnsupportedVersion(f'Unsupported SOCKS version: {version}')
    if cmd != CMD_CONNECT:
        raise UnsupportedCommand(f'Unsupported command: 0x{cmd:02x}, only CONNECT (0x01) is served')

    domain = None
    match address_type:
        case 0x01:  # IPv4
            offset = 4 + 4
            _require(data, offset + 2, 'IPv4')
            host = socket.inet_ntop(socket.AF_INET, data[4:offset])
        case 0x03:  # domain
            length = data[4]
            offset = 5 + length
            _require(data, offset + 2, 'domain')
            if length == 0:
                raise MalformedRequest('Empty domain name in request')
            try:
                domain = data[5:offset].decode('ascii')
            except UnicodeDecodeError as e:
                raise MalformedRequest(f'Domain name is not ASCII: {data[5:offset]!r}') from e
            host = domain
        case 0x04:  # IPv6
            offset = 4 + 16
            _require(data, offset + 2, 'IPv6')
            host = socket.inet_ntop(socket.AF_INET6, data[4:offset])
        case _:
            raise UnsupportedAddressType(f'Invalid address type: 0x{address_type:02x}, it must be 0x01/0x03/0x04')

    port = int.from_bytes(data[offset:offset + 2], byteorder='big')
    return Socks5Request(cmd, address_type, host, port, domain=domain, payload=bytes(data[offset + 2:]))


def _require(data: bytes, length: int, kind: str):
    if len(data) < length:
        raise MalformedRequest(f'Truncated {kind} request: expected {length} bytes, got {len(data)}')


class Socks5Handshake:
    def __init__(self, channel: SecureSocket, dial_timeout: Optional[float] = None,
                 upstream_timeout: Optional[float] = DEFAULT_UPSTREAM_TIMEOUT,
                 logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None):
        self.channel = channel
        self.dial_timeout = dial_timeout
        self.upstream_timeout = upstream_timeout
        self.logger = logging.getLogger(__name__) if logger is None else logger

        self.state = HandshakeState.AWAITING_GREETING
        self.request: Optional[Socks5Request] = None
        self.deadline: Optional[float] = None

    async def server_get_methods(self):
        data = await self.channel.decode_read()
        if not data:
            raise MalformedRequest('Connection closed before greeting')
        if data[0] != SOCKS_VERSION:
            raise UnsupportedVersion(f'Unsupported SOCKS version: {data[0]}')

        self.logger.debug(f'Greeting accepted, offered methods: {list(data[2:])}')
        await self.channel.encode_write(NO_AUTH_REPLY)
        self.state = HandshakeState.AWAITING_REQUEST

    async def server_handle_command(self) -> Socks5Request:
        data = await self.channel.decode_read()
        request = parse_request(data)
        if request.address_type == ATYP_DOMAIN:
            request.host = await self.resolve(request.domain, request.port)

        self.request = request
        self.state = HandshakeState.DIALING
        return request

    async def resolve(self, domain: str, port: int) -> str:
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(domain, port, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as e:
            raise ResolutionFailed(f'Can not resolve {domain} => {e}') from e

        for family, *_rest, sockaddr in infos:
            if family in (socket.AF_INET, socket.AF_INET6):
                self.logger.debug(f'Resolved {domain} to {sockaddr[0]}')
                return sockaddr[0]
        raise ResolutionFailed(f'No IPv4/IPv6 address found for {domain}')

    async def server_make_reply(self, request: Socks5Request) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        self.logger.debug(f'Establishing TCP connection to {request.addr}...')
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(request.host, request.port), timeout=self.dial_timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise DialFailed(f'Failed to connect to {request.addr} => {e!r}') from e

        try:
            await self.channel.encode_write(SUCCESS_REPLY)
            if request.payload:
                writer.write(request.payload)
                await writer.drain()
        except BaseException:
            await close_writer(writer)
            raise

        if self.upstream_timeout is not None:
            self.deadline = asyncio.get_running_loop().time() + self.upstream_timeout
        self.state = HandshakeState.RELAYING
        return reader, writer

    async def read_request(self) -> Socks5Request:
        await self.server_get_methods()
        return await self.server_handle_command()

    async def run(self) -> Tuple[Socks5Request, asyncio.StreamReader, asyncio.StreamWriter]:
        try:
            try:
                request = await asyncio.wait_for(self.read_request(), timeout=self.dial_timeout)
            except asyncio.TimeoutError:
                raise HandshakeTimeout(
                    f'No SOCKS5 request within {self.dial_timeout}s, state {self.state.name}'
                ) from None
            reader, writer = await self.server_make_reply(request)
        except BaseException:
            self.state = HandshakeState.FAILED
            raise

        self.logger.info(f'Connected to {request.addr}' + (f' ({request.domain})' if request.domain else ''))
        return request, reader, writer

    def __str__(self):
        return f'{self.__class__.__name__}(state={self.state.name}, request={self.request})'
