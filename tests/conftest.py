import asyncio

import pytest

from minisocks.ciphers import AES_GCM, ChaCha20_Poly1305, Table
from minisocks.password import generate_key, generate_table


CIPHER_NAMES = ['table', 'aes-gcm', 'chacha20-poly1305']
WAIT = 5


def make_cipher(name: str):
    if name == 'table':
        return Table(generate_table())
    if name == 'aes-gcm':
        return AES_GCM(generate_key(16))
    return ChaCha20_Poly1305(generate_key(32))


def rotation_table(shift: int) -> bytes:
    return bytes((i + shift) % 256 for i in range(256))


@pytest.fixture(params=CIPHER_NAMES)
def cipher(request):
    return make_cipher(request.param)


async def open_pair():
    """Returns a connected (client_reader, client_writer, server_reader, server_writer) over loopback."""
    accepted = asyncio.get_running_loop().create_future()

    async def on_accept(reader, writer):
        accepted.set_result((reader, writer))

    server = await asyncio.start_server(on_accept, '127.0.0.1', 0)
    port = server.sockets[0].getsockname()[1]
    client_reader, client_writer = await asyncio.open_connection('127.0.0.1', port)
    server_reader, server_writer = await asyncio.wait_for(accepted, WAIT)
    server.close()
    return client_reader, client_writer, server_reader, server_writer


async def start_echo_server():
    async def echo(reader, writer):
        try:
            while True:
                data = await reader.read(4096)
                if not data:
                    break
                writer.write(data)
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(echo, '127.0.0.1', 0)
    return server, server.sockets[0].getsockname()[1]
