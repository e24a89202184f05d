import asyncio

import pytest

from minisocks.ciphers import AES_GCM, Table
from minisocks.exceptions import AuthenticationFailed, DialFailed, ShortCiphertext
from minisocks.password import generate_key, generate_table
from minisocks.secure_socket import FRAME_HEADER, MAX_FRAME_PAYLOAD, SecureSocket, dial_server

from .conftest import WAIT, open_pair, rotation_table


def test_greeting_survives_the_channel(cipher):
    async def scenario():
        client_reader, client_writer, server_reader, server_writer = await open_pair()
        client = SecureSocket(client_reader, client_writer, cipher)
        server = SecureSocket(server_reader, server_writer, cipher)

        assert await client.encode_write(b'\x05\x01\x00') == 3
        assert await asyncio.wait_for(server.decode_read(), WAIT) == b'\x05\x01\x00'

        await server.encode_write(b'\x05\x00')
        assert await asyncio.wait_for(client.decode_read(), WAIT) == b'\x05\x00'

        await client.close()
        await server.close()

    asyncio.run(scenario())


def test_table_bytes_on_the_wire_are_substituted():
    async def scenario():
        cipher = Table(rotation_table(1))
        client_reader, client_writer, server_reader, server_writer = await open_pair()
        client = SecureSocket(client_reader, client_writer, cipher)

        await client.encode_write(b'\x05\x01\x00')
        raw = await asyncio.wait_for(server_reader.readexactly(3), WAIT)
        assert raw == b'\x06\x02\x01'

        await client.close()
        server_writer.close()

    asyncio.run(scenario())


def test_framed_record_layout():
    async def scenario():
        cipher = AES_GCM(generate_key(16))
        client_reader, client_writer, server_reader, server_writer = await open_pair()
        client = SecureSocket(client_reader, client_writer, cipher)

        await client.encode_write(b'\x05\x00')
        header = await asyncio.wait_for(server_reader.readexactly(FRAME_HEADER.size), WAIT)
        length, = FRAME_HEADER.unpack(header)
        assert length == 2 + cipher.overhead_length
        sealed = await server_reader.readexactly(length)
        assert cipher.decrypt(sealed) == b'\x05\x00'
        assert client.bytes_sent == FRAME_HEADER.size + length

        await client.close()
        server_writer.close()

    asyncio.run(scenario())


def test_large_payload_is_split_into_records():
    async def scenario():
        cipher = AES_GCM(generate_key(32))
        client_reader, client_writer, server_reader, server_writer = await open_pair()
        client = SecureSocket(client_reader, client_writer, cipher)
        server = SecureSocket(server_reader, server_writer, cipher)

        payload = bytes(range(256)) * (MAX_FRAME_PAYLOAD // 128 + 3)
        assert await client.encode_write(payload) == len(payload)

        received = b''
        while len(received) < len(payload):
            chunk = await asyncio.wait_for(server.decode_read(), WAIT)
            assert 0 < len(chunk) <= MAX_FRAME_PAYLOAD
            received += chunk
        assert received == payload

        await client.close()
        await server.close()

    asyncio.run(scenario())


def test_decode_read_returns_empty_on_eof(cipher):
    async def scenario():
        client_reader, client_writer, server_reader, server_writer = await open_pair()
        server = SecureSocket(server_reader, server_writer, cipher)

        client_writer.close()
        assert await asyncio.wait_for(server.decode_read(), WAIT) == b''
        await server.close()

    asyncio.run(scenario())


def test_truncated_record_raises_short_ciphertext():
    async def scenario():
        cipher = AES_GCM(generate_key(16))
        client_reader, client_writer, server_reader, server_writer = await open_pair()
        server = SecureSocket(server_reader, server_writer, cipher)

        client_writer.write(FRAME_HEADER.pack(100) + b'\x00' * 10)
        await client_writer.drain()
        client_writer.close()

        with pytest.raises(ShortCiphertext):
            await asyncio.wait_for(server.decode_read(), WAIT)
        await server.close()

    asyncio.run(scenario())


def test_copy_loops_relay_and_stop_on_eof(cipher):
    async def scenario():
        # plain side: app_writer -> plain_reader, tunnel side: secure_a <-> secure_b
        app_reader, app_writer, plain_reader, plain_writer = await open_pair()
        a_reader, a_writer, b_reader, b_writer = await open_pair()
        sink_reader, sink_writer, out_reader, out_writer = await open_pair()
        secure_a = SecureSocket(a_reader, a_writer, cipher)
        secure_b = SecureSocket(b_reader, b_writer, cipher)

        encode = asyncio.create_task(secure_a.encode_copy(plain_reader))
        decode = asyncio.create_task(secure_b.decode_copy(out_writer))

        message = b'GET / HTTP/1.1\r\n\r\n' * 200
        app_writer.write(message)
        await app_writer.drain()
        app_writer.close()

        await asyncio.wait_for(encode, WAIT)
        await secure_a.close()
        await asyncio.wait_for(decode, WAIT)
        out_writer.close()

        assert await asyncio.wait_for(sink_reader.read(), WAIT) == message

        for writer in (plain_writer, sink_writer):
            writer.close()
        await secure_b.close()

    asyncio.run(scenario())


def test_decode_copy_aborts_on_tampering():
    async def scenario():
        client_reader, client_writer, server_reader, server_writer = await open_pair()
        sink_reader, sink_writer, out_reader, out_writer = await open_pair()
        server = SecureSocket(server_reader, server_writer, AES_GCM(generate_key(16)))

        forged = AES_GCM(generate_key(16)).encrypt(b'data')
        client_writer.write(FRAME_HEADER.pack(len(forged)) + forged)
        await client_writer.drain()

        with pytest.raises(AuthenticationFailed):
            await asyncio.wait_for(server.decode_copy(out_writer), WAIT)

        for writer in (client_writer, sink_writer, out_writer):
            writer.close()
        await server.close()

    asyncio.run(scenario())


def test_close_is_idempotent():
    async def scenario():
        client_reader, client_writer, server_reader, server_writer = await open_pair()
        channel = SecureSocket(client_reader, client_writer, Table(generate_table()))
        await channel.close()
        await channel.close()
        assert channel.closed
        server_writer.close()

    asyncio.run(scenario())


def test_dial_server_failure():
    async def scenario():
        server = await asyncio.start_server(lambda r, w: None, '127.0.0.1', 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()

        with pytest.raises(DialFailed):
            await dial_server('127.0.0.1', port, Table(generate_table()), timeout=WAIT)

    asyncio.run(scenario())


def test_write_after_transport_closed_raises(cipher):
    async def scenario():
        client_reader, client_writer, server_reader, server_writer = await open_pair()
        channel = SecureSocket(client_reader, client_writer, cipher)

        client_writer.close()
        await client_writer.wait_closed()
        with pytest.raises(ConnectionError):
            await channel.encode_write(b'\x05\x01\x00')
        server_writer.close()

    asyncio.run(scenario())
