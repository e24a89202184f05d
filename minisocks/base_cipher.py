from typing import *


'''
Every byte that crosses the tunnel between the local agent and the remote agent passes through a Cipher.

Two families of ciphers exist and they put different bytes on the wire:

1. Stream ciphers (framed = False) - 'encrypt' and 'decrypt' keep the length of the data. Any chunk read from the
   socket can be decoded on its own, so the channel simply reads what is available and decodes it.
2. Sealing ciphers (framed = True) - 'encrypt' adds 'overhead_length' bytes (nonce + tag) and 'decrypt' must see the
   whole sealed record at once. The channel prefixes every record with its length, so the receiving side always
   decodes complete records and works with the decrypted length only.

A Cipher instance is immutable after construction and is shared by all sessions of one agent.

Each `Cipher` subclass must implement or override:
- `encrypt(data: bytes) -> bytes`
- `decrypt(data: bytes) -> bytes` (raises a CipherError subclass when the data can not be opened)
'''


class Cipher:
    name = 'none'
    framed = False
    overhead_length = 0

    def encrypt(self, data: bytes) -> bytes:
        return bytes(data)

    def decrypt(self, data: bytes) -> bytes:
        return bytes(data)

    def __str__(self):
        return f'{self.__class__.__name__}()'
