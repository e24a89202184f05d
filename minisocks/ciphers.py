from typing import *
from Cryptodome.Cipher import AES
from Cryptodome.Cipher import ChaCha20_Poly1305 as _ChaCha20_Poly1305
from Cryptodome.Random import get_random_bytes

from .base_cipher import Cipher
from .exceptions import AuthenticationFailed, InvalidKeySize, ShortCiphertext
from .password import KEY_SIZES, inverse_table, parse_key, parse_table, validate_table


class Table(Cipher):
    name = 'table'

    def __init__(self, table: bytes):
        self.table = validate_table(table)
        self.inverse = inverse_table(self.table)

    @classmethod
    def from_secret(cls, secret: str) -> 'Table':
        return cls(parse_table(secret))

    def encrypt(self, data: bytes) -> bytes:
        return bytes(data).translate(self.table)

    def decrypt(self, data: bytes) -> bytes:
        return bytes(data).translate(self.inverse)


class AEADCipher(Cipher):
    framed = True
    nonce_length = 12
    tag_length = 16
    key_sizes = KEY_SIZES

    def __init__(self, key: bytes):
        if len(key) not in self.key_sizes:
            raise InvalidKeySize(
                f'{self.__class__.__name__} key must be one of {self.key_sizes} bytes, got {len(key)}'
            )
        self.key = bytes(key)
        self.overhead_length = self.nonce_length + self.tag_length

    @classmethod
    def from_secret(cls, secret: str) -> 'AEADCipher':
        return cls(parse_key(secret))

    def _new(self, nonce: bytes):
        raise NotImplementedError("Override this method in subclass")

    def encrypt(self, data: bytes) -> bytes:
        nonce = get_random_bytes(self.nonce_length)
        ciphertext, tag = self._new(nonce).encrypt_and_digest(bytes(data))
        return nonce + ciphertext + tag

    def decrypt(self, data: bytes) -> bytes:
        if len(data) < self.overhead_length:
            raise ShortCiphertext(
                f'{self.__class__.__name__} ciphertext must be at least {self.overhead_length} bytes, got {len(data)}'
            )

        data = bytes(data)
        nonce = data[:self.nonce_length]
        ciphertext, tag = data[self.nonce_length:-self.tag_length], data[-self.tag_length:]
        try:
            return self._new(nonce).decrypt_and_verify(ciphertext, tag)
        except ValueError as e:
            raise AuthenticationFailed(f'{self.__class__.__name__} failed to authenticate ciphertext: {e}') from e

    def __str__(self):
        return f'{self.__class__.__name__}(key_bits={len(self.key) * 8})'


class AES_GCM(AEADCipher):
    name = 'aes-gcm'

    def _new(self, nonce: bytes):
        return AES.new(self.key, AES.MODE_GCM, nonce=nonce, mac_len=self.tag_length)


class ChaCha20_Poly1305(AEADCipher):
    name = 'chacha20-poly1305'
    key_sizes = (32,)

    def _new(self, nonce: bytes):
        return _ChaCha20_Poly1305.new(key=self.key, nonce=nonce)


CIPHERS = {
    Table.name: Table,
    AES_GCM.name: AES_GCM,
    ChaCha20_Poly1305.name: ChaCha20_Poly1305,
}


def new_cipher(name: str, secret: str) -> Cipher:
    try:
        cipher_class = CIPHERS[name]
    except KeyError:
        raise ValueError(f'Unknown cipher: {name}, it must be one of {list(CIPHERS.keys())}')
    return cipher_class.from_secret(secret)
