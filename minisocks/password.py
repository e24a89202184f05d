"""Key material for the tunnel ciphers.

The substitution cipher is keyed by a 256 byte table: a permutation of all byte
values with no fixed points, so that no byte ever travels unchanged. It is
stored base64 encoded, the same way the password is kept in the config file.
The sealing ciphers are keyed by 16, 24 or 32 random bytes stored as hex.
"""

from typing import *
import base64
import binascii
import logging
import random

from Cryptodome.Random import get_random_bytes

from .exceptions import InvalidKey, InvalidKeySize


TABLE_LENGTH = 256
KEY_SIZES = (16, 24, 32)
MAX_ATTEMPTS = 1000

logger = logging.getLogger(__name__)
_random = random.SystemRandom()


def is_derangement(table: bytes) -> bool:
    return all(value != index for index, value in enumerate(table))


def generate_table() -> bytes:
    values = list(range(TABLE_LENGTH))
    for attempt in range(1, MAX_ATTEMPTS + 1):
        _random.shuffle(values)
        if is_derangement(values):
            logger.debug(f'Generated substitution table after {attempt} attempt(s)')
            return bytes(values)

    raise RuntimeError(f'Could not draw a derangement in {MAX_ATTEMPTS} attempts')


def inverse_table(table: bytes) -> bytes:
    inverse = bytearray(TABLE_LENGTH)
    for index, value in enumerate(table):
        inverse[value] = index
    return bytes(inverse)


def validate_table(table: bytes) -> bytes:
    if len(table) != TABLE_LENGTH:
        raise InvalidKey(f'Substitution table must be {TABLE_LENGTH} bytes, got {len(table)}')
    if len(set(table)) != TABLE_LENGTH:
        raise InvalidKey('Substitution table is not a permutation of 0..255')
    return bytes(table)


def dump_table(table: bytes) -> str:
    return base64.b64encode(validate_table(table)).decode()


def parse_table(text: str) -> bytes:
    """
    Decodes a serialized substitution table.

    Accepts the base64 form written by `dump_table` as well as a 512 character hex string. Surrounding whitespace
    is ignored. Anything that does not decode to exactly 256 distinct bytes raises InvalidKey.
    """
    text = text.strip()
    try:
        if len(text) == TABLE_LENGTH * 2:
            table = bytes.fromhex(text)
        else:
            table = base64.b64decode(text, validate=True)
    except (ValueError, binascii.Error) as e:
        raise InvalidKey(f'Substitution table is not valid base64 or hex: {e}') from e

    return validate_table(table)


def generate_key(size: int = 32) -> bytes:
    if size not in KEY_SIZES:
        raise InvalidKeySize(f'Key size must be one of {KEY_SIZES}, got {size}')
    return get_random_bytes(size)


def parse_key(text: str) -> bytes:
    try:
        key = bytes.fromhex(text.strip())
    except ValueError as e:
        raise InvalidKey(f'Key is not a valid hex string: {e}') from e

    if len(key) not in KEY_SIZES:
        raise InvalidKeySize(f'Key size must be one of {KEY_SIZES}, got {len(key)}')
    return key


def generate_secret(cipher_name: str = 'table') -> str:
    if cipher_name == 'table':
        return dump_table(generate_table())
    if cipher_name == 'chacha20-poly1305':
        return generate_key(32).hex()
    if cipher_name == 'aes-gcm':
        return generate_key(32).hex()
    raise ValueError(f'Unknown cipher: {cipher_name}')
