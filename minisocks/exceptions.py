"""Exceptions raised by the tunnel engine.

Every failure is scoped to one session: the agent that accepted the
connection logs it and keeps serving. Cipher errors are kept apart from
protocol and I/O errors because they usually mean a wrong key or tampering.
"""


class MinisocksError(Exception):
    """Base exception for minisocks errors."""


class ConfigError(MinisocksError):
    """Raised when the configuration file cannot be parsed."""


class CipherError(MinisocksError):
    """Base exception for cipher failures."""


class InvalidKey(CipherError):
    """Raised when a serialized substitution table is not a valid permutation."""


class InvalidKeySize(CipherError):
    """Raised when an AEAD key is not 16, 24 or 32 bytes long."""


class ShortCiphertext(CipherError):
    """Raised when a ciphertext is too short to carry its nonce and tag."""


class AuthenticationFailed(CipherError):
    """Raised when an AEAD ciphertext fails verification."""


class ProtocolError(MinisocksError, ConnectionError):
    """Base exception for SOCKS5 protocol violations."""


class UnsupportedVersion(ProtocolError):
    """Raised when the SOCKS version byte is not 5."""


class UnsupportedCommand(ProtocolError):
    """Raised when the request command is anything but CONNECT."""


class UnsupportedAddressType(ProtocolError):
    """Raised when ATYP is not IPv4, domain or IPv6."""


class MalformedRequest(ProtocolError):
    """Raised when a request is shorter than its declared fields."""


class ResolutionFailed(MinisocksError, ConnectionError):
    """Raised when a destination domain cannot be resolved."""


class DialFailed(MinisocksError, ConnectionError):
    """Raised when a TCP connection to the destination or server cannot be opened."""


class HandshakeTimeout(ProtocolError):
    """Raised when the peer does not finish the greeting and request in time."""
