"""
minisocks - an encrypted SOCKS5 tunnel.

minisocks-local accepts SOCKS5 clients and forwards their traffic, encrypted, to minisocks-server, which answers the
SOCKS5 handshake, dials the destination and relays the traffic back.
"""

__version__ = '0.1.0'
