"""
SOCKS5 隧道客户端包

本包通过 SOCKS5 代理（RFC 1928 / RFC 1929）建立到目标端点的 TCP 隧道，包括：
- 数据包分帧器（PacketFramer）
- 目标地址编码（domain / IPv4 / IPv6）
- 握手状态机（问候 -> 用户名/密码认证 -> CONNECT）
- 连接入口 connect()

使用示例：
    from socks5_tunnel import connect, ServerEndpoint, Credentials

    reader, writer = await connect(
        ServerEndpoint('127.0.0.1', 1080, credentials=Credentials('alice', 'secret')),
        ('example.com', 80),
    )
"""

from .address import TargetSpec, encode_address, expand_ipv6
from .client import connect
from .config import Credentials, HandshakeConfig, ServerEndpoint, parse_proxy_url
from .constants import AddressType, AuthMethod, Command, ReplyCode
from .errors import (
    AuthRejected,
    AuthRequired,
    ConfigError,
    ConnectionClosed,
    DialError,
    IllegalState,
    InvalidTarget,
    NoAcceptableAuthMethod,
    ProtocolError,
    ProxyRejected,
    Socks5Error,
)
from .framer import PacketFramer
from .handshake import HandshakeState, Socks5Handshake

__version__ = '1.0.0'

__all__ = [
    'connect',
    'ServerEndpoint',
    'Credentials',
    'TargetSpec',
    'HandshakeConfig',
    'parse_proxy_url',
    'encode_address',
    'expand_ipv6',
    'PacketFramer',
    'Socks5Handshake',
    'HandshakeState',
    'AddressType',
    'AuthMethod',
    'Command',
    'ReplyCode',
    'Socks5Error',
    'ConfigError',
    'DialError',
    'ConnectionClosed',
    'IllegalState',
    'InvalidTarget',
    'ProtocolError',
    'AuthRequired',
    'AuthRejected',
    'NoAcceptableAuthMethod',
    'ProxyRejected',
]
