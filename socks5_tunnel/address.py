"""
目标地址编解码模块

将目标地址序列化为 CONNECT 请求中的地址字段（ATYP + DST.ADDR + DST.PORT）:

    域名:  [0x03][长度:1][域名字节][端口:2]
    IPv4: [0x01][4 字节地址][端口:2]
    IPv6: [0x04][16 字节地址][端口:2]

本模块不做任何 I/O。每种地址类型对应一个编码函数，未指定地址类型时
依次尝试 IPv4、IPv6，最后按域名处理。
"""

import ipaddress
import struct
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, Union

from .constants import MAX_FIELD_LENGTH, AddressType
from .errors import InvalidTarget


@dataclass(frozen=True)
class TargetSpec:
    """
    目标端点

    Attributes:
        host: 目标主机（域名或 IP 字面量）
        port: 目标端口
        address_type: 地址类型，None 表示自动检测
    """
    host: str
    port: int
    address_type: Optional[AddressType] = None

    def __str__(self) -> str:
        if ':' in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


def _pack_port(port: int) -> bytes:
    if not isinstance(port, int) or isinstance(port, bool) or not 0 <= port <= 0xFFFF:
        raise InvalidTarget(f"Invalid port: {port!r}")
    return struct.pack('>H', port)


def is_ipv4(host: str) -> bool:
    try:
        ipaddress.IPv4Address(host)
    except ValueError:
        return False
    return True


def is_ipv6(host: str) -> bool:
    try:
        ipaddress.IPv6Address(host)
    except ValueError:
        return False
    return True


def expand_ipv6(host: str) -> List[int]:
    """
    将 IPv6 文本展开为 8 个 16 位分组

    唯一的 "::" 被替换为补足 8 组所需的零分组，
    例如 "2001:db8::1" -> [0x2001, 0x0db8, 0, 0, 0, 0, 0, 0x0001]。

    Args:
        host: IPv6 地址文本

    Returns:
        List[int]: 8 个分组

    Raises:
        InvalidTarget: 地址不是合法的 IPv6 字面量（包括出现两个 "::"），
                       或带有无法写入报文的作用域 ID（如 "fe80::1%eth0"）
    """
    try:
        address = ipaddress.IPv6Address(host)
    except ValueError as e:
        raise InvalidTarget(f"Invalid IPv6 address: {host!r}", cause=e) from e
    if getattr(address, 'scope_id', None):
        raise InvalidTarget(f"IPv6 scope ID cannot be encoded: {host!r}")
    packed = address.packed
    return list(struct.unpack('>8H', packed))


def encode_domain(target: TargetSpec) -> bytes:
    host_bytes = target.host.encode('utf-8')
    if not host_bytes:
        raise InvalidTarget("Empty domain name")
    if len(host_bytes) > MAX_FIELD_LENGTH:
        raise InvalidTarget(
            f"Domain name too long: {len(host_bytes)} bytes > {MAX_FIELD_LENGTH}"
        )
    return (
        struct.pack('>BB', AddressType.DOMAIN, len(host_bytes))
        + host_bytes
        + _pack_port(target.port)
    )


def encode_ipv4(target: TargetSpec) -> bytes:
    try:
        packed = ipaddress.IPv4Address(target.host).packed
    except ValueError as e:
        raise InvalidTarget(f"Invalid IPv4 address: {target.host!r}", cause=e) from e
    return struct.pack('>B', AddressType.IPV4) + packed + _pack_port(target.port)


def encode_ipv6(target: TargetSpec) -> bytes:
    groups = expand_ipv6(target.host)
    return (
        struct.pack('>B', AddressType.IPV6)
        + struct.pack('>8H', *groups)
        + _pack_port(target.port)
    )


_ENCODERS: Dict[AddressType, Callable[[TargetSpec], bytes]] = {
    AddressType.DOMAIN: encode_domain,
    AddressType.IPV4: encode_ipv4,
    AddressType.IPV6: encode_ipv6,
}


def detect_address_type(host: str) -> AddressType:
    if is_ipv4(host):
        return AddressType.IPV4
    if is_ipv6(host):
        return AddressType.IPV6
    return AddressType.DOMAIN


def encode_address(target: TargetSpec) -> bytes:
    """
    编码 CONNECT 请求的地址字段

    显式指定的地址类型直接选择对应的编码函数（仍会校验字面量）；
    未指定或无法识别的地址类型按 IPv4 -> IPv6 -> 域名 的顺序自动检测。

    Args:
        target: 目标端点

    Returns:
        bytes: ATYP + DST.ADDR + DST.PORT

    Raises:
        InvalidTarget: 地址或端口无法编码
    """
    try:
        address_type = AddressType(target.address_type)
    except (TypeError, ValueError):
        address_type = detect_address_type(target.host)
    return _ENCODERS[address_type](target)


def decode_address(data: Union[bytes, bytearray]) -> Tuple[AddressType, str, int]:
    """
    解码地址字段（用于测试和日志，握手过程中不校验绑定地址）

    Args:
        data: 以 ATYP 开头的地址字段

    Returns:
        Tuple[AddressType, str, int]: (地址类型, 主机, 端口)

    Raises:
        InvalidTarget: 数据不足或地址类型未知
    """
    if not data:
        raise InvalidTarget("Empty address field")
    atyp = data[0]
    if atyp == AddressType.IPV4:
        end = 5
        host = str(ipaddress.IPv4Address(bytes(data[1:end]))) if len(data) >= end else None
    elif atyp == AddressType.IPV6:
        end = 17
        host = str(ipaddress.IPv6Address(bytes(data[1:end]))) if len(data) >= end else None
    elif atyp == AddressType.DOMAIN:
        end = 2 + data[1] if len(data) >= 2 else len(data) + 1
        host = bytes(data[2:end]).decode('utf-8') if len(data) >= end else None
    else:
        raise InvalidTarget(f"Unknown address type: 0x{atyp:02X}")

    if host is None or len(data) < end + 2:
        raise InvalidTarget("Truncated address field")
    port = struct.unpack('>H', bytes(data[end:end + 2]))[0]
    return AddressType(atyp), host, port
