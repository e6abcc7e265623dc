"""
SOCKS5 协议常量模块

本模块定义了 SOCKS5 客户端握手所需的全部协议常量，包括：
- 协议版本号和用户名/密码子协商版本号
- 认证方法、命令、地址类型和应答码枚举
- 默认端口和默认超时

所有多字节字段使用大端序（网络字节序）。
"""

from enum import IntEnum


# ============================================================================
# 协议常量
# ============================================================================

SOCKS5_VERSION = 0x05  # SOCKS 协议版本
AUTH_PASSWORD_VERSION = 0x01  # 用户名/密码子协商版本（RFC 1929）
RESERVED = 0x00  # 保留字段

DEFAULT_PORT = 1080  # SOCKS5 代理默认端口
DEFAULT_TIMEOUT = 30.0  # 默认超时（秒）

MAX_FIELD_LENGTH = 255  # 单字节长度字段的最大值
CONNECT_REPLY_MIN_SIZE = 5  # CONNECT 应答的最小合法长度


# ============================================================================
# 枚举
# ============================================================================

class AuthMethod(IntEnum):
    """认证方法"""
    NONE = 0x00
    USERNAME_PASSWORD = 0x02
    NO_ACCEPTABLE_METHODS = 0xFF  # 仅由服务器返回


class Command(IntEnum):
    """请求命令，只支持 CONNECT"""
    CONNECT = 0x01


class AddressType(IntEnum):
    """目标地址类型"""
    IPV4 = 0x01
    DOMAIN = 0x03
    IPV6 = 0x04


class ReplyCode(IntEnum):
    """
    CONNECT 应答码

    0x00 表示成功，0x01 ~ 0x08 为 RFC 1928 定义的失败原因。
    """
    SUCCEEDED = 0x00
    GENERAL_SOCKS_SERVER_FAILURE = 0x01
    CONNECTION_NOT_ALLOWED_BY_RULE_SET = 0x02
    NETWORK_UNREACHABLE = 0x03
    HOST_UNREACHABLE = 0x04
    CONNECTION_REFUSED = 0x05
    TTL_EXPIRED = 0x06
    COMMAND_NOT_SUPPORTED = 0x07
    ADDRESS_TYPE_NOT_SUPPORTED = 0x08


REPLY_MESSAGES = {
    ReplyCode.GENERAL_SOCKS_SERVER_FAILURE: "general SOCKS server failure",
    ReplyCode.CONNECTION_NOT_ALLOWED_BY_RULE_SET: "connection not allowed by ruleset",
    ReplyCode.NETWORK_UNREACHABLE: "Network unreachable",
    ReplyCode.HOST_UNREACHABLE: "Host unreachable",
    ReplyCode.CONNECTION_REFUSED: "Connection refused",
    ReplyCode.TTL_EXPIRED: "TTL expired",
    ReplyCode.COMMAND_NOT_SUPPORTED: "Command not supported",
    ReplyCode.ADDRESS_TYPE_NOT_SUPPORTED: "Address type not supported",
}


def reply_name(code: int) -> str:
    """
    获取应答码的符号名称

    Args:
        code: 应答码

    Returns:
        str: 符号名称，未定义的应答码返回 UNKNOWN_0xNN
    """
    try:
        return ReplyCode(code).name
    except ValueError:
        return f"UNKNOWN_0x{code:02X}"
