"""
统一异常模型模块

功能:
- 定义 SOCKS5 客户端的异常层级结构
- 记录出错的握手阶段和原始异常
- 同时继承内置异常族，便于调用方按 ValueError / ConnectionError 捕获

异常层级:
    Socks5Error (基类)
    ├── ConfigError (配置错误, 同时是 ValueError)
    ├── DialError (连接代理失败或超时, 同时是 ConnectionError)
    ├── ConnectionClosed (读取过程中连接关闭, 同时是 ConnectionError)
    ├── IllegalState (同时存在两个未完成的读取)
    ├── InvalidTarget (目标地址编码校验失败, 同时是 ValueError)
    ├── ProtocolError (收到格式错误或意外的字节)
    ├── AuthRequired (服务器要求认证但未提供凭据)
    ├── AuthRejected (服务器拒绝用户名/密码)
    ├── NoAcceptableAuthMethod (没有可接受的认证方法)
    └── ProxyRejected (CONNECT 应答码非成功)
"""

from typing import Optional

from .constants import REPLY_MESSAGES, ReplyCode, reply_name


class Socks5Error(Exception):
    """
    基础异常类

    Attributes:
        message: 错误消息
        stage: 出错时所处的握手阶段（如有）
        cause: 原始异常（如有）
    """

    def __init__(
        self,
        message: str = "",
        *,
        stage: Optional[str] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.cause = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.stage:
            parts.append(f"(stage={self.stage})")
        if self.cause is not None:
            parts.append(f"caused by {type(self.cause).__name__}: {self.cause}")
        return " ".join(parts)


class ConfigError(Socks5Error, ValueError):
    """配置错误"""


class DialError(Socks5Error, ConnectionError):
    """无法连接到代理服务器（拒绝连接、DNS 失败或超时）"""


class ConnectionClosed(Socks5Error, ConnectionError):
    """等待数据包时传输层已关闭"""

    def __init__(self, message: str = "socket closed", **kwargs):
        super().__init__(message, **kwargs)


class IllegalState(Socks5Error):
    """上一次读取尚未完成时再次请求数据包"""


class InvalidTarget(Socks5Error, ValueError):
    """目标地址无法编码"""


class ProtocolError(Socks5Error):
    """代理返回了不符合 SOCKS5 协议的数据"""


class AuthRequired(Socks5Error):
    """服务器要求用户名/密码认证，但调用方未提供凭据"""


class AuthRejected(Socks5Error):
    """服务器拒绝了提供的用户名/密码"""


class NoAcceptableAuthMethod(Socks5Error):
    """服务器不接受客户端提供的任何认证方法"""


class ProxyRejected(Socks5Error):
    """
    代理拒绝了 CONNECT 请求

    Attributes:
        reply_code: 原始应答码
        reply_name: 应答码的符号名称，如 CONNECTION_REFUSED
    """

    def __init__(self, reply_code: int, **kwargs):
        self.reply_code = reply_code
        self.reply_name = reply_name(reply_code)
        try:
            detail = REPLY_MESSAGES.get(ReplyCode(reply_code), "")
        except ValueError:
            detail = "unassigned reply code"
        super().__init__(
            f"Failed to connect to target with error code \"{self.reply_name}\" ({detail})",
            **kwargs
        )
