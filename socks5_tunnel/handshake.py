"""
SOCKS5 握手状态机

本模块在已建立的代理连接上执行 SOCKS5 客户端握手:

    GREETING -> (AUTH_REQUIRED ->) CONNECTING -> ESTABLISHED

任一阶段失败都进入 REJECTED 终止状态并抛出异常，不做内部重试。
每个阶段只有一次写入和一次读取，消息格式:

    问候请求:   VER | NMETHODS | METHODS
    问候应答:   VER | METHOD
    认证请求:   0x01 | ULEN | UNAME | PLEN | PASSWD
    认证应答:   0x01 | STATUS
    连接请求:   VER | CMD | RSV | ATYP | DST.ADDR | DST.PORT
    连接应答:   VER | REP | RSV | ATYP | BND.ADDR | BND.PORT
"""

import enum
import logging
import struct
from typing import Optional

from .address import TargetSpec, encode_address
from .config import Credentials, HandshakeConfig
from .constants import CONNECT_REPLY_MIN_SIZE, RESERVED, AuthMethod, Command, ReplyCode, reply_name
from .errors import (
    AuthRejected,
    AuthRequired,
    NoAcceptableAuthMethod,
    ProtocolError,
    ProxyRejected,
    Socks5Error,
)
from .framer import PacketFramer

logger = logging.getLogger('socks5-tunnel-handshake')


class HandshakeState(enum.Enum):
    """握手状态"""
    GREETING = "greeting"
    AUTH_REQUIRED = "auth"
    CONNECTING = "connecting"
    ESTABLISHED = "established"
    REJECTED = "rejected"


class Socks5Handshake:
    """
    SOCKS5 客户端握手

    连接请求在构造时即完成编码，因此非法目标地址会在任何写入之前失败。

    Attributes:
        target: 目标端点
        credentials: 用户名/密码凭据（可选）
        config: 握手参数
        state: 当前状态
    """

    def __init__(
        self,
        target: TargetSpec,
        credentials: Optional[Credentials] = None,
        config: Optional[HandshakeConfig] = None
    ):
        self.target = target
        self.credentials = credentials
        self.config = config or HandshakeConfig()
        self.state = HandshakeState.GREETING

        self._greeting = struct.pack(
            f'>BB{len(self.config.offered_methods)}B',
            self.config.version,
            len(self.config.offered_methods),
            *self.config.offered_methods
        )
        self._connect_request = (
            struct.pack('>BBB', self.config.version, Command.CONNECT, RESERVED)
            + encode_address(target)
        )

    async def run(self, framer: PacketFramer):
        """
        执行完整的握手流程

        Args:
            framer: 包装代理连接的分帧器

        Raises:
            Socks5Error: 任一阶段失败
        """
        try:
            method = await self._stage_greeting(framer)

            if method == AuthMethod.NONE:
                logger.debug("代理不要求认证")
            elif method == AuthMethod.USERNAME_PASSWORD:
                self.state = HandshakeState.AUTH_REQUIRED
                await self._stage_auth(framer)
            else:
                raise NoAcceptableAuthMethod(
                    "No authentication method accepted by remote server",
                    stage=self.state.value
                )

            self.state = HandshakeState.CONNECTING
            await self._stage_connect(framer)

            self.state = HandshakeState.ESTABLISHED
            logger.info(f"隧道已建立: {self.target}")
        except Socks5Error as e:
            if e.stage is None:
                e.stage = self.state.value
            self.state = HandshakeState.REJECTED
            logger.warning(f"握手失败: {e}")
            raise

    async def _stage_greeting(self, framer: PacketFramer) -> int:
        framer.write(self._greeting)

        packet = await framer.request_packet()

        if len(packet) != 2:
            raise ProtocolError(
                "Invalid SOCKS5 protocol due to incorrect SERVER_CHOICE packet size"
            )
        if packet[0] != self.config.version:
            raise ProtocolError(
                "Invalid SOCKS5 protocol due to invalid version in SERVER_CHOICE packet"
            )

        logger.debug(f"代理选择认证方法: 0x{packet[1]:02X}")
        return packet[1]

    async def _stage_auth(self, framer: PacketFramer):
        if self.credentials is None:
            raise AuthRequired("SOCKS5 server requires authentication")

        username = self.credentials.username.encode('utf-8')
        password = self.credentials.password.encode('utf-8')
        framer.write(
            struct.pack('>BB', self.config.auth_version, len(username)) + username
            + struct.pack('>B', len(password)) + password
        )
        logger.debug(f"发送用户名/密码认证: username={self.credentials.username}")

        packet = await framer.request_packet()

        if len(packet) != 2:
            raise ProtocolError(
                "Invalid SOCKS5 protocol due to incorrect AUTH_RESPONSE packet size"
            )
        if packet[0] != self.config.auth_version:
            raise ProtocolError(
                "Invalid SOCKS5 protocol due to invalid version in AUTH_RESPONSE packet"
            )
        if packet[1] != 0x00:
            raise AuthRejected("SOCKS5 server rejected authentication")

        logger.debug("认证成功")

    async def _stage_connect(self, framer: PacketFramer):
        framer.write(self._connect_request)
        logger.debug(f"发送 CONNECT 请求: {self.target}")

        # 绑定地址只要求最小长度，不做校验
        packet = await framer.request_packet(final_read=True)

        if len(packet) < CONNECT_REPLY_MIN_SIZE:
            raise ProtocolError("Invalid SOCKS5 protocol due to invalid packet length")
        if packet[0] != self.config.version:
            raise ProtocolError("Invalid SOCKS5 protocol due to invalid version")
        if packet[1] != ReplyCode.SUCCEEDED:
            logger.debug(f"CONNECT 被拒绝: {reply_name(packet[1])}")
            raise ProxyRejected(packet[1])
