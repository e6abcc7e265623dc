#!/usr/bin/env python3
"""
测试用的脚本化 SOCKS5 代理

按顺序对每个收到的请求包回复预先设定的应答，并记录收到的所有请求包。
脚本执行完毕后默认进入回显模式，模拟已建立隧道的目标端点。

使用示例:
    server = FakeSocks5Server([b'\\x05\\x00', CONNECT_OK])
    await server.start()
    reader, writer = await connect(server.endpoint(), ('example.com', 80))
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from socks5_tunnel.config import Credentials, ServerEndpoint

# VER | REP | RSV | ATYP=IPv4 | 0.0.0.0 | 0
CONNECT_OK = bytes([0x05, 0x00, 0x00, 0x01, 0, 0, 0, 0, 0, 0])
GREETING_NO_AUTH = bytes([0x05, 0x00])
GREETING_PASSWORD = bytes([0x05, 0x02])
AUTH_OK = bytes([0x01, 0x00])


def connect_reply(code: int) -> bytes:
    return bytes([0x05, code, 0x00, 0x01, 0, 0, 0, 0, 0, 0])


async def echo(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
    while True:
        data = await reader.read(4096)
        if not data:
            break
        writer.write(data)
        await writer.drain()


class FakeSocks5Server:
    """
    脚本化的 SOCKS5 代理

    Attributes:
        replies: 依次回复的应答包，None 表示收到该请求后直接关闭连接
        requests: 收到的请求包
        client_closed: 客户端关闭连接时置位
    """

    def __init__(
        self,
        replies: List[Optional[bytes]],
        on_established: Optional[Callable[[asyncio.StreamReader, asyncio.StreamWriter], Awaitable[None]]] = echo,
        silent: bool = False
    ):
        self.replies = list(replies)
        self.on_established = on_established
        self.silent = silent
        self.requests: List[bytes] = []
        self.connections = 0
        self.client_closed = asyncio.Event()
        self._server: Optional[asyncio.AbstractServer] = None
        self.port = 0

    async def start(self):
        self._server = await asyncio.start_server(self._handle, '127.0.0.1', 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def stop(self):
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    def endpoint(self, credentials: Optional[Credentials] = None, **kwargs) -> ServerEndpoint:
        return ServerEndpoint('127.0.0.1', self.port, credentials=credentials, **kwargs)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.connections += 1
        try:
            if self.silent:
                await reader.read()
                return

            for reply in self.replies:
                data = await reader.read(4096)
                if not data:
                    return
                self.requests.append(data)
                if reply is None:
                    return
                writer.write(reply)
                await writer.drain()

            if self.on_established is not None:
                await self.on_established(reader, writer)
            else:
                await reader.read()
        except ConnectionError:
            pass
        finally:
            self.client_closed.set()
            writer.close()
