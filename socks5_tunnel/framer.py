"""
数据包分帧模块

本模块把传输层异步、分块到达的字节流转换为按顺序逐个拉取的"数据包"。

约定:
- 一次 data_received 回调 = 一个数据包，不做长度前缀重组。
  这只在代理把每条握手消息一次性写出时成立，握手消息都很小，
  因此只用于握手阶段，不适用于任意大小的消息。
- 任意时刻最多只有一个未完成的读取，重复请求会立即抛出 IllegalState，
  而不是排队等待。
- 最后一次读取（final_read=True）完成后，传输层被移交给普通的
  StreamReader/StreamWriter，此后的字节不再经过分帧器。
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Optional, Tuple

from .errors import ConnectionClosed, IllegalState

logger = logging.getLogger('socks5-tunnel-framer')


class PacketFramer(asyncio.Protocol):
    """
    基于 asyncio.Protocol 的单消费者数据包队列

    状态由缓冲的数据包队列和至多一个等待中的 Future 组成。

    Attributes:
        transport: 底层传输
        streams: 移交后的 (reader, writer)，移交前为 None
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self.transport: Optional[asyncio.Transport] = None
        self.streams: Optional[Tuple[asyncio.StreamReader, asyncio.StreamWriter]] = None

        self._packets: Deque[bytes] = deque()
        self._waiter: Optional[asyncio.Future] = None
        self._final_read = False

        self._closed = False
        self._close_exc: Optional[BaseException] = None
        self._killed = False
        self._detached = False

        self._idle_timeout: Optional[float] = None
        self._idle_handle: Optional[asyncio.TimerHandle] = None

    # ------------------------------------------------------------------
    # asyncio.Protocol 回调
    # ------------------------------------------------------------------

    def connection_made(self, transport: asyncio.BaseTransport):
        self.transport = transport

    def data_received(self, data: bytes):
        if self._killed or self._detached:
            return

        self._reset_idle_timer()
        logger.debug(f"收到数据包: {len(data)} 字节")

        if self._has_pending_read():
            waiter = self._waiter
            self._waiter = None
            waiter.set_result(data)
            if self._final_read:
                self.detach()
        else:
            self._packets.append(data)

    def eof_received(self):
        # 返回 False 让传输层关闭，随后触发 connection_lost
        return False

    def connection_lost(self, exc: Optional[BaseException]):
        self._closed = True
        self._close_exc = exc
        self._cancel_idle_timer()
        if self._killed or self._detached:
            return

        logger.debug(f"连接已关闭: {exc!r}")
        if self._has_pending_read():
            self._fail_waiter(self._closed_error())

    # ------------------------------------------------------------------
    # 公共接口
    # ------------------------------------------------------------------

    def request_packet(self, final_read: bool = False) -> "asyncio.Future[bytes]":
        """
        请求下一个数据包

        已有缓冲的数据包时立即完成（先进先出），否则等待下一次 data_received。

        Args:
            final_read: 为 True 时，本次读取完成后分帧器与传输层分离

        Returns:
            asyncio.Future[bytes]: 数据包

        Raises:
            IllegalState: 上一次读取尚未完成
        """
        if self._has_pending_read():
            raise IllegalState("Cannot read while there is a pending read")

        self._final_read = final_read
        future = self._loop.create_future()

        if self._packets:
            future.set_result(self._packets.popleft())
            if final_read:
                self.detach()
        elif self._killed or self._closed or self._detached:
            future.set_exception(self._closed_error())
        else:
            self._waiter = future
            self._reset_idle_timer()
        return future

    def write(self, data: bytes):
        """原样写入传输层"""
        if self._killed or self._closed or self.transport is None:
            raise ConnectionClosed("Cannot write to a closed socket")
        self.transport.write(data)
        self._reset_idle_timer()

    def set_idle_timeout(self, timeout: Optional[float]):
        """
        设置空闲超时（秒）

        超时后传输层被中止，未完成的读取以 ConnectionClosed 失败。
        None 或 0 表示不限制。
        """
        self._idle_timeout = timeout or None
        self._reset_idle_timer()

    def kill_socket(self):
        """停止响应传输层事件并强制关闭传输层，可重复调用"""
        if self._killed:
            return
        self._killed = True
        self._cancel_idle_timer()

        if self._has_pending_read():
            self._fail_waiter(ConnectionClosed("socket destroyed"))
        self._packets.clear()

        if self.transport is not None:
            logger.debug("强制关闭代理连接")
            self.transport.abort()

    def detach(self) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """
        将传输层移交给新的 StreamReader/StreamWriter

        已缓冲但尚未读取的数据包会按顺序写入新的 reader。

        Returns:
            Tuple[asyncio.StreamReader, asyncio.StreamWriter]: 可直接使用的流
        """
        if self.streams is not None:
            return self.streams
        if self._killed:
            raise ConnectionClosed("Cannot detach a destroyed socket")

        self._detached = True
        self._cancel_idle_timer()

        reader = asyncio.StreamReader(loop=self._loop)
        protocol = asyncio.StreamReaderProtocol(reader, loop=self._loop)
        self.transport.set_protocol(protocol)
        protocol.connection_made(self.transport)
        writer = asyncio.StreamWriter(self.transport, protocol, reader, self._loop)

        while self._packets:
            reader.feed_data(self._packets.popleft())
        if self._closed:
            reader.feed_eof()

        logger.debug("分帧器已分离，后续数据直接交给调用方")
        self.streams = (reader, writer)
        return self.streams

    @property
    def closed(self) -> bool:
        return self._closed or self._killed

    # ------------------------------------------------------------------
    # 内部方法
    # ------------------------------------------------------------------

    def _has_pending_read(self) -> bool:
        return self._waiter is not None and not self._waiter.done()

    def _fail_waiter(self, exc: BaseException):
        waiter = self._waiter
        self._waiter = None
        waiter.set_exception(exc)

    def _closed_error(self) -> ConnectionClosed:
        if self._close_exc is not None:
            return ConnectionClosed(str(self._close_exc) or "socket closed", cause=self._close_exc)
        return ConnectionClosed("socket closed")

    def _reset_idle_timer(self):
        self._cancel_idle_timer()
        if self._idle_timeout and not (self._killed or self._detached or self._closed):
            self._idle_handle = self._loop.call_later(self._idle_timeout, self._on_idle_timeout)

    def _cancel_idle_timer(self):
        if self._idle_handle is not None:
            self._idle_handle.cancel()
            self._idle_handle = None

    def _on_idle_timeout(self):
        self._idle_handle = None
        logger.warning(f"握手空闲超时: {self._idle_timeout}s")
        self._close_exc = TimeoutError(f"handshake idle timeout after {self._idle_timeout}s")
        if self._has_pending_read():
            self._fail_waiter(self._closed_error())
        self.kill_socket()
