#!/usr/bin/env python3
"""
测试 socks5-probe 命令行工具

测试内容:
1. 命令行参数覆盖代理配置
2. 通过脚本化代理发送 HTTP 请求并读取状态行
3. 参数错误和连接失败的退出码
"""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fake_socks5_server import CONNECT_OK, GREETING_NO_AUTH, FakeSocks5Server
from socks5_tunnel.cli import build_parser, main, probe, resolve_endpoint
from socks5_tunnel.config import Credentials, parse_target
from socks5_tunnel.errors import ConfigError


async def http_responder(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
    request = await reader.readuntil(b'\r\n\r\n')
    assert request.startswith(b'GET /status HTTP/1.1\r\n')
    assert b'Host: example.com\r\n' in request
    writer.write(b'HTTP/1.1 204 No Content\r\nConnection: close\r\n\r\n')
    await writer.drain()


def test_resolve_endpoint_from_arguments():
    args = build_parser().parse_args([
        '--proxy', 'socks5://alice:pw@127.0.0.1:1081',
        '--target', 'example.com:80',
        '--timeout', '5',
    ])
    endpoint = resolve_endpoint(args)
    assert (endpoint.host, endpoint.port) == ('127.0.0.1', 1081)
    assert endpoint.connect_timeout == 5.0
    assert endpoint.handshake_timeout == 5.0
    assert endpoint.credentials == Credentials('alice', 'pw')

    args = build_parser().parse_args([
        '--proxy', '127.0.0.1:1081', '-u', 'bob', '-p', 'secret', '--target', 'example.com:80',
    ])
    assert resolve_endpoint(args).credentials == Credentials('bob', 'secret')

    # 只给出用户名或只给出密码都是配置错误
    for extra in (['-u', 'bob'], ['-p', 'secret']):
        args = build_parser().parse_args(['--proxy', '127.0.0.1:1081', '--target', 'example.com:80'] + extra)
        with pytest.raises(ConfigError):
            resolve_endpoint(args)


def test_probe_http_status_line():
    async def scenario():
        server = await FakeSocks5Server(
            [GREETING_NO_AUTH, CONNECT_OK],
            on_established=http_responder
        ).start()
        try:
            status = await probe(
                server.endpoint(),
                parse_target('example.com:80'),
                http_path='/status'
            )
            assert status == 'HTTP/1.1 204 No Content'
        finally:
            await server.stop()

    asyncio.run(scenario())


def test_main_exit_codes():
    assert main(['--proxy', '127.0.0.1:1080', '--target', 'no-port']) == 2
    assert main(['--proxy', 'http://127.0.0.1:1080', '--target', 'example.com:80']) == 2
    assert main(['--proxy', '127.0.0.1:1080', '-u', 'alice', '--target', 'example.com:80']) == 2
    assert main(['--proxy', 'socks5://alice@127.0.0.1:1080', '--target', 'example.com:80']) == 2
    # 端口 1 上通常没有服务，连接失败
    assert main(['--proxy', '127.0.0.1:1', '--target', 'example.com:80', '--timeout', '2']) == 1


def main_runner():
    tests = [(name, func) for name, func in sorted(globals().items())
             if name.startswith('test_') and callable(func)]
    failed = 0
    for name, func in tests:
        try:
            func()
            print(f"✓ {name}")
        except AssertionError as e:
            print(f"✗ {name} - {e}")
            failed += 1
    print(f"测试结果: 通过={len(tests) - failed}, 失败={failed}")
    return failed == 0


if __name__ == '__main__':
    exit(0 if main_runner() else 1)
