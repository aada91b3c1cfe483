from __future__ import annotations

import asyncio
import socket
import ssl
from contextlib import asynccontextmanager

import pytest

from tlsgate.allowlist import AllowList
from tlsgate.config import ProxyConfig
from tlsgate.net.server_spec import Address
from tlsgate.proxy.listener import ProxyServer
from tlsgate.test import tutils


try:
    s = socket.socket(socket.AF_INET6, socket.SOCK_STREAM)
    s.bind(("::1", 0))
    s.close()
except OSError:
    no_ipv6 = True
else:
    no_ipv6 = False

skip_no_ipv6 = pytest.mark.skipif(no_ipv6, reason="Host has no IPv6 support")


class AsyncLogCaptureFixture:
    def __init__(self, caplog: pytest.LogCaptureFixture):
        self.caplog = caplog

    def set_level(self, level: int | str, logger: str | None = None) -> None:
        self.caplog.set_level(level, logger)

    async def await_log(self, text, timeout=2):
        await asyncio.sleep(0)
        for i in range(int(timeout / 0.01)):
            if text in self.caplog.text:
                return True
            else:
                await asyncio.sleep(0.01)
        raise AssertionError(f"Did not find {text!r} in log:\n{self.caplog.text}")

    def clear(self) -> None:
        self.caplog.clear()


@pytest.fixture
def caplog_async(caplog):
    return AsyncLogCaptureFixture(caplog)


@pytest.fixture(scope="session")
def tls_material():
    """A self-signed (key, cert) pair valid for tlsgate.test and 127.0.0.1."""
    return tutils.tcert("tlsgate.test", sans=["tlsgate.test", "127.0.0.1"])


@pytest.fixture
def pem_files(tmp_path, tls_material):
    key, cert = tls_material
    return tutils.write_pem_files(tmp_path, key, [cert])


@pytest.fixture
def make_config(tls_material):
    key, cert = tls_material

    def make(allow=(), **kwargs) -> ProxyConfig:
        kwargs.setdefault("bind_port", 0)
        return ProxyConfig.create(
            cert_chain=[cert],
            private_key=key,
            allowlist=AllowList.from_specs(allow),
            **kwargs,
        )

    return make


@asynccontextmanager
async def tcp_server(handle_conn, **server_args) -> Address:
    server = await asyncio.start_server(handle_conn, "127.0.0.1", 0, **server_args)
    await server.start_serving()
    try:
        yield server.sockets[0].getsockname()
    finally:
        server.close()


@asynccontextmanager
async def proxy_server(config: ProxyConfig):
    ps = ProxyServer(config)
    await ps.start()
    try:
        yield ps
    finally:
        await ps.stop()


def client_context() -> ssl.SSLContext:
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


async def tls_connect(
    address: Address,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    return await asyncio.open_connection(
        *address, ssl=client_context(), server_hostname="tlsgate.test"
    )
