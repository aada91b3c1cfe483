import asyncio

import pytest

from tlsgate import exceptions
from tlsgate.net.http.request import RequestLine
from tlsgate.net.http.request import read_request_head


@pytest.mark.parametrize(
    "data,method,target",
    [
        (b"CONNECT example.com:443 HTTP/1.1\r\n\r\n", "CONNECT", "example.com:443"),
        (b"GET / HTTP/1.1\r\n\r\n", "GET", "/"),
        (b"CONNECT example.com:443\r\n\r\n", "CONNECT", "example.com:443"),
        (
            b"CONNECT [::1]:8443 HTTP/1.1\r\nHost: [::1]:8443\r\n\r\nbody",
            "CONNECT",
            "[::1]:8443",
        ),
        (b"CONNECT  example.com:443 HTTP/1.1\n\n", "CONNECT", "example.com:443"),
        (b"connect a b c d\r\n\r\n", "connect", "a"),
    ],
)
def test_parse(data, method, target):
    assert RequestLine.parse(data) == RequestLine(method, target)


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"\r\n\r\n",
        b"CONNECT\r\n\r\n",
        b"CONNECT \r\n\r\n",
        b"\r\nCONNECT example.com:443 HTTP/1.1\r\n\r\n",
    ],
)
def test_parse_malformed(data):
    with pytest.raises(exceptions.MalformedRequestError):
        RequestLine.parse(data)


def test_parse_utf8():
    with pytest.raises(exceptions.Utf8Error):
        RequestLine.parse(b"CONNECT \xff:443 HTTP/1.1\r\n\r\n")
    assert RequestLine.parse("CONNECT bücher.example:443 HTTP/1.1\r\n\r\n".encode()) == (
        RequestLine("CONNECT", "bücher.example:443")
    )


def test_error_kinds():
    with pytest.raises(exceptions.ReadError) as e:
        RequestLine.parse(b"")
    assert e.value.kind == "MalformedRequestError"


def reader(*chunks: bytes, eof: bool = True) -> asyncio.StreamReader:
    r = asyncio.StreamReader()
    for c in chunks:
        r.feed_data(c)
    if eof:
        r.feed_eof()
    return r


class ChunkedStream:
    def __init__(self, *chunks: bytes):
        self.chunks = list(chunks)

    async def read(self, n: int = -1) -> bytes:
        if self.chunks:
            return self.chunks.pop(0)
        return b""


class BrokenStream:
    async def read(self, n: int = -1) -> bytes:
        raise ConnectionResetError("connection reset")


async def test_read_request_head():
    head, rest = await read_request_head(
        reader(b"CONNECT example.com:443 HTTP/1.1\r\n\r\n"), 8192
    )
    assert head == b"CONNECT example.com:443 HTTP/1.1\r\n\r\n"
    assert rest == b""


async def test_read_request_head_split():
    head, rest = await read_request_head(
        ChunkedStream(b"CONNECT example.com:443 HTTP/1.1\r", b"\n\r", b"\nhello"),
        8192,
    )
    assert head == b"CONNECT example.com:443 HTTP/1.1\r\n\r\n"
    assert rest == b"hello"


async def test_read_request_head_without_eof():
    head, rest = await read_request_head(
        reader(b"CONNECT example.com:443 HTTP/1.1\r\n\r\n", eof=False), 8192
    )
    assert head == b"CONNECT example.com:443 HTTP/1.1\r\n\r\n"


async def test_read_request_head_partial():
    head, rest = await read_request_head(reader(b"CONNECT example.com:443"), 8192)
    assert head == b"CONNECT example.com:443"
    assert rest == b""


async def test_read_request_head_empty():
    with pytest.raises(exceptions.MalformedRequestError):
        await read_request_head(reader(), 8192)


async def test_read_request_head_too_large():
    with pytest.raises(exceptions.RequestTooLargeError):
        await read_request_head(reader(b"a" * 100, eof=False), 64)
    with pytest.raises(exceptions.RequestTooLargeError):
        await read_request_head(reader(b"a" * 100 + b"\r\n\r\n"), 64)

    # exactly at the limit is fine.
    data = b"a" * 60 + b"\r\n\r\n"
    assert await read_request_head(reader(data), 64) == (data, b"")


async def test_read_request_head_error():
    with pytest.raises(exceptions.ReadError, match="connection reset"):
        await read_request_head(BrokenStream(), 8192)
