from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from tlsgate import exceptions

HEAD_TERMINATOR = b"\r\n\r\n"


class Readable(Protocol):
    async def read(self, n: int = -1) -> bytes: ...  # pragma: no cover


@dataclass(frozen=True)
class RequestLine:
    """The method and target of the first line a client sends."""

    method: str
    target: str

    @classmethod
    def parse(cls, data: bytes) -> RequestLine:
        """
        Parse the request line from the raw request head.
        Only the first two space-separated tokens of the first line are looked at,
        the HTTP version, headers and body are ignored.

        *Raises:*
         - Utf8Error, if the data is not valid UTF-8.
         - MalformedRequestError, if the first line has fewer than two tokens.
        """
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise exceptions.Utf8Error(f"Request is not valid UTF-8: {e}") from e

        line = text.split("\n", 1)[0].rstrip("\r")
        tokens = [t for t in line.split(" ") if t]
        if len(tokens) < 2:
            raise exceptions.MalformedRequestError(f"Bad request line: {line!r}")
        return cls(method=tokens[0], target=tokens[1])


async def read_request_head(
    stream: Readable, max_size: int, chunk_size: int = 4096
) -> tuple[bytes, bytes]:
    """
    Read from `stream` until the end of the request head (an empty line).

    Returns the head, including its terminator, and any bytes the client sent after it.
    If the client closes its side before completing the head, whatever arrived is returned.

    *Raises:*
     - RequestTooLargeError, if the head exceeds `max_size` bytes.
     - MalformedRequestError, if the client closed the connection without sending anything.
     - ReadError, on transport errors.
    """
    buf = bytearray()
    while True:
        try:
            data = await stream.read(chunk_size)
        except OSError as e:
            raise exceptions.ReadError(f"Error reading request: {e}") from e
        if not data:
            if not buf:
                raise exceptions.MalformedRequestError(
                    "Client closed connection before sending a request."
                )
            return bytes(buf), b""

        # the terminator may straddle two reads.
        search_start = max(0, len(buf) - len(HEAD_TERMINATOR) + 1)
        buf += data
        end = buf.find(HEAD_TERMINATOR, search_start)
        if end != -1:
            end += len(HEAD_TERMINATOR)
            if end > max_size:
                break
            return bytes(buf[:end]), bytes(buf[end:])
        if len(buf) > max_size:
            break

    raise exceptions.RequestTooLargeError(
        f"Request head exceeds the maximum size of {max_size} bytes."
    )
