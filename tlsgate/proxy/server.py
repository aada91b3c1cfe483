"""
Per-connection logic of the proxy.

A ConnectionHandler takes a freshly accepted client connection through TLS
termination, reads and authorizes the CONNECT request, dials the upstream and
relays bytes until either side is done. Every step happens at most once and in
order, see ConnectionState.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Awaitable
from collections.abc import Callable
from types import TracebackType
from typing import Literal
from typing import Protocol

from tlsgate import exceptions
from tlsgate.config import ProxyConfig
from tlsgate.net import server_spec
from tlsgate.net.http import status_codes
from tlsgate.net.http.assemble import assemble_status_line
from tlsgate.net.http.request import RequestLine
from tlsgate.net.http.request import read_request_head
from tlsgate.proxy.tls import TlsStream
from tlsgate.utils import asyncio_utils
from tlsgate.utils import human

logger = logging.getLogger(__name__)

RELAY_CHUNK_SIZE = 65535


class ConnectionState(enum.Enum):
    ACCEPTED = "accepted"
    TLS_ESTABLISHED = "tls established"
    REQUEST_READ = "request read"
    AUTHORIZED = "authorized"
    UPSTREAM_CONNECTED = "upstream connected"
    RELAYING = "relaying"
    CLOSED = "closed"


class TimeoutWatchdog:
    last_activity: float
    timeout: float

    def __init__(self, timeout: float, callback: Callable[[], Awaitable]):
        self.timeout = timeout
        self.callback = callback
        self.last_activity = time.time()

    def register_activity(self):
        self.last_activity = time.time()

    async def watch(self):
        try:
            while True:
                await asyncio.sleep(self.timeout - (time.time() - self.last_activity))
                if self.last_activity + self.timeout < time.time():
                    await self.callback()
                    return
        except asyncio.CancelledError:
            return


class _Source(Protocol):
    async def read(self, n: int = -1) -> bytes: ...  # pragma: no cover


class _Sink(Protocol):
    def write(self, data: bytes) -> None: ...  # pragma: no cover

    async def drain(self) -> None: ...  # pragma: no cover


class ConnectionHandler:
    config: ProxyConfig
    client: TlsStream
    upstream: tuple[asyncio.StreamReader, asyncio.StreamWriter] | None
    state: ConnectionState
    error: exceptions.TunnelError | None

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        config: ProxyConfig,
    ) -> None:
        self.config = config
        self.peername = writer.get_extra_info("peername")
        self.client = TlsStream(reader, writer, config.tls_context)
        self.upstream = None
        self.state = ConnectionState.ACCEPTED
        self.error = None
        self.bytes_sent = 0
        self.bytes_received = 0

    async def handle_client(self) -> None:
        asyncio_utils.set_current_task_name("client handler", self.peername)
        self.log("client connect")
        try:
            await self.handle_connection()
        except exceptions.TunnelError as e:
            self.error = e
            self.log(f"{e.kind}: {e}")
        except Exception as e:
            self.log(
                f"connection handler has crashed: {e}",
                logging.ERROR,
                exc_info=(type(e), e, e.__traceback__),
            )
        finally:
            self.close()
            self.state = ConnectionState.CLOSED
            self.log("client disconnect")

    async def handle_connection(self) -> None:
        """
        Run the pipeline for this connection.

        *Raises:*
         - TunnelError, if the connection has to be abandoned.
        """
        try:
            await asyncio.wait_for(
                self.client.handshake(), self.config.handshake_timeout
            )
        except asyncio.TimeoutError as e:
            raise exceptions.HandshakeError("TLS handshake timed out.") from e
        self.state = ConnectionState.TLS_ESTABLISHED
        self.log(
            f"TLS established: {self.client.tls_version} {self.client.cipher}",
            logging.DEBUG,
        )

        try:
            head, remainder = await asyncio.wait_for(
                read_request_head(self.client, self.config.max_request_size),
                self.config.read_timeout,
            )
        except asyncio.TimeoutError as e:
            raise exceptions.ReadError("Timed out waiting for the request.") from e
        request = RequestLine.parse(head)
        self.state = ConnectionState.REQUEST_READ
        self.log(f"{request.method} {request.target}")

        if request.method != "CONNECT":
            self.log(
                f"method not allowed: {request.method}, responding with 405.",
            )
            await self.respond(status_codes.METHOD_NOT_ALLOWED)
            return
        if not self.config.allowlist.is_permitted(request.target):
            self.log(f"target not allowed: {request.target}, responding with 403.")
            await self.respond(status_codes.FORBIDDEN)
            return
        self.state = ConnectionState.AUTHORIZED

        try:
            await self.open_upstream(request.target)
        except exceptions.UpstreamConnectError as e:
            if e.timed_out:
                code = status_codes.GATEWAY_TIMEOUT
            else:
                code = status_codes.BAD_GATEWAY
            try:
                await self.respond(code)
            except exceptions.ResponseWriteError as write_err:
                self.log(f"{write_err.kind}: {write_err}", logging.DEBUG)
            raise
        self.state = ConnectionState.UPSTREAM_CONNECTED

        await self.respond(status_codes.OK)
        self.state = ConnectionState.RELAYING
        await self.relay(remainder)

    async def respond(self, status_code: int) -> None:
        """
        Send a bare status line to the client.

        *Raises:*
         - ResponseWriteError, if the response cannot be delivered.
        """
        try:
            self.client.write(assemble_status_line(status_code))
            await self.client.drain()
        except OSError as e:
            raise exceptions.ResponseWriteError(
                f"Error sending {status_code} response: {e}"
            ) from e

    async def open_upstream(self, target: str) -> None:
        """
        *Raises:*
         - UpstreamConnectError, if the upstream is invalid, unreachable or too slow to accept.
        """
        try:
            host, port = server_spec.parse_authority(target)
        except ValueError as e:
            raise exceptions.UpstreamConnectError(
                f"Cannot connect to {target!r}: {e}"
            ) from e
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                self.config.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise exceptions.UpstreamConnectError(
                f"Connection to {human.format_address((host, port))} timed out.",
                timed_out=True,
            ) from e
        except OSError as e:
            raise exceptions.UpstreamConnectError(
                f"Error connecting to {human.format_address((host, port))}: {e}"
            ) from e
        self.upstream = (reader, writer)

        peername = writer.get_extra_info("peername")
        if peername and peername[0] != host:
            addr = f"{human.format_address((host, port))} ({human.format_address(peername)})"
        else:
            addr = human.format_address((host, port))
        self.log(f"server connect {addr}")

    async def relay(self, remainder: bytes = b"") -> None:
        """
        Copy bytes in both directions until one side closes or fails.
        `remainder` is data the client sent right after its request head.

        *Raises:*
         - RelayError, on I/O errors in either direction.
        """
        assert self.upstream
        up_reader, up_writer = self.upstream
        relay_start = time.time()

        watchdog: TimeoutWatchdog | None = None
        if self.config.idle_timeout:
            watchdog = TimeoutWatchdog(self.config.idle_timeout, self.on_idle_timeout)

        if remainder:
            try:
                up_writer.write(remainder)
                await up_writer.drain()
            except OSError as e:
                raise exceptions.RelayError(f"Error sending data to server: {e}") from e
            self.bytes_sent += len(remainder)

        pipes = [
            asyncio_utils.create_task(
                self.pipe(self.client, up_writer, "client -> server", watchdog),
                name="relay client -> server",
                client=self.peername,
            ),
            asyncio_utils.create_task(
                self.pipe(up_reader, self.client, "server -> client", watchdog),
                name="relay server -> client",
                client=self.peername,
            ),
        ]
        tasks = list(pipes)
        if watchdog:
            tasks.append(
                asyncio_utils.create_task(
                    watchdog.watch(),
                    name="idle watchdog",
                    client=self.peername,
                )
            )

        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()
        await asyncio.wait(tasks)

        self.log(
            f"tunnel closed after {human.pretty_duration(time.time() - relay_start)}: "
            f"{human.pretty_size(self.bytes_sent)} sent, "
            f"{human.pretty_size(self.bytes_received)} received"
        )
        errors = [t.exception() for t in pipes if not t.cancelled()]
        for e in errors:
            if e:
                raise e

    async def pipe(
        self,
        source: _Source,
        sink: _Sink,
        direction: str,
        watchdog: TimeoutWatchdog | None = None,
    ) -> None:
        while True:
            try:
                data = await source.read(RELAY_CHUNK_SIZE)
            except OSError as e:
                raise exceptions.RelayError(f"Error reading ({direction}): {e}") from e
            if not data:
                self.log(f"end of stream ({direction})", logging.DEBUG)
                return
            if watchdog:
                watchdog.register_activity()
            try:
                sink.write(data)
                await sink.drain()
            except OSError as e:
                raise exceptions.RelayError(f"Error writing ({direction}): {e}") from e
            if sink is self.client:
                self.bytes_received += len(data)
            else:
                self.bytes_sent += len(data)

    async def on_idle_timeout(self) -> None:
        self.log(f"Closing tunnel due to inactivity ({self.config.idle_timeout}s)")

    def close(self) -> None:
        if self.upstream:
            self.upstream[1].close()
        self.client.close()

    def log(
        self,
        message: str,
        level: int = logging.INFO,
        exc_info: Literal[True]
        | tuple[type[BaseException], BaseException, TracebackType | None]
        | None = None,
    ) -> None:
        logger.log(level, message, extra={"client": self.peername}, exc_info=exc_info)
