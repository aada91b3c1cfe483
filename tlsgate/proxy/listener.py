from __future__ import annotations

import asyncio
import errno
import logging
from contextlib import contextmanager

from tlsgate.config import ProxyConfig
from tlsgate.net.server_spec import Address
from tlsgate.proxy.server import ConnectionHandler
from tlsgate.utils import human

logger = logging.getLogger(__name__)


class ProxyServer:
    """
    Accepts client connections and runs one ConnectionHandler task per connection.
    A failing connection never affects the listener or other connections.
    """

    connections: dict[int, ConnectionHandler]

    def __init__(self, config: ProxyConfig) -> None:
        self.config = config
        self.connections = {}
        self._server: asyncio.Server | None = None
        self._tasks: set[asyncio.Task] = set()

    def __repr__(self):
        return f"ProxyServer({len(self.connections)} active conns)"

    @property
    def is_running(self) -> bool:
        return self._server is not None

    @property
    def listen_addrs(self) -> tuple[Address, ...]:
        if not self._server:
            return ()
        try:
            return tuple(sock.getsockname() for sock in self._server.sockets)
        except OSError:  # pragma: no cover
            return ()

    def active_connections(self) -> int:
        return len(self.connections)

    async def start(self) -> None:
        """
        Bind the listening socket.

        *Raises:*
         - OSError, if the address cannot be bound.
        """
        assert not self._server
        host = self.config.bind_address
        port = self.config.bind_port
        try:
            self._server = await asyncio.start_server(self.handle_stream, host, port)
        except OSError as e:
            message = f"tlsgate failed to listen on {host or '*'}:{port} with {e}"
            if e.errno == errno.EADDRINUSE:
                message += f"\nTry specifying a different port by using `--bind-port {port + 1}`."
            raise OSError(e.errno, message, e.filename) from e
        addrs = " and ".join({human.format_address(a) for a in self.listen_addrs})
        logger.info(f"tlsgate listening at {addrs}.")

    async def stop(self) -> None:
        """Stop accepting connections and abort all connections in flight."""
        if not self._server:
            return
        addrs = " and ".join({human.format_address(a) for a in self.listen_addrs})
        try:
            self._server.close()
            # https://github.com/python/cpython/issues/104344
            # await self._server.wait_closed()
        finally:
            self._server = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel("server shutdown")
        if tasks:
            await asyncio.wait(tasks)
        logger.info(f"Stopped listening at {addrs}.")

    async def handle_stream(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        task = asyncio.current_task()
        assert task
        handler = ConnectionHandler(reader, writer, self.config)
        self._tasks.add(task)
        try:
            with self.register_connection(handler):
                await handler.handle_client()
        finally:
            self._tasks.discard(task)

    @contextmanager
    def register_connection(self, handler: ConnectionHandler):
        # peernames are not guaranteed to be unique, or present at all.
        self.connections[id(handler)] = handler
        try:
            yield
        finally:
            del self.connections[id(handler)]
