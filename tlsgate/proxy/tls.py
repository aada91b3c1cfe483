"""
Server-side TLS on top of asyncio streams.

pyOpenSSL is used in memory-BIO mode: ciphertext read from the client socket is
fed into the SSL object with `bio_write`, and everything OpenSSL wants to send is
pulled out with `bio_read` and written to the socket. This keeps all network I/O on
the event loop.
"""

import asyncio
from typing import Any

from OpenSSL import SSL

from tlsgate import exceptions
from tlsgate.net.tls import starts_like_tls_record

READ_SIZE = 65535


class TlsStream:
    """
    A TLS session with a single client, exposing a subset of the
    `asyncio.StreamReader`/`asyncio.StreamWriter` interface for plaintext.
    """

    tls: SSL.Connection
    """The OpenSSL connection object"""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        context: SSL.Context,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.tls = SSL.Connection(context)
        self.tls.set_accept_state()
        self._eof = False

    def __repr__(self):
        return f"TlsStream({self.get_extra_info('peername')})"

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        return self.writer.get_extra_info(name, default)

    @property
    def tls_version(self) -> str:
        return self.tls.get_protocol_version_name()

    @property
    def cipher(self) -> str | None:
        return self.tls.get_cipher_name()

    @property
    def sni(self) -> str | None:
        sni = self.tls.get_servername()
        return sni.decode("idna") if sni else None

    def _send_pending(self) -> None:
        while True:
            try:
                data = self.tls.bio_read(READ_SIZE)
            except SSL.WantReadError:
                return  # Okay, nothing more waiting to be sent.
            else:
                if not self.writer.is_closing():
                    self.writer.write(data)

    async def _receive(self) -> bool:
        """Feed the next chunk of ciphertext into OpenSSL. Returns False on EOF."""
        data = await self.reader.read(READ_SIZE)
        if not data:
            self._eof = True
            self.tls.bio_shutdown()
            return False
        self.tls.bio_write(data)
        return True

    async def handshake(self) -> None:
        """
        Perform the server side of the TLS handshake.

        *Raises:*
         - HandshakeError, if the handshake fails for any reason.
        """
        first_record = b""
        while True:
            try:
                self.tls.do_handshake()
            except SSL.WantReadError:
                try:
                    self._send_pending()
                    await self.writer.drain()
                    data = await self.reader.read(READ_SIZE)
                except OSError as e:
                    raise exceptions.HandshakeError(
                        f"Connection error during TLS handshake: {e}"
                    ) from e
                if not data:
                    raise exceptions.HandshakeError(
                        "Client closed connection during TLS handshake."
                    )
                if not first_record:
                    first_record = data[:3]
                self.tls.bio_write(data)
            except SSL.Error as e:
                # send our alert if there is one, the handshake has failed anyway.
                try:
                    self._send_pending()
                except SSL.Error:
                    pass
                if first_record and not starts_like_tls_record(first_record):
                    err = "Client does not speak TLS."
                else:
                    err = f"OpenSSL {e!r}"
                raise exceptions.HandshakeError(err) from e
            else:
                try:
                    self._send_pending()
                    await self.writer.drain()
                except OSError as e:
                    raise exceptions.HandshakeError(
                        f"Connection error during TLS handshake: {e}"
                    ) from e
                return

    async def read(self, n: int = READ_SIZE) -> bytes:
        """
        Read up to n bytes of plaintext. Returns b"" once the client has
        closed the TLS session or the underlying connection.

        *Raises:*
         - OSError, on transport or TLS errors.
        """
        if n < 0:
            n = READ_SIZE
        while True:
            try:
                return self.tls.recv(n)
            except SSL.WantReadError:
                pass
            except SSL.ZeroReturnError:
                return b""
            except SSL.Error as e:
                if self._eof:
                    # connection closed without close_notify.
                    return b""
                raise OSError(f"TLS error: {e}") from e
            # TLS 1.3 may want to send tickets or key updates.
            self._send_pending()
            if self._eof or not await self._receive():
                return b""

    def write(self, data: bytes) -> None:
        try:
            self.tls.sendall(data)
        except SSL.Error as e:
            raise OSError(f"TLS error: {e}") from e
        self._send_pending()

    async def drain(self) -> None:
        await self.writer.drain()

    def is_closing(self) -> bool:
        return self.writer.is_closing()

    def close(self) -> None:
        """Send close_notify if possible and close the underlying transport."""
        if not self.writer.is_closing():
            try:
                self.tls.shutdown()
                self._send_pending()
            except SSL.Error:
                # the session was never established or is already broken.
                pass
        self.writer.close()

    async def wait_closed(self) -> None:
        try:
            await self.writer.wait_closed()
        except OSError:
            pass
