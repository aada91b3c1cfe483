import os
import threading
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import BinaryIO

from OpenSSL import crypto
from OpenSSL import SSL

from tlsgate import certs
from tlsgate import exceptions


class Version(Enum):
    UNBOUNDED = 0
    SSL3 = SSL.SSL3_VERSION
    TLS1 = SSL.TLS1_VERSION
    TLS1_1 = SSL.TLS1_1_VERSION
    TLS1_2 = SSL.TLS1_2_VERSION
    TLS1_3 = SSL.TLS1_3_VERSION


DEFAULT_MIN_VERSION = Version.TLS1_2
DEFAULT_MAX_VERSION = Version.UNBOUNDED
DEFAULT_OPTIONS = SSL.OP_CIPHER_SERVER_PREFERENCE | SSL.OP_NO_COMPRESSION


class KeyLogWriter:
    """
    pyOpenSSL keylog callback appending TLS secrets to a file in NSS key log format,
    so that captured traffic can be decrypted with e.g. Wireshark.
    """

    # pyOpenSSL wraps the callback with functools.wraps, which wants a name.
    __name__ = "KeyLogWriter"

    def __init__(self, path: Path):
        self.path = path.expanduser()
        self._file: BinaryIO | None = None
        self._lock = threading.Lock()

    def __call__(self, connection: SSL.Connection, line: bytes) -> None:
        with self._lock:
            if self._file is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._file = self.path.open("ab")
            self._file.write(line + b"\n")
            self._file.flush()

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None


def keylog_from_env() -> KeyLogWriter | None:
    path = os.getenv("TLSGATE_SSLKEYLOGFILE") or os.getenv("SSLKEYLOGFILE")
    if path:
        return KeyLogWriter(Path(path))
    return None


keylog = keylog_from_env()


def create_server_context(
    cert_chain: Iterable[certs.Cert],
    private_key: certs.PrivateKey,
    *,
    min_version: Version = DEFAULT_MIN_VERSION,
    max_version: Version = DEFAULT_MAX_VERSION,
    cipher_list: Iterable[str] | None = None,
) -> SSL.Context:
    """
    Create the context used to terminate TLS for all client connections.

    No client certificate is requested. The first certificate of `cert_chain` is the
    leaf presented to clients, all others are sent as extra chain certificates.

    *Raises:*
     - ConfigError, if the certificate material cannot be used.
    """
    chain = list(cert_chain)
    if not chain:
        raise exceptions.ConfigError("Certificate chain is empty.")

    context = SSL.Context(SSL.TLS_SERVER_METHOD)

    ok = SSL._lib.SSL_CTX_set_min_proto_version(context._context, min_version.value)  # type: ignore
    ok += SSL._lib.SSL_CTX_set_max_proto_version(context._context, max_version.value)  # type: ignore
    if ok != 2:
        raise exceptions.ConfigError(
            f"Error setting TLS versions ({min_version=}, {max_version=}). "
            "The version you specified may be unavailable in your libssl."
        )

    context.set_options(DEFAULT_OPTIONS)

    if cipher_list is not None:
        try:
            context.set_cipher_list(b":".join(x.encode() for x in cipher_list))
        except SSL.Error as e:
            raise exceptions.ConfigError(f"SSL cipher specification error: {e}") from e

    if keylog:
        context.set_keylog_callback(keylog)

    context.set_verify(SSL.VERIFY_NONE, None)

    leaf, *extra_chain_certs = chain
    try:
        context.use_certificate(leaf.to_pyopenssl())
        for cert in extra_chain_certs:
            context.add_extra_chain_cert(cert.to_pyopenssl())
        context.use_privatekey(crypto.PKey.from_cryptography_key(private_key))
        context.check_privatekey()
    except SSL.Error as e:
        raise exceptions.ConfigError(
            f"Certificate and private key do not match: {e}"
        ) from e

    return context


def starts_like_tls_record(d: bytes) -> bool:
    """
    Returns:
        True, if the passed bytes could be the start of a TLS record
        False, otherwise.
    """
    # TLS ClientHello magic, works for SSLv3, TLSv1.0, TLSv1.1, TLSv1.2, and TLSv1.3
    # We assume that a client sending less than 3 bytes initially is not a TLS client.
    return len(d) > 2 and d[0] == 0x16 and d[1] == 0x03 and 0x00 <= d[2] <= 0x03
