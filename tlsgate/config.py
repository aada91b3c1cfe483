from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from OpenSSL import SSL

from tlsgate import certs
from tlsgate import exceptions
from tlsgate.allowlist import AllowList
from tlsgate.net import check
from tlsgate.net import tls
from tlsgate.options import Options
from tlsgate.utils import human


@dataclass(frozen=True)
class ProxyConfig:
    """
    Runtime configuration of the proxy, assembled once at startup.

    This object, and the allow-list and TLS context it holds, are shared by all
    connection handlers and must never be mutated.
    """

    bind_address: str
    bind_port: int
    cert_chain: tuple[certs.Cert, ...]
    private_key: certs.PrivateKey = field(repr=False)
    allowlist: AllowList
    tls_context: SSL.Context = field(repr=False, compare=False)
    handshake_timeout: float | None = 10.0
    read_timeout: float | None = 10.0
    connect_timeout: float | None = 10.0
    idle_timeout: float | None = None
    max_request_size: int = 8192

    @classmethod
    def create(
        cls,
        *,
        cert_chain: Iterable[certs.Cert],
        private_key: certs.PrivateKey,
        allowlist: AllowList,
        bind_address: str = "127.0.0.1",
        bind_port: int = 8080,
        min_version: tls.Version = tls.DEFAULT_MIN_VERSION,
        max_version: tls.Version = tls.DEFAULT_MAX_VERSION,
        cipher_list: Iterable[str] | None = None,
        **kwargs,
    ) -> ProxyConfig:
        """
        Build a configuration from already loaded certificate material.

        *Raises:*
         - ConfigError, if the certificate material or the listen address is unusable.
        """
        if not check.is_valid_port(bind_port):
            raise exceptions.ConfigError(f"Invalid bind port: {bind_port}")
        cert_chain = tuple(cert_chain)
        tls_context = tls.create_server_context(
            cert_chain,
            private_key,
            min_version=min_version,
            max_version=max_version,
            cipher_list=cipher_list,
        )
        return cls(
            bind_address=bind_address,
            bind_port=bind_port,
            cert_chain=cert_chain,
            private_key=private_key,
            allowlist=allowlist,
            tls_context=tls_context,
            **kwargs,
        )

    @classmethod
    def from_options(cls, options: Options) -> ProxyConfig:
        """
        Load certificate, key and allow-list as described by the options.

        *Raises:*
         - ConfigError, on any problem. This is fatal at startup.
        """
        cert_chain = certs.load_cert_chain(Path(options.cert_path).expanduser())
        private_key = certs.load_private_key(Path(options.key_path).expanduser())
        allowlist = AllowList.from_specs(options.allow)

        try:
            max_request_size = human.parse_size(options.max_request_size)
        except ValueError as e:
            raise exceptions.ConfigError(
                f"Invalid max_request_size: {options.max_request_size!r}"
            ) from e
        assert max_request_size is not None
        if max_request_size <= 0:
            raise exceptions.ConfigError(
                f"max_request_size must be positive, got {options.max_request_size!r}."
            )

        for name in ("handshake_timeout", "read_timeout", "connect_timeout", "idle_timeout"):
            value = getattr(options, name)
            if value is not None and value <= 0:
                raise exceptions.ConfigError(f"{name} must be positive, got {value}.")

        if options.ciphers_client:
            cipher_list: list[str] | None = options.ciphers_client.split(":")
        else:
            cipher_list = None

        return cls.create(
            cert_chain=cert_chain,
            private_key=private_key,
            allowlist=allowlist,
            bind_address=options.bind_address,
            bind_port=options.bind_port,
            min_version=tls.Version[options.tls_version_client_min],
            max_version=tls.Version[options.tls_version_client_max],
            cipher_list=cipher_list,
            handshake_timeout=options.handshake_timeout,
            read_timeout=options.read_timeout,
            connect_timeout=options.connect_timeout,
            idle_timeout=options.idle_timeout,
            max_request_size=max_request_size,
        )
