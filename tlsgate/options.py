from collections.abc import Sequence
from typing import Optional

from tlsgate import optmanager
from tlsgate.log import LOG_LEVELS
from tlsgate.net import tls

CONF_DIR = "~/.tlsgate"
CONF_BASENAME = "tlsgate"


class Options(optmanager.OptManager):
    def __init__(self, **kwargs) -> None:
        super().__init__()
        self.add_option(
            "confdir",
            str,
            CONF_DIR,
            "Location of the default tlsgate configuration files.",
        )

        # Listener options
        self.add_option(
            "bind_address", str, "127.0.0.1", "Address to bind the proxy server to."
        )
        self.add_option("bind_port", int, 8080, "Port to bind the proxy server to.")

        # TLS options
        self.add_option(
            "cert_path",
            str,
            "MyCertificate.crt",
            """
            PEM file containing the certificate chain presented to clients,
            leaf certificate first.
            """,
        )
        self.add_option(
            "key_path",
            str,
            "MyKey.key",
            """
            PEM file containing the unencrypted private key for the leaf certificate,
            in RSA or PKCS8 form.
            """,
        )
        self.add_option(
            "tls_version_client_min",
            str,
            tls.DEFAULT_MIN_VERSION.name,
            "Set the minimum TLS version for client connections.",
            choices=[x.name for x in tls.Version],
        )
        self.add_option(
            "tls_version_client_max",
            str,
            tls.DEFAULT_MAX_VERSION.name,
            "Set the maximum TLS version for client connections.",
            choices=[x.name for x in tls.Version],
        )
        self.add_option(
            "ciphers_client",
            Optional[str],
            None,
            "Set supported ciphers for client <-> tlsgate connections using OpenSSL syntax.",
        )

        # Policy options
        self.add_option(
            "allow",
            Sequence[str],
            [],
            """
            Destination authority a client may open a tunnel to, in "host:port" form.
            Matching is exact: no wildcards, no case folding and no default ports.
            """,
        )
        self.add_option(
            "max_request_size",
            str,
            "8k",
            """
            Maximum size of the request head sent by a client before the tunnel
            is established. Understands k/m/g suffixes, i.e. 8k for 8 kilobytes.
            """,
        )

        # Timeouts
        self.add_option(
            "handshake_timeout",
            Optional[float],
            10.0,
            "Seconds to wait for a client to complete the TLS handshake.",
        )
        self.add_option(
            "read_timeout",
            Optional[float],
            10.0,
            "Seconds to wait for a client to send its request head.",
        )
        self.add_option(
            "connect_timeout",
            Optional[float],
            10.0,
            "Seconds to wait for the upstream connection to be established.",
        )
        self.add_option(
            "idle_timeout",
            Optional[float],
            None,
            "Close tunnels that have not transferred any data for this many seconds.",
        )

        self.add_option(
            "termlog_verbosity", str, "info", "Log verbosity.", choices=list(LOG_LEVELS)
        )

        self.update(**kwargs)
