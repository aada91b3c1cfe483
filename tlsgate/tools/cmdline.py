import argparse

# (group title, [(option, metavar, short flag)]); a None title adds the flags
# to the parser itself.
OPTION_GROUPS = [
    (
        None,
        [
            ("confdir", "PATH", None),
            ("termlog_verbosity", "LEVEL", None),
        ],
    ),
    (
        "Listener",
        [
            ("bind_address", "HOST", None),
            ("bind_port", "PORT", "p"),
        ],
    ),
    (
        "TLS",
        [
            ("cert_path", "PATH", None),
            ("key_path", "PATH", None),
            ("tls_version_client_min", "VERSION", None),
            ("tls_version_client_max", "VERSION", None),
            ("ciphers_client", "CIPHERS", None),
        ],
    ),
    (
        "Policy",
        [
            ("allow", "HOST:PORT", "a"),
            ("max_request_size", "SIZE", None),
        ],
    ),
    (
        "Timeouts",
        [
            ("handshake_timeout", "SECONDS", None),
            ("read_timeout", "SECONDS", None),
            ("connect_timeout", "SECONDS", None),
            ("idle_timeout", "SECONDS", None),
        ],
    ),
]


def common_options(parser: argparse.ArgumentParser, opts) -> None:
    parser.add_argument(
        "--version",
        action="store_true",
        dest="version",
        help="Print version and platform information, then exit.",
    )
    parser.add_argument(
        "--options",
        action="store_true",
        help="Print all options with their defaults as YAML, then exit.",
    )
    parser.add_argument(
        "--set",
        dest="setoptions",
        default=[],
        action="append",
        metavar="option[=value]",
        help="""
            Set any option by name. Without a value, optional settings become
            None and lists become empty. Repeat to add several entries to a list.
        """,
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-q", "--quiet", action="store_true", help="Only log errors."
    )
    verbosity.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug messages."
    )

    for title, entries in OPTION_GROUPS:
        target = parser if title is None else parser.add_argument_group(title)
        for name, metavar, short in entries:
            opts.make_parser(target, name, metavar=metavar, short=short)


def tlsgate(opts) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        usage="%(prog)s [options]",
        description="TLS-terminating CONNECT proxy with a destination allow-list.",
    )
    common_options(parser, opts)
    return parser
