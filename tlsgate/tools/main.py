from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from collections.abc import Sequence
from pathlib import Path

from tlsgate import exceptions
from tlsgate import master
from tlsgate import options
from tlsgate import optmanager
from tlsgate.config import ProxyConfig
from tlsgate.tools import cmdline
from tlsgate.utils import debug

CONFIG_FILES = ("config.yaml", "config.yml")


def process_options(parser, opts, args):
    """Apply the dedicated command line flags, which take precedence over everything else."""
    if args.version:
        print(debug.dump_system_info())
        sys.exit(0)
    if args.quiet or args.options:
        # no startup chatter in front of the --options dump.
        args.termlog_verbosity = "error"
    if args.verbose:
        args.termlog_verbosity = "debug"

    opts.update(
        **{
            key: val
            for key, val in vars(args).items()
            if key in opts and val is not None
        }
    )


def load_options(parser: argparse.ArgumentParser, args) -> options.Options:
    """
    Collect options from, in increasing order of precedence: defaults,
    `--set` specs, the config files in the config directory and dedicated flags.

    *Raises:*
     - ConfigError, if any of these is invalid.
    """
    opts = options.Options()
    opts.set(*args.setoptions, defer=True)
    # the config directory itself may come from the command line.
    if args.confdir is not None:
        opts.update(confdir=args.confdir)
    confdir = Path(opts.confdir).expanduser()
    optmanager.load_paths(opts, *(confdir / name for name in CONFIG_FILES))
    process_options(parser, opts, args)
    opts.check_deferred()
    return opts


def install_signal_handlers(m: master.Master) -> None:
    loop = asyncio.get_running_loop()

    def _shutdown(*_):
        loop.call_soon_threadsafe(m.shutdown)

    # loop.add_signal_handler is not available with Windows' ProactorEventLoop.
    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    # a client going away mid-write must not terminate the process.
    if hasattr(signal, "SIGPIPE"):
        signal.signal(signal.SIGPIPE, signal.SIG_IGN)


def run(
    make_parser: Callable[[options.Options], argparse.ArgumentParser],
    arguments: Sequence[str] | None,
) -> master.Master:
    """
    Parse the command line, build the configuration and serve until shut down.
    Configuration and listen errors are reported on stderr and exit with status 1.
    """
    parser = make_parser(options.Options())
    args = parser.parse_args(arguments)

    async def main() -> master.Master:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("asyncio").setLevel(logging.WARNING)

        try:
            opts = load_options(parser, args)
            if args.options:
                optmanager.dump_defaults(opts, sys.stdout)
                sys.exit(0)
            config = ProxyConfig.from_options(opts)
        except exceptions.ConfigError as e:
            print(f"{parser.prog}: {e}", file=sys.stderr)
            sys.exit(1)

        m = master.Master(opts, config, with_termlog=True)
        install_signal_handlers(m)
        try:
            await m.run()
        except OSError as e:
            print(f"{parser.prog}: {e}", file=sys.stderr)
            sys.exit(1)
        return m

    return asyncio.run(main())


def tlsgate(args=None) -> int | None:  # pragma: no cover
    run(cmdline.tlsgate, args)
    return None
