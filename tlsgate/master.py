import asyncio
import logging

from tlsgate import options
from tlsgate.config import ProxyConfig
from tlsgate.log import TermLogHandler
from tlsgate.proxy.listener import ProxyServer

logger = logging.getLogger(__name__)


class Master:
    """
    Owns the proxy server for the lifetime of the process: starts it, reports
    questionable configuration, and stops it again once `shutdown` is called.
    """

    def __init__(
        self,
        opts: options.Options,
        config: ProxyConfig,
        event_loop: asyncio.AbstractEventLoop | None = None,
        with_termlog: bool = False,
    ):
        self.options = opts
        self.config = config
        self.server = ProxyServer(config)
        self.event_loop = event_loop or asyncio.get_running_loop()
        self.should_exit = asyncio.Event()

        self._termlog: TermLogHandler | None = None
        if with_termlog:
            self._termlog = TermLogHandler(verbosity=opts.termlog_verbosity)
            self._termlog.install()

    async def run(self) -> None:
        """
        *Raises:*
         - OSError, if the server cannot listen.
        """
        self.event_loop.set_exception_handler(self._on_asyncio_error)
        self.should_exit.clear()
        try:
            await self.server.start()
            self.running()
            await self.should_exit.wait()
        finally:
            await self.done()

    def running(self) -> None:
        if not self.config.allowlist:
            logger.warning(
                "The allow-list is empty, all tunnel requests will be refused. "
                "Use --allow HOST:PORT to permit destinations."
            )
        leaf = self.config.cert_chain[0]
        if leaf.has_expired():
            logger.warning(
                f"The certificate for {leaf.cn or 'tlsgate'} has expired "
                f"({leaf.notafter:%Y-%m-%d}), clients will likely reject it."
            )
        logger.debug(f"Allowed destinations: {', '.join(self.config.allowlist)}")

    def shutdown(self) -> None:
        """Ask `run` to return. Safe to call from other threads and signal handlers."""
        self.event_loop.call_soon_threadsafe(self.should_exit.set)

    async def done(self) -> None:
        await self.server.stop()
        if self._termlog is not None:
            self._termlog.uninstall()

    def _on_asyncio_error(self, loop, context: dict) -> None:
        task = context.get("task") or context.get("future")
        where = f" in {task.get_name()}" if isinstance(task, asyncio.Task) else ""
        exc = context.get("exception")
        if exc is None:
            logger.error(f"Unhandled asyncio error{where}: {context.get('message')}")
        else:
            logger.error(f"Unhandled error{where}.", exc_info=exc)
