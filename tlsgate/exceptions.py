"""
Exceptions raised by tlsgate.

There are two families:

- ConfigError is raised while assembling the runtime configuration at startup
  and is fatal to the process.
- TunnelError subclasses describe why a single client connection was abandoned.
  They never leave the connection handler; the handler logs their `kind` and
  closes the connection.
"""


class TlsgateException(Exception):
    """
    Base class for all exceptions thrown by tlsgate.
    """

    def __init__(self, message=None):
        super().__init__(message)


class ConfigError(TlsgateException):
    pass


class TunnelError(TlsgateException):
    """
    Base class for per-connection failures.
    """

    @property
    def kind(self) -> str:
        return type(self).__name__


class HandshakeError(TunnelError):
    pass


class ReadError(TunnelError):
    pass


class Utf8Error(ReadError):
    pass


class MalformedRequestError(ReadError):
    pass


class RequestTooLargeError(ReadError):
    pass


class UpstreamConnectError(TunnelError):
    def __init__(self, message=None, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class ResponseWriteError(TunnelError):
    pass


class RelayError(TunnelError):
    pass
