"""Formatting and parsing of values for humans: sizes, durations and addresses."""

import functools
import ipaddress
import re

SIZE_UNITS = {"": 1, "b": 1, "k": 1024, "m": 1024**2, "g": 1024**3}

_size_re = re.compile(r"(?P<value>\d+)(?P<unit>[bkmg]?)")


@functools.lru_cache
def parse_size(s: str | None) -> int | None:
    """
    Parse a byte count with an optional b/k/m/g suffix, e.g. "8k" or "1M".
    Passing `None` returns `None`.

    *Raises:*
     - ValueError, if the value is not understood.
    """
    if s is None:
        return None
    m = _size_re.fullmatch(s.strip().lower())
    if not m:
        raise ValueError(f"Invalid size specification: {s!r}")
    return int(m.group("value")) * SIZE_UNITS[m.group("unit")]


def pretty_size(size: int) -> str:
    """Render a byte count with at most one decimal place, e.g. 1.5k or 10.0m."""
    if size < 1024:
        return f"{size}b"
    value = float(size)
    for unit in "kmgt":
        value /= 1024
        if value < 1024:
            break
    if value < 100:
        return f"{value:.1f}{unit}"
    return f"{value:.0f}{unit}"


def pretty_duration(secs: float | None) -> str:
    if secs is None:
        return ""
    if secs < 1:
        return f"{secs * 1000:.0f}ms"
    if secs < 10:
        return f"{secs:.2f}s"
    if secs < 100:
        return f"{secs:.1f}s"
    return f"{secs:.0f}s"


def format_address(address: tuple | None) -> str:
    """
    Format a (host, port, ...) tuple as host:port, with brackets around IPv6
    addresses. IPv4-mapped IPv6 addresses are shown as IPv4, wildcard addresses as *.
    """
    if address is None:
        return "<no address>"
    host, port = address[0], address[1]
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return f"{host}:{port}"
    if ip.is_unspecified:
        return f"*:{port}"
    if isinstance(ip, ipaddress.IPv6Address):
        if ip.ipv4_mapped:
            return f"{ip.ipv4_mapped}:{port}"
        return f"[{ip}]:{port}"
    return f"{ip}:{port}"
