import ipaddress
import re

# DNS label, underscores are tolerated as they show up in real-world hostnames.
_label_re = re.compile(rb"[a-z\d_-]{1,63}", re.IGNORECASE)

PORT_RANGE = range(0, 65536)


def is_valid_host(host: str) -> bool:
    """
    True if `host` is an IP address literal or a (possibly internationalized) DNS name.
    """
    try:
        ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        return True

    try:
        encoded = host.encode("idna")
        # also rejects malformed punycode labels such as xn--ke
        encoded.decode("idna")
    except ValueError:
        return False
    if not encoded or len(encoded) > 255:
        return False
    if encoded.endswith(b"."):
        encoded = encoded[:-1]
    return all(_label_re.fullmatch(label) for label in encoded.split(b"."))


def is_valid_port(port: int) -> bool:
    return port in PORT_RANGE
