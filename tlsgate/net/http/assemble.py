from tlsgate.net.http import status_codes


def assemble_status_line(status_code: int) -> bytes:
    """
    Assemble a complete response head without headers, e.g. `HTTP/1.1 403 Forbidden\r\n\r\n`.
    """
    reason = status_codes.RESPONSES.get(status_code, "")
    return b"HTTP/1.1 %d %s\r\n\r\n" % (status_code, reason.encode())
