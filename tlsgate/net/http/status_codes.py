OK = 200

FORBIDDEN = 403
METHOD_NOT_ALLOWED = 405

BAD_GATEWAY = 502
GATEWAY_TIMEOUT = 504

RESPONSES = {
    # 200
    OK: "OK",
    # 400
    FORBIDDEN: "Forbidden",
    METHOD_NOT_ALLOWED: "Method Not Allowed",
    # 500
    BAD_GATEWAY: "Bad Gateway",
    GATEWAY_TIMEOUT: "Gateway Timeout",
}
