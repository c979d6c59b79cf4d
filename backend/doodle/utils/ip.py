from __future__ import annotations

from flask import Request


# X-Forwarded-For is already folded into remote_addr by ProxyFix when
# TRUST_PROXY_HEADERS is on.
_CLIENT_IP_HEADERS = ("CF-Connecting-IP", "X-Real-IP")


def get_client_ip(request: Request) -> str:
    for header in _CLIENT_IP_HEADERS:
        value = request.headers.get(header, "").strip()
        if value:
            return value
    return request.remote_addr or "unknown"
