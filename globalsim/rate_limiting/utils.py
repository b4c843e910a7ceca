from fastapi import Request


def client_ip_from_request(request: Request) -> str:
    """
    First X-Forwarded-For hop, then X-Real-IP, then the socket peer.
    """
    # X-Forwarded-For: trust only when behind proper proxy
    xff = request.headers.get("X-Forwarded-For")
    if xff:
        client_host = xff.split(",")[0].strip()
    else:
        client_host = request.headers.get("X-Real-IP") or (request.client.host if request.client else None)
    return client_host or "unknown"
