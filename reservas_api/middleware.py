"""ASGI middleware normalizing the deployment path prefix"""

from starlette.types import ASGIApp, Receive, Scope, Send
import structlog

logger = structlog.get_logger()

# Prefixes added by the serverless gateway in front of the API
STRIPPED_PREFIXES = ("/functions/v1/reservas-api", "/reservas-api")


def normalize_path(path: str) -> str:
    """Strip the gateway prefix; the bare root maps to /status"""
    for prefix in STRIPPED_PREFIXES:
        if path == prefix or path.startswith(prefix + "/"):
            path = path[len(prefix):]
            break
    if not path or path == "/":
        return "/status"
    return path


class PathPrefixMiddleware:
    """Rewrites the request path before routing and logs each request"""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            path = normalize_path(scope["path"])
            if path != scope["path"]:
                scope = dict(scope, path=path, raw_path=path.encode("utf-8"))
            logger.info("Request", method=scope["method"], path=path)
        await self.app(scope, receive, send)
