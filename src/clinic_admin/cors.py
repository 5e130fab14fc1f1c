from __future__ import annotations

from typing import List, Tuple

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.clinic_admin.config import settings


def cors_header_items() -> List[Tuple[str, str]]:
    """Return the fixed CORS header set shared by preflight and normal responses."""

    origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
    return [
        ("Access-Control-Allow-Origin", ", ".join(origins)),
        ("Access-Control-Allow-Headers", settings.cors_allow_headers),
        ("Access-Control-Allow-Methods", settings.cors_allow_methods),
    ]


class StaticCorsMiddleware:
    """Answer preflight requests and stamp CORS headers on every response.

    OPTIONS requests never reach routing or authentication, so browsers can
    preflight without credentials. Unlike Starlette's CORSMiddleware the header
    set does not depend on the request's Origin header.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = [(name.lower().encode("latin-1"), value.encode("latin-1")) for name, value in cors_header_items()]

        if scope["method"] == "OPTIONS":
            await send({"type": "http.response.start", "status": 200, "headers": headers})
            await send({"type": "http.response.body", "body": b""})
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                existing = [
                    (key, value)
                    for key, value in message.get("headers", [])
                    if not key.lower().startswith(b"access-control-")
                ]
                message["headers"] = existing + headers
            await send(message)

        await self.app(scope, receive, send_with_cors)
