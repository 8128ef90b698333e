"""
ASGI adapter for serving a RestApplication with Uvicorn, Hypercorn or any
other ASGI 3.0 server.
"""

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict

from .application import parse_query_string
from .error_models import ErrorResponse
from .models import HTTPMethod, MultiValueHeaders, Request, Response, encode_json

if TYPE_CHECKING:
    from .application import RestApplication

logger = logging.getLogger(__name__)

Receive = Callable[[], Awaitable[Dict[str, Any]]]
Send = Callable[[Dict[str, Any]], Awaitable[None]]


class ASGIAdapter:
    """
    ASGI 3.0 adapter for RestApplication.

    The adapter handles:
    - Converting ASGI scope/receive/send to a Request
    - Running the request through the application's async pipeline
    - Converting the Response to ASGI messages
    - The lifespan protocol (startup and shutdown complete immediately)

    Example:
        ```python
        app = RestApplication()
        ContractServer().register_router(app, router)
        asgi_app = ASGIAdapter(app)

        # uvicorn module:asgi_app
        # hypercorn module:asgi_app
        ```
    """

    def __init__(self, app: "RestApplication"):
        self.app = app

    async def __call__(self, scope: Dict[str, Any], receive: Receive, send: Send):
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        if scope["type"] != "http":
            logger.debug(f"Rejecting unsupported ASGI scope type {scope['type']!r}")
            await send({
                "type": "http.response.start",
                "status": 404,
                "headers": [[b"content-type", b"text/plain"]],
            })
            await send({
                "type": "http.response.body",
                "body": b"Not Found - Only HTTP protocol is supported",
            })
            return

        try:
            method = HTTPMethod(scope["method"])
        except ValueError:
            await self._send_response(self._error(405, "Method Not Allowed"), send)
            return

        request = await self._build_request(method, scope, receive)
        response = await self.app.handle(request)
        await self._send_response(response, send)

    async def _handle_lifespan(self, receive: Receive, send: Send):
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _build_request(self, method: HTTPMethod, scope: Dict[str, Any], receive: Receive) -> Request:
        """Build a Request from the scope, reading the whole body."""
        query_string = scope.get("query_string", b"").decode("latin-1")

        # ASGI uses lowercase names and bytes
        headers = MultiValueHeaders()
        for header_name, header_value in scope.get("headers", []):
            headers.add(header_name.decode("latin-1").lower(), header_value.decode("latin-1"))

        chunks = []
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            chunks.append(message.get("body", b""))
            if not message.get("more_body", False):
                break

        return Request(
            method=method,
            path=scope["path"],
            headers=headers,
            body=b"".join(chunks) or None,
            query_params=parse_query_string(query_string) if query_string else {},
            tls=scope.get("scheme", "http") == "https",
        )

    @staticmethod
    def _error(status: int, message: str) -> Response:
        body = encode_json(ErrorResponse(error=message).model_dump())
        headers = MultiValueHeaders({"Content-Type": "application/json", "Content-Length": str(len(body))})
        return Response(status_code=status, headers=headers, body=body)

    @staticmethod
    def _encode_headers(response: Response):
        return [
            [name.lower().encode("latin-1"), str(value).encode("latin-1")]
            for name, value in response.headers.items_all()
        ]

    async def _send_response(self, response: Response, send: Send):
        try:
            headers = self._encode_headers(response)
        except UnicodeEncodeError as e:
            logger.error(f"Response headers cannot be encoded as latin-1: {e}")
            response = self._error(500, "Internal Server Error")
            headers = self._encode_headers(response)
        await send({
            "type": "http.response.start",
            "status": response.status_code,
            "headers": headers,
        })
        await send({
            "type": "http.response.body",
            "body": response.body,
        })


def create_asgi_app(app: "RestApplication") -> ASGIAdapter:
    """Create an ASGI application for ``app``."""
    return ASGIAdapter(app)
