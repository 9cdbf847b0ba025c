from uuid import uuid4

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.core import context

REQUEST_ID_HEADER = b"x-request-id"


class RequestContextMiddleware:
    """Tag every HTTP request with an id and its route for log correlation.

    Long-lived SSE responses keep the id for the life of the stream, so
    connect/disconnect lines for one dashboard share a request id.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers", [])).get(REQUEST_ID_HEADER, b"").decode().strip()
        request_id = incoming[:64] or uuid4().hex
        context.clear_context()
        context.set_request(request_id, f"{scope.get('method', '-')} {scope.get('path', '-')}")

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [*message.get("headers", []), (REQUEST_ID_HEADER, request_id.encode())]
            await send(message)

        await self.app(scope, receive, send_with_request_id)
