"""
HTTP listener: receive events forwarded by other xnotify instances.

Any POST with a JSON event body is accepted on any path. The event time is
replaced with the local receipt time, since the sender's clock may differ.
Malformed requests are logged and answered with 400; the listener keeps
serving.
"""

import json
import logging
from typing import Callable

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from xnotify.errors import InvalidEventError
from xnotify.watcher.types import Event

logger = logging.getLogger(__name__)


def create_app(on_event: Callable[[Event], None]) -> Starlette:
    """
    Build the listener application.

    Args:
        on_event: Called with each received event (on the server's loop)
    """

    async def receive(request: Request) -> Response:
        body = await request.body()
        try:
            event = Event.from_dict(json.loads(body))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Ignoring request with malformed JSON: {e}")
            return JSONResponse({"error": "malformed JSON"}, status_code=400)
        except InvalidEventError as e:
            logger.error(f"Ignoring invalid event: {e}")
            return JSONResponse({"error": str(e)}, status_code=400)

        on_event(event.restamped())
        return Response(status_code=200)

    return Starlette(
        routes=[
            Route("/", receive, methods=["POST"]),
            Route("/{path:path}", receive, methods=["POST"]),
        ]
    )


def create_server(app: Starlette, host: str, port: int):
    """uvicorn server for the listener, to be awaited with serve()."""
    import uvicorn

    config = uvicorn.Config(app, host=host, port=port, log_level="warning", access_log=False)
    return uvicorn.Server(config)
