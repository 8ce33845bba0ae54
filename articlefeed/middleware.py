import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

# Statements executed in the current request (or test) context.
_statements: ContextVar[int] = ContextVar("statements", default=0)


def install_query_counter(engine: AsyncEngine) -> None:
    """
    Count every statement *engine* sends to the database.

    Hooked on ``before_cursor_execute``, so eager loads and Core
    inserts are counted along with ORM queries.
    """

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _on_execute(conn, cursor, statement, parameters, context, executemany):
        _statements.set(_statements.get() + 1)


def reset_query_count() -> None:
    _statements.set(0)


def current_query_count() -> int:
    return _statements.get()


class TimingMiddleware:
    """
    Pure ASGI middleware stamping ``X-Response-Time-Ms`` and
    ``X-Query-Count`` on HTTP responses.

    ``BaseHTTPMiddleware`` runs the endpoint in a separate task, which
    would hide the endpoint's counter updates from this context.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        reset_query_count()
        started = time.perf_counter()

        async def stamp(message: Message) -> None:
            if message["type"] == "http.response.start":
                elapsed_ms = (time.perf_counter() - started) * 1000
                statements = current_query_count()
                headers = MutableHeaders(scope=message)
                headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
                headers["X-Query-Count"] = str(statements)
                logger.info(
                    "%s %s %s %.2fms queries=%d",
                    scope["method"], scope["path"], message["status"], elapsed_ms, statements,
                )
            await send(message)

        await self.app(scope, receive, stamp)
