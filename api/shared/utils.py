"""Request-handling helpers shared by feature routers."""
import asyncio
import json
from typing import Any, Awaitable, TypeVar

import structlog
from starlette.requests import Request

from api.shared.exceptions import ClientDisconnectedError

logger = structlog.get_logger("fixie.api")

T = TypeVar("T")


async def read_json_body(request: Request) -> Any:
    """Decode the request body as JSON; an empty or malformed body yields ``{}``."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {}


async def run_until_disconnected(
    request: Request, work: Awaitable[T], *, poll_interval: float = 0.5
) -> T:
    """Await ``work``, cancelling it if the client goes away first."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("request.client_disconnected", path=request.url.path)
                task.cancel()
                await asyncio.wait({task})
                raise ClientDisconnectedError(request.url.path)
    finally:
        if not task.done():
            task.cancel()
