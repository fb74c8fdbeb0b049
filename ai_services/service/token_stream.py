from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
import inspect
import logging
from typing import Any

from ai_services.errors import TokenStreamError
from ai_services.models.base import Response

logger = logging.getLogger(__name__)

TokenSink = Callable[[str], Awaitable[None]]
TurnRunner = Callable[[TokenSink], Awaitable[Response]]

_SENTINEL = object()


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class TokenStream:
    """Handle for a streamed answer that has not been started yet.

    Register ``on_next`` (and usually ``on_complete`` and ``on_error``) and
    call ``start()`` from a running event loop, or consume the tokens with
    ``async for``. A stream can be started once.
    """

    def __init__(self, run: TurnRunner) -> None:
        self._run = run
        self._on_next: Callable[[str], Any] | None = None
        self._on_complete: Callable[[Response], Any] | None = None
        self._on_error: Callable[[BaseException], Any] | None = None
        self._ignore_errors = False
        self._started = False
        self._response: Response | None = None

    @property
    def response(self) -> Response | None:
        """Final response once the stream completed successfully."""

        return self._response

    def on_next(self, callback: Callable[[str], Any]) -> TokenStream:
        self._on_next = callback
        return self

    def on_complete(self, callback: Callable[[Response], Any]) -> TokenStream:
        self._on_complete = callback
        return self

    def on_error(self, callback: Callable[[BaseException], Any]) -> TokenStream:
        self._on_error = callback
        return self

    def ignore_errors(self) -> TokenStream:
        self._ignore_errors = True
        return self

    def start(self) -> asyncio.Task[Response | None]:
        if self._on_next is None:
            raise TokenStreamError("on_next must be registered before starting the stream")
        if self._on_error is not None and self._ignore_errors:
            raise TokenStreamError("on_error and ignore_errors are mutually exclusive")
        loop = asyncio.get_running_loop()
        self._mark_started()
        return loop.create_task(self._drive())

    async def __aiter__(self) -> AsyncIterator[str]:
        self._mark_started()
        queue: asyncio.Queue[str | object] = asyncio.Queue()

        async def produce() -> None:
            try:
                self._response = await self._run(queue.put)
            finally:
                await queue.put(_SENTINEL)

        task = asyncio.create_task(produce())
        try:
            while True:
                token = await queue.get()
                if token is _SENTINEL:
                    break
                yield token
            await task
        finally:
            if not task.done():
                task.cancel()

    def _mark_started(self) -> None:
        if self._started:
            raise TokenStreamError("token stream was already started")
        self._started = True

    async def _emit(self, token: str) -> None:
        assert self._on_next is not None
        await _invoke(self._on_next, token)

    async def _drive(self) -> Response | None:
        try:
            response = await self._run(self._emit)
            self._response = response
            if self._on_complete is not None:
                await _invoke(self._on_complete, response)
        except Exception as exc:
            if self._on_error is not None:
                await _invoke(self._on_error, exc)
                return None
            if self._ignore_errors:
                logger.warning("ignoring token stream failure", exc_info=exc)
                return None
            logger.exception("token stream failed without an error handler")
            raise
        return response
