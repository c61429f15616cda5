"""
Cooperative cancellation for completion requests.

A CancellationToken is created per agent run. Transports check it before
handling each streamed chunk and race blocking awaits against it, so
``AgentLoop.stop()`` unblocks a request that is waiting on the network.
"""

import asyncio
from typing import Awaitable, TypeVar

T = TypeVar("T")

GENERATION_ABORTED = "Generation aborted"


class GenerationAborted(Exception):
    """Raised inside a transport when its cancellation token fires."""

    def __init__(self, message: str = GENERATION_ABORTED):
        super().__init__(message)


class CancellationToken:
    """
    A one-shot cancellation signal.

    Example:
        token = CancellationToken()
        task = asyncio.create_task(transport.generate(..., cancel_token=token))
        token.cancel()   # the transport stops reading and reports an abort
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationAborted()


async def run_cancellable(awaitable: Awaitable[T], token: CancellationToken | None) -> T:
    """
    Await *awaitable*, abandoning it if *token* is cancelled first.

    Raises:
        GenerationAborted: The token fired before the awaitable finished
    """
    if token is None:
        return await awaitable

    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise GenerationAborted()
    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()

    if work in done:
        return work.result()

    work.cancel()
    try:
        await work
    except (asyncio.CancelledError, GenerationAborted):
        pass
    raise GenerationAborted()
