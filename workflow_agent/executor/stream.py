"""Cancellable fragment streams and explicit step outcomes.

A task's output arrives as an async sequence of text fragments. The
orchestrator never iterates that sequence directly: it wraps it in a
FragmentStream bound to the run's CancellationToken, then drains it with
drain_stream(), which turns normal completion, upstream failure and
cancellation into a StepOutcome value the execution loop branches on.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag shared by one run.

    Pass ``token.is_cancelled`` anywhere a ``cancellation_check`` callable
    is expected.
    """

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def is_cancelled(self) -> bool:
        return self._cancelled


class OutcomeKind(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class StepOutcome:
    """How consuming one task's stream ended."""

    kind: OutcomeKind
    fragment_count: int = 0
    error: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.kind == OutcomeKind.COMPLETED

    @property
    def failed(self) -> bool:
        return self.kind == OutcomeKind.FAILED

    @property
    def cancelled(self) -> bool:
        return self.kind == OutcomeKind.CANCELLED


class FragmentStream:
    """Async iterator over fragments that stops once its token is cancelled.

    The token is checked before every fragment is pulled from the source.
    Closing the stream closes the source too, so an upstream HTTP stream
    is released as soon as the consumer lets go of it.
    """

    def __init__(
        self,
        source: AsyncIterator[str],
        token: CancellationToken,
        label: str = "",
    ):
        self._source = source
        self._token = token
        self._label = label
        self._closed = False

    @property
    def cancelled(self) -> bool:
        return self._token.is_cancelled()

    def __aiter__(self) -> "FragmentStream":
        return self

    async def __anext__(self) -> str:
        if self._closed or self._token.is_cancelled():
            await self.aclose()
            raise StopAsyncIteration
        return await self._source.__anext__()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()
            logger.debug(f"[{self._label}] Fragment source closed")


async def drain_stream(
    stream: FragmentStream,
    on_fragment: Callable[[str], None],
) -> StepOutcome:
    """Consume a stream, applying each non-empty fragment in arrival order.

    Upstream failures become a FAILED outcome carrying the error message;
    fragments already applied stay applied. asyncio cancellation is not
    caught and propagates to the caller.
    """
    count = 0
    try:
        async for fragment in stream:
            if not fragment:
                continue
            count += 1
            on_fragment(fragment)
    except Exception as e:
        if stream.cancelled:
            return StepOutcome(OutcomeKind.CANCELLED, count)
        return StepOutcome(OutcomeKind.FAILED, count, error=str(e) or type(e).__name__)
    finally:
        await stream.aclose()

    if stream.cancelled:
        return StepOutcome(OutcomeKind.CANCELLED, count)
    return StepOutcome(OutcomeKind.COMPLETED, count)
