"""
Correlation Table

Links outbound execute requests to the result frames the peer sends back.

Each pending entry owns an asyncio.Future (the single-assignment result
slot) and a timer handle. Exactly one of resolve, reject or expiry settles
the future; settling removes the entry at once, so a result that races with
the timeout finds nothing and is ignored.

Expiry is driven by the timer, not by lookups: when the deadline passes the
entry is evicted even if nobody is waiting on it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from monkey_relay.errors import DuplicateRequestId, ExecutionTimeout, PeerReportedError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class CompletionStatus(str, Enum):
    """Lifecycle of a correlation entry."""
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


@dataclass
class PendingRequest:
    """
    Handle for one in-flight request.

    Callers keep the handle returned by begin() and pass it to wait(); the
    future outlives the table entry, so a result delivered before the
    caller starts waiting is not lost.
    """
    request_id: str
    timeout_seconds: float
    created_at: float = field(default_factory=time.time)
    deadline: float = 0.0  # event loop clock
    status: CompletionStatus = CompletionStatus.PENDING
    future: asyncio.Future = field(default=None, repr=False)
    _timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.status != CompletionStatus.PENDING


class CorrelationTable:
    """
    Pending execute requests keyed by request id.

    Must be used from a single event loop; none of the methods suspend,
    so they are atomic with respect to each other.
    """

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT_SECONDS):
        """
        Initialize the table.

        Args:
            default_timeout: Timeout applied when begin() is not given one
        """
        self._default_timeout = default_timeout
        self._pending: dict[str, PendingRequest] = {}

    def begin(self, request_id: str, timeout: float | None = None) -> PendingRequest:
        """
        Register a new pending request.

        Args:
            request_id: Unique request identifier
            timeout: Seconds until the request expires (default_timeout if None)

        Returns:
            PendingRequest handle to pass to wait()

        Raises:
            DuplicateRequestId: If request_id is already pending
        """
        if request_id in self._pending:
            raise DuplicateRequestId(request_id)

        loop = asyncio.get_running_loop()
        timeout = self._default_timeout if timeout is None else timeout

        pending = PendingRequest(
            request_id=request_id,
            timeout_seconds=timeout,
            deadline=loop.time() + timeout,
            future=loop.create_future(),
        )
        pending._timer = loop.call_at(pending.deadline, self._expire, request_id)
        self._pending[request_id] = pending

        logger.debug(f"Request pending: {request_id} (timeout {timeout:g}s)")
        return pending

    def resolve(self, request_id: str, value: Any) -> bool:
        """
        Settle a request with a value.

        Returns:
            True if a pending request was resolved, False if unknown
        """
        pending = self._settle(request_id, CompletionStatus.RESOLVED)
        if pending is None:
            return False
        if not pending.future.done():
            pending.future.set_result(value)
        return True

    def reject(self, request_id: str, error_message: str) -> bool:
        """
        Settle a request with a peer-reported error.

        Returns:
            True if a pending request was rejected, False if unknown
        """
        pending = self._settle(request_id, CompletionStatus.REJECTED)
        if pending is None:
            return False
        if not pending.future.done():
            pending.future.set_exception(PeerReportedError(request_id, error_message))
        return True

    async def wait(self, pending: PendingRequest) -> Any:
        """
        Wait for a request to reach a terminal state.

        Returns:
            The value the peer reported

        If the waiting task is cancelled the entry is evicted, so a result
        arriving afterwards is ignored like any other late result.

        Raises:
            ExecutionTimeout: If the deadline passed first
            PeerReportedError: If the peer reported a failure
        """
        try:
            return await asyncio.shield(pending.future)
        except asyncio.CancelledError:
            if self._pending.get(pending.request_id) is pending:
                self._settle(pending.request_id, CompletionStatus.CANCELLED)
                pending.future.cancel()
                logger.info(f"Request {pending.request_id} cancelled by caller")
            raise

    def _settle(self, request_id: str, status: CompletionStatus) -> PendingRequest | None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            logger.debug(f"Ignoring {status.value} for unknown request {request_id}")
            return None

        if pending._timer is not None:
            pending._timer.cancel()
            pending._timer = None
        pending.status = status
        return pending

    def _expire(self, request_id: str) -> None:
        pending = self._pending.get(request_id)
        if pending is None:
            return

        # call_at may run up to one clock tick early; never expire before the deadline
        loop = asyncio.get_running_loop()
        remaining = pending.deadline - loop.time()
        if remaining > 0:
            pending._timer = loop.call_later(remaining, self._expire, request_id)
            return

        self._settle(request_id, CompletionStatus.EXPIRED)
        if pending.future.done():
            return
        pending.future.set_exception(
            ExecutionTimeout(request_id, pending.timeout_seconds)
        )
        # Mark retrieved so an abandoned handle does not log "exception never retrieved"
        pending.future.exception()
        logger.warning(
            f"Request {request_id} expired after {pending.timeout_seconds:g}s"
        )

    def close(self) -> None:
        """Cancel every pending request (used on shutdown)."""
        for request_id in list(self._pending):
            pending = self._pending.pop(request_id)
            if pending._timer is not None:
                pending._timer.cancel()
            pending.future.cancel()
        logger.info("Correlation table closed")

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    @property
    def pending_count(self) -> int:
        """Number of in-flight requests."""
        return len(self._pending)
