"""
Tests for the correlation table.
"""

import asyncio

import pytest

from monkey_relay.correlation import CompletionStatus, CorrelationTable
from monkey_relay.errors import DuplicateRequestId, ExecutionTimeout, PeerReportedError


class TestCorrelationTable:
    """Test CorrelationTable settlement and expiry."""

    @pytest.mark.asyncio
    async def test_resolve_delivers_value(self):
        table = CorrelationTable()
        pending = table.begin("req_1", timeout=5)

        async def deliver():
            await asyncio.sleep(0.01)
            assert table.resolve("req_1", {"title": "Example"})

        asyncio.create_task(deliver())
        value = await table.wait(pending)

        assert value == {"title": "Example"}
        assert pending.status == CompletionStatus.RESOLVED
        assert not table.is_pending("req_1")
        assert table.pending_count == 0

    @pytest.mark.asyncio
    async def test_result_before_wait_is_not_lost(self):
        table = CorrelationTable()
        pending = table.begin("req_1", timeout=5)

        table.resolve("req_1", 42)

        assert pending.done
        assert await table.wait(pending) == 42

    @pytest.mark.asyncio
    async def test_null_value_is_a_success(self):
        table = CorrelationTable()
        pending = table.begin("req_1", timeout=5)

        table.resolve("req_1", None)

        assert await table.wait(pending) is None

    @pytest.mark.asyncio
    async def test_reject_raises_peer_error(self):
        table = CorrelationTable()
        pending = table.begin("req_1", timeout=5)

        assert table.reject("req_1", "No matching tab")

        with pytest.raises(PeerReportedError) as exc_info:
            await table.wait(pending)
        assert exc_info.value.message == "No matching tab"
        assert pending.status == CompletionStatus.REJECTED

    @pytest.mark.asyncio
    async def test_duplicate_request_id_raises(self):
        table = CorrelationTable()
        table.begin("req_1", timeout=5)

        with pytest.raises(DuplicateRequestId):
            table.begin("req_1", timeout=5)

    @pytest.mark.asyncio
    async def test_request_id_reusable_after_settlement(self):
        table = CorrelationTable()
        table.begin("req_1", timeout=5)
        table.resolve("req_1", 1)

        pending = table.begin("req_1", timeout=5)

        assert table.is_pending("req_1")
        table.resolve("req_1", 2)
        assert await table.wait(pending) == 2

    @pytest.mark.asyncio
    async def test_unknown_id_is_ignored(self):
        table = CorrelationTable()
        pending = table.begin("req_1", timeout=5)

        assert table.resolve("req_other", 1) is False
        assert table.reject("req_other", "boom") is False

        assert table.is_pending("req_1")
        assert not pending.done

    @pytest.mark.asyncio
    async def test_timeout_not_before_deadline(self):
        table = CorrelationTable()
        loop = asyncio.get_running_loop()
        started = loop.time()
        pending = table.begin("req_1", timeout=0.2)

        with pytest.raises(ExecutionTimeout) as exc_info:
            await table.wait(pending)

        assert loop.time() >= pending.deadline >= started + 0.2
        assert exc_info.value.request_id == "req_1"
        assert exc_info.value.timeout_seconds == 0.2
        assert pending.status == CompletionStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_expiry_evicts_without_a_waiter(self):
        table = CorrelationTable()
        pending = table.begin("req_1", timeout=0.05)

        await asyncio.sleep(0.2)

        assert not table.is_pending("req_1")
        assert pending.status == CompletionStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_late_result_is_ignored(self):
        table = CorrelationTable()
        expired = table.begin("req_old", timeout=0.05)
        live = table.begin("req_live", timeout=5)

        await asyncio.sleep(0.2)

        assert table.resolve("req_old", "late") is False
        assert expired.status == CompletionStatus.EXPIRED
        assert table.is_pending("req_live")
        assert not live.done

    @pytest.mark.asyncio
    async def test_settled_request_does_not_expire(self):
        table = CorrelationTable()
        pending = table.begin("req_1", timeout=0.05)
        table.resolve("req_1", "ok")

        await asyncio.sleep(0.15)

        assert pending.status == CompletionStatus.RESOLVED
        assert await table.wait(pending) == "ok"

    @pytest.mark.asyncio
    async def test_default_timeout_applies(self):
        table = CorrelationTable(default_timeout=7.5)

        pending = table.begin("req_1")

        assert pending.timeout_seconds == 7.5
        table.close()

    @pytest.mark.asyncio
    async def test_close_cancels_pending(self):
        table = CorrelationTable()
        pending = table.begin("req_1", timeout=5)

        table.close()

        assert table.pending_count == 0
        with pytest.raises(asyncio.CancelledError):
            await table.wait(pending)

    @pytest.mark.asyncio
    async def test_cancelled_waiter_evicts_entry(self):
        table = CorrelationTable()
        pending = table.begin("req_1", timeout=5)
        waiter = asyncio.create_task(table.wait(pending))
        await asyncio.sleep(0)

        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert pending.status == CompletionStatus.CANCELLED
        assert not table.is_pending("req_1")
        assert table.resolve("req_1", "late") is False
        assert table.reject("req_1", "late") is False

    @pytest.mark.asyncio
    async def test_cancelled_waiter_leaves_other_requests(self):
        table = CorrelationTable()
        cancelled = table.begin("req_1", timeout=0.05)
        live = table.begin("req_2", timeout=5)
        waiter = asyncio.create_task(table.wait(cancelled))
        await asyncio.sleep(0)
        waiter.cancel()

        # Past the cancelled request's deadline; its timer must not fire
        await asyncio.sleep(0.15)

        assert table.resolve("req_2", "ok")
        assert await table.wait(live) == "ok"

    @pytest.mark.asyncio
    async def test_concurrent_requests_settle_independently(self):
        table = CorrelationTable()
        handles = [table.begin(f"req_{i}", timeout=5) for i in range(5)]

        for i in reversed(range(5)):
            table.resolve(f"req_{i}", i * 10)

        values = await asyncio.gather(*(table.wait(h) for h in handles))
        assert values == [0, 10, 20, 30, 40]
