"""Batch progress tests"""

import pytest

from repair.progress import BatchProgress, BatchResult, run_in_batches


class TestBatchResult:
    """BatchResult tests"""

    def test_progress_snapshot(self) -> None:
        result = BatchResult(total=3, processed=2, updated=1, errors=[{"record_id": "x", "error": "boom"}])

        assert result.progress() == BatchProgress(processed=2, total=3, updated=1, errors=1)

    def test_to_dict(self) -> None:
        result = BatchResult(total=1, dry_run=True, items=[{"record_id": "a"}])

        data = result.to_dict()

        assert data["dry_run"] is True
        assert data["items"] == [{"record_id": "a"}]
        assert data["errors"] == []


class TestRunInBatches:
    """run_in_batches tests"""

    @pytest.mark.asyncio
    async def test_counts_updates(self) -> None:
        async def handle(item: int) -> bool:
            return item % 2 == 0

        result = await run_in_batches(range(5), handle, item_id=str, batch_size=2, batch_delay_sec=0)

        assert result.total == 5
        assert result.processed == 5
        assert result.updated == 3
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_run(self) -> None:
        async def handle(item: str) -> bool:
            if item == "bad":
                raise RuntimeError("cannot post")
            return True

        result = await run_in_batches(["a", "bad", "c"], handle, item_id=str, batch_size=10, batch_delay_sec=0)

        assert result.processed == 3
        assert result.updated == 2
        assert result.errors == [{"record_id": "bad", "error": "cannot post"}]

    @pytest.mark.asyncio
    async def test_progress_after_every_item(self) -> None:
        seen: list[BatchProgress] = []

        async def handle(item: int) -> bool:
            return True

        await run_in_batches(
            [1, 2, 3],
            handle,
            item_id=str,
            batch_size=2,
            batch_delay_sec=0.01,
            on_progress=seen.append,
        )

        assert [p.processed for p in seen] == [1, 2, 3]
        assert seen[-1] == BatchProgress(processed=3, total=3, updated=3, errors=0)

    @pytest.mark.asyncio
    async def test_empty(self) -> None:
        async def handle(item: int) -> bool:
            return True

        result = await run_in_batches([], handle, item_id=str, batch_size=10, batch_delay_sec=1)

        assert result.total == 0
        assert result.processed == 0
