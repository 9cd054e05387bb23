"""
Batch progress reporting

Every batch repair reports {processed, total, updated, errors} after each
item and keeps going when an item fails.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BatchProgress:
    """Snapshot passed to on_progress after each item"""

    processed: int
    total: int
    updated: int
    errors: int


ProgressCallback = Callable[[BatchProgress], None]


@dataclass
class BatchResult:
    """Outcome of a batch repair

    `items` lists what a dry run would touch.
    """

    total: int = 0
    processed: int = 0
    updated: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    dry_run: bool = False
    items: list[dict[str, Any]] = field(default_factory=list)

    def progress(self) -> BatchProgress:
        return BatchProgress(
            processed=self.processed,
            total=self.total,
            updated=self.updated,
            errors=len(self.errors),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "processed": self.processed,
            "updated": self.updated,
            "errors": list(self.errors),
            "dry_run": self.dry_run,
            "items": list(self.items),
        }


async def run_in_batches(
    items: Iterable[T],
    handle: Callable[[T], Awaitable[bool]],
    item_id: Callable[[T], str],
    batch_size: int,
    batch_delay_sec: float,
    on_progress: ProgressCallback | None = None,
) -> BatchResult:
    """Process items in batches, collecting per-item failures

    Args:
        items: work items
        handle: coroutine returning True when the item was updated; raising
            records an error for the item
        item_id: id reported with an item's error
        batch_size: items per batch
        batch_delay_sec: pause between batches
        on_progress: called after every item

    Returns:
        BatchResult
    """
    work = list(items)
    result = BatchResult(total=len(work))

    for start in range(0, len(work), batch_size):
        for item in work[start:start + batch_size]:
            try:
                if await handle(item):
                    result.updated += 1
            except Exception as e:
                logger.error(f"Batch item {item_id(item)} failed: {e}")
                result.errors.append({"record_id": item_id(item), "error": str(e)})

            result.processed += 1
            if on_progress is not None:
                on_progress(result.progress())

        if start + batch_size < len(work) and batch_delay_sec > 0:
            await asyncio.sleep(batch_delay_sec)

    return result
