import asyncio
import logging
from typing import Dict, List, Optional, Protocol, Sequence

from .errors import FetchError
from .models import QueryPage, RawRecord

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class PageSource(Protocol):
    def query_database(
        self, database_id: str, start_cursor: Optional[str] = None, page_size: int = PAGE_SIZE
    ) -> QueryPage: ...


async def fetch_all(
    client: PageSource, source_id: str, page_size: int = PAGE_SIZE
) -> List[RawRecord]:
    """
    Walk a cursor-paginated source to the end and return every record in page order.

    Pages are requested one after another since each needs the previous cursor.
    The blocking request runs in the default executor; between pages the task
    can be cancelled, which stops further requests and drops the accumulation.
    """
    loop = asyncio.get_running_loop()
    records: List[RawRecord] = []
    cursor: Optional[str] = None
    pages = 0

    while True:
        page = await loop.run_in_executor(
            None, client.query_database, source_id, cursor, page_size
        )
        if not isinstance(page, QueryPage):
            raise FetchError("Malformed page from upstream", source_id=source_id)
        records.extend(page.results)
        pages += 1

        cursor = page.next_cursor if page.has_more else None
        if not cursor:
            break

    logger.debug("Fetched %d records in %d pages from %s", len(records), pages, source_id)
    return records


async def gather_or_cancel(*aws):
    """Run awaitables concurrently; when any of them fails, cancel the rest and re-raise."""
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


async def fetch_many(
    client: PageSource,
    source_ids: Sequence[str],
    timeout: Optional[float] = None,
) -> Dict[str, List[RawRecord]]:
    """
    Fetch independent sources concurrently. Either every source completes or a
    FetchError is raised; a timeout covers the whole batch.
    """
    unique = list(dict.fromkeys(source_ids))
    results = await with_timeout(
        gather_or_cancel(*(fetch_all(client, sid) for sid in unique)), timeout
    )
    return dict(zip(unique, results))


async def with_timeout(coro, timeout: Optional[float]):
    """Run a fetch pipeline under an overall timeout, mapping expiry to FetchError."""
    if timeout is None:
        return await coro
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("Fetch pipeline timed out after %ss", timeout)
        raise FetchError(f"Fetch timed out after {timeout}s") from exc
