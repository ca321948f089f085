"""
Page Fetcher — Reads a paginated collection from the source contract.

The source exposes each collection through a count method and a paged view
method taking {"from_index", "limit"}:

    get_node_count    -> 120
    get_nodes {"from_index": 0,   "limit": 50}  -> [node_0 .. node_49]
    get_nodes {"from_index": 50,  "limit": 50}  -> [node_50 .. node_99]
    get_nodes {"from_index": 100, "limit": 20}  -> [node_100 .. node_119]

Pages have no ordering dependency on each other, so they are requested
concurrently, at most max_concurrency at a time. The result is assembled by
ascending from_index, never by the order pages happen to arrive in, so
element i of the result is element i of the source collection.

The fetcher does not re-check the total length: if the contract returns a
short page the dataset is simply shorter. The orchestrator prints the
expected and actual counts side by side so the operator can spot it.

Pipeline context:
    Used in Steps 2 and 3 of the orchestrator (nodes, then accounts).
"""

import asyncio
from typing import Any, List

from .errors import RemoteQueryError
from .remote import QueryClient


def page_offsets(total_count: int, page_size: int) -> List[int]:
    """Return the from_index of every page: 0, page_size, ... below total_count."""
    return list(range(0, total_count, page_size))


class PageFetcher:
    """Fetches every page of a collection and joins them in source order.

    Attributes:
        query_client: Read-only client for the source contract.
        page_size: Records requested per page.
        max_concurrency: Upper bound on page requests in flight.
        debug: If True, print every page as it arrives.
    """

    def __init__(
        self,
        query_client: QueryClient,
        page_size: int = 50,
        max_concurrency: int = 8,
        debug: bool = False,
    ):
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        if max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be positive, got {max_concurrency}")
        self.query_client = query_client
        self.page_size = page_size
        self.max_concurrency = max_concurrency
        self.debug = debug

    async def fetch_all(self, account_id: str, method_name: str, total_count: int) -> List[Any]:
        """Fetch total_count records from a paged view method.

        Args:
            account_id: The source contract.
            method_name: The paged view method (e.g., "get_accounts").
            total_count: Number of records reported by the count method.

        Returns:
            All records, in source order.

        Raises:
            ValueError: If total_count is negative.
            RemoteQueryError: If any page fails. The remaining page requests
                are cancelled; no partial result is returned.
        """
        if total_count < 0:
            raise ValueError(f"total_count must not be negative, got {total_count}")

        offsets = page_offsets(total_count, self.page_size)
        if not offsets:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = [
            asyncio.ensure_future(
                self._fetch_page(semaphore, account_id, method_name, offset, total_count)
            )
            for offset in offsets
        ]

        # gather() returns results in the order of `tasks`, i.e. by offset
        try:
            pages = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        records = []
        for page in pages:
            records.extend(page)
        return records

    async def _fetch_page(
        self,
        semaphore: asyncio.Semaphore,
        account_id: str,
        method_name: str,
        offset: int,
        total_count: int,
    ) -> List[Any]:
        limit = min(self.page_size, total_count - offset)
        async with semaphore:
            page = await self.query_client.view_function(
                account_id, method_name, {"from_index": offset, "limit": limit}
            )

        if not isinstance(page, list):
            raise RemoteQueryError(
                f"{account_id}.{method_name} returned {type(page).__name__} "
                f"instead of a list for from_index={offset}",
                account_id,
                method_name,
            )

        if self.debug:
            print(f"    {method_name} from {offset}: {len(page)} records")
        return page
