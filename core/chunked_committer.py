"""
Chunked Committer — Writes a fetched collection to the destination in batches.

A single function call cannot carry a whole collection within its gas
budget, so the records are sent as consecutive slices:

    genesis_init_nodes {"nodes": records[0:20]}
    genesis_init_nodes {"nodes": records[20:40]}
    ...

Batches are strictly sequential. Each call is awaited before the next one is
submitted, because the destination contract updates its node and account
tables in place and expects batches in order. The first failure stops the
loop; batches already committed stay committed. The raised BatchCommitError
records the failed range, which is where a re-run should start.

Pipeline context:
    Used in Steps 6 and 7 of the orchestrator (nodes, then accounts).
"""

from typing import Any, Callable, List, Optional, Sequence

from config.settings import GAS_BUDGET

from .errors import BatchCommitError
from .remote import MutationClient

ProgressCallback = Callable[[int, int, int], None]


def chunk_offsets(total: int, chunk_size: int, start_index: int = 0) -> List[int]:
    """Return the start of every batch: start_index, start_index + chunk_size, ..."""
    return list(range(start_index, total, chunk_size))


def print_progress(kind: str) -> ProgressCallback:
    """Build a progress observer that prints one line per dispatched batch."""

    def report(range_start: int, range_end: int, total: int):
        print(f"  Initializing {kind} from {range_start} to {range_end} out of {total}")

    return report


class ChunkedCommitter:
    """Submits a list of records as sequential, fixed-size write calls.

    Attributes:
        mutation_client: Client that signs and submits the calls.
        chunk_size: Records per call.
        gas: Gas attached to every call.
        debug: If True, print each completed batch.
    """

    def __init__(
        self,
        mutation_client: MutationClient,
        chunk_size: int = 20,
        gas: int = GAS_BUDGET,
        debug: bool = False,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.mutation_client = mutation_client
        self.chunk_size = chunk_size
        self.gas = gas
        self.debug = debug

    async def commit_in_chunks(
        self,
        contract_id: str,
        method_name: str,
        items: Sequence[Any],
        args_key: str,
        start_index: int = 0,
        on_progress: Optional[ProgressCallback] = None,
    ) -> int:
        """Send items[start_index:] to contract_id in chunk_size batches.

        Args:
            contract_id: The destination contract.
            method_name: The change method (e.g., "genesis_init_accounts").
            items: The full, ordered collection.
            args_key: Argument name the batch is wrapped in (e.g., "accounts").
            start_index: First record to send; earlier records are assumed
                to be committed by a previous run.
            on_progress: Called with (range_start, range_end, total) as each
                batch is dispatched.

        Returns:
            The index one past the last committed record.

        Raises:
            ValueError: If start_index is negative.
            BatchCommitError: If a batch fails. No further batches are sent.
        """
        if start_index < 0:
            raise ValueError(f"start_index must not be negative, got {start_index}")

        total = len(items)
        committed = min(start_index, total)

        for offset in chunk_offsets(total, self.chunk_size, start_index):
            batch = list(items[offset:offset + self.chunk_size])
            range_end = offset + len(batch)

            if on_progress:
                on_progress(offset, range_end, total)

            try:
                await self.mutation_client.function_call(
                    contract_id, method_name, {args_key: batch}, self.gas
                )
            except Exception as e:
                raise BatchCommitError(
                    f"{method_name} failed for records {offset} to {range_end} "
                    f"out of {total}: {e}",
                    contract_id=contract_id,
                    method_name=method_name,
                    range_start=offset,
                    range_end=range_end,
                ) from e

            committed = range_end
            if self.debug:
                print(f"    Committed {committed}/{total}")

        return committed
