"""
Remote — The two capabilities the pipeline needs from the network.

Reads and writes are deliberately separate types. Components on the fetch
side (PreconditionChecker, PageFetcher) only ever receive a QueryClient and
may issue calls concurrently. The ChunkedCommitter only ever receives a
MutationClient and awaits each call before starting the next, because every
write advances counters on the destination contract.

NearRpcClient and NearCliClient in near_client.py are the production
implementations; tests pass AsyncMock objects with the same methods.
"""

from typing import Any, Dict, Optional, Protocol


class QueryClient(Protocol):
    async def view_function(
        self, account_id: str, method_name: str, args: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Call a view method and return its decoded JSON result."""
        ...


class MutationClient(Protocol):
    async def function_call(
        self, contract_id: str, method_name: str, args: Dict[str, Any], gas: int
    ) -> None:
        """Submit a state-changing call. Raises RemoteMutationError on failure."""
        ...
