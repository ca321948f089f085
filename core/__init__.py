"""
Core package — The migration pipeline modules.

This package contains all the modules that implement the 7-step migration
pipeline. Each module handles one concern:

  orchestrator.py          Pipeline coordination and state machine (Steps 1-7)
  near_client.py           JSON-RPC reads and NEAR CLI writes
  remote.py                Read/write client protocols
  precondition_checker.py  Source/destination status gate (Step 1)
  page_fetcher.py          Concurrent paginated reads (Steps 2-3)
  balance_aggregator.py    Exact total of account storage balances (Step 4)
  chunked_committer.py     Sequential batched writes (Steps 6-7)
  output_manager.py        Timestamped results folders and retention
  errors.py                Failure types
"""

from .orchestrator import MigrationOrchestrator, MigrationState
from .near_client import NearRpcClient, NearCliClient
from .precondition_checker import PreconditionChecker, ContractStatus
from .page_fetcher import PageFetcher, page_offsets
from .balance_aggregator import sum_balances, to_near, format_near
from .chunked_committer import ChunkedCommitter, chunk_offsets
from .output_manager import OutputManager
from .errors import (
    MigrationError,
    PreconditionError,
    RemoteQueryError,
    ParseError,
    RemoteMutationError,
    BatchCommitError,
)
