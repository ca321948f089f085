"""
Migration Orchestrator — Pipeline coordination for the social DB migration.

This module is the core of the migrator. It ties together all other modules
(NearRpcClient, NearCliClient, PreconditionChecker, PageFetcher,
ChunkedCommitter, balance_aggregator) into a sequential 7-step workflow:

  Step 1: PRECONDITIONS
      The source contract must report ReadOnly (its data can no longer
      change) and the destination must report Genesis (it has not been
      populated and still accepts the genesis_init_* methods).

  Step 2: FETCH NODES
      get_node_count on the source, then every page of get_nodes,
      requested concurrently and joined in source order.

  Step 3: FETCH ACCOUNTS
      get_account_count and get_accounts, the same way.

  Step 4: REPORT
      Prints the node and account counts and the total storage balance of
      all accounts in NEAR. A malformed balance stops the run here, before
      anything has been written. In dry-run mode the run ends after this step.

  Step 5: INITIALIZE NODE COUNT
      genesis_init_node_count {"node_count": N} on the destination, so new
      node ids continue after the migrated ones.

  Step 6: COMMIT NODES
      genesis_init_nodes {"nodes": [...]} in sequential batches.

  Step 7: COMMIT ACCOUNTS
      genesis_init_accounts {"accounts": [...]} in sequential batches. The
      destination looks up each account's node, so every node batch must be
      committed before the first account batch.

The run is a single linear state machine (MigrationState). A failure at any
step stops it in the last state reached; nothing is retried or rolled back.
When a write batch fails, the run results carry the failed range and a
resume hint (NODES_START_INDEX / ACCOUNTS_START_INDEX) for the re-run.

Typical usage:
    config = load_config("./.env")
    orchestrator = MigrationOrchestrator(config)
    results = orchestrator.run()
    orchestrator.print_summary(results)
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, List, Optional

from config.settings import MigrationConfig

from .balance_aggregator import sum_balances, format_near, to_near
from .chunked_committer import ChunkedCommitter, print_progress
from .errors import BatchCommitError, RemoteQueryError
from .near_client import NearRpcClient, NearCliClient
from .output_manager import OutputManager, run_name_for
from .page_fetcher import PageFetcher
from .precondition_checker import PreconditionChecker
from .remote import QueryClient, MutationClient

RESULTS_FILENAME = "migration_results.json"


class MigrationState(Enum):
    START = "start"
    PRECONDITIONS_OK = "preconditions_ok"
    NODES_FETCHED = "nodes_fetched"
    ACCOUNTS_FETCHED = "accounts_fetched"
    REPORTED = "reported"
    DEST_NODE_COUNT_INIT = "dest_node_count_init"
    NODES_COMMITTED = "nodes_committed"
    ACCOUNTS_COMMITTED = "accounts_committed"
    DONE = "done"


# Which resume setting applies when a batch of this method fails
_RESUME_SETTINGS = {
    "genesis_init_nodes": ("nodes_committed", "NODES_START_INDEX"),
    "genesis_init_accounts": ("accounts_committed", "ACCOUNTS_START_INDEX"),
}


class MigrationOrchestrator:
    """Orchestrates the social DB migration pipeline.

    Attributes:
        config: The run's MigrationConfig.
        debug: Whether to enable verbose output.
        dry_run: If True, stop after the report without writing anything.
        query_client: Read-only client (source and destination status, pages).
        mutation_client: Write client for the destination.
        output_manager: Handles the timestamped results folder and retention.
        state: The last MigrationState reached.
        nodes: Fetched node records, in source order.
        accounts: Fetched [account_id, account] records, in source order.
        progress: Index one past the last committed record, per collection.
    """

    def __init__(
        self,
        config: MigrationConfig,
        query_client: Optional[QueryClient] = None,
        mutation_client: Optional[MutationClient] = None,
        output_manager: Optional[OutputManager] = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Validated run configuration.
            query_client: Overrides the default NearRpcClient.
            mutation_client: Overrides the default NearCliClient.
            output_manager: Overrides the default OutputManager.
        """
        self.config = config
        self.debug = config.debug
        self.dry_run = config.dry_run

        self._owns_query_client = query_client is None
        self.query_client = query_client or NearRpcClient(
            config.rpc_url, config.request_timeout, config.debug
        )
        self.mutation_client = mutation_client or NearCliClient(
            config.signer_account_id,
            config.network_id,
            config.near_cli_bin,
            config.debug,
        )
        self.output_manager = output_manager or OutputManager(
            config.output_dir,
            run_name_for(config.source_account_id, config.destination_account_id),
            config.retention_days,
        )

        self.state = MigrationState.START
        self.nodes: List[Any] = []
        self.accounts: List[Any] = []
        self.progress: Dict[str, Optional[int]] = {
            "nodes_committed": None,
            "accounts_committed": None,
        }

    def run(self) -> Dict[str, Any]:
        """Execute the full migration and return the run results.

        Returns:
            A dict containing:
                - started_at/completed_at: ISO timestamps
                - migrator: "near-social-db"
                - config: Network, accounts and batch settings
                - state: Name of the last MigrationState reached
                - success: True if the run reached DONE (or REPORTED in dry-run)
                - summary: Node/account counts and total balance
                - progress: nodes_committed / accounts_committed offsets
                - resume_hint: Setting to use for the re-run (if a batch failed)
                - error/error_type: Failure description (if success=False)
        """
        cfg = self.config
        results = {
            "started_at": datetime.now(timezone.utc).isoformat(),
            "migrator": "near-social-db",
            "config": {
                "network_id": cfg.network_id,
                "rpc_url": cfg.rpc_url,
                "source_account_id": cfg.source_account_id,
                "destination_account_id": cfg.destination_account_id,
                "signer_account_id": cfg.signer_account_id,
                "page_size": cfg.page_size,
                "chunk_size": cfg.chunk_size,
                "gas": cfg.gas,
                "nodes_start_index": cfg.nodes_start_index,
                "accounts_start_index": cfg.accounts_start_index,
                "dry_run": self.dry_run,
            },
            "success": False,
        }

        try:
            asyncio.run(self.migrate(results))
            results["success"] = True
        except Exception as e:
            results["error"] = str(e)
            results["error_type"] = type(e).__name__
            if isinstance(e, BatchCommitError) and e.method_name in _RESUME_SETTINGS:
                results["resume_hint"] = self._resume_hint(e)
            print(f"\n  ERROR: {e}")
            if self.debug:
                import traceback
                traceback.print_exc()
        finally:
            if self._owns_query_client:
                self.query_client.close()

        results["state"] = self.state.name
        results["progress"] = dict(self.progress)
        results["completed_at"] = datetime.now(timezone.utc).isoformat()

        if self.config.save_results:
            results_path = self.output_manager.save_json(RESULTS_FILENAME, results)
            print(f"\n  Results saved to: {results_path}")

        return results

    async def migrate(self, results: Dict[str, Any]):
        """Walk the state machine from START to DONE (or REPORTED in dry-run).

        Args:
            results: The run results dict; the summary is filled in at Step 4.
        """
        cfg = self.config
        source = cfg.source_account_id
        destination = cfg.destination_account_id

        # Step 1: Both contracts must be in the right lifecycle state
        _print_step(1, "PRECONDITIONS")
        checker = PreconditionChecker(self.query_client, self.debug)
        await checker.check(source, destination)
        print(f"  Source {source} is ReadOnly")
        print(f"  Destination {destination} is in Genesis")
        self._advance(MigrationState.PRECONDITIONS_OK)

        fetcher = PageFetcher(self.query_client, cfg.page_size, cfg.max_concurrency, self.debug)

        # Step 2: Nodes
        _print_step(2, "FETCH NODES")
        node_count = await self._get_count(source, "get_node_count")
        self.nodes = await fetcher.fetch_all(source, "get_nodes", node_count)
        print(f"  Num nodes: {len(self.nodes)} (reported: {node_count})")
        self._advance(MigrationState.NODES_FETCHED)

        # Step 3: Accounts
        _print_step(3, "FETCH ACCOUNTS")
        account_count = await self._get_count(source, "get_account_count")
        self.accounts = await fetcher.fetch_all(source, "get_accounts", account_count)
        print(f"  Num accounts: {len(self.accounts)} (reported: {account_count})")
        self._advance(MigrationState.ACCOUNTS_FETCHED)

        # Step 4: Report before the first write
        _print_step(4, "REPORT")
        total_balance = sum_balances(self.accounts)
        print(f"  Num nodes: {len(self.nodes)}")
        print(f"  Num accounts: {len(self.accounts)}")
        print(f"  Total balance: {format_near(total_balance)}")
        results["summary"] = {
            "node_count": node_count,
            "nodes_fetched": len(self.nodes),
            "account_count": account_count,
            "accounts_fetched": len(self.accounts),
            "total_balance_yocto": str(total_balance),
            "total_balance_near": str(to_near(total_balance)),
        }
        self._advance(MigrationState.REPORTED)

        if self.dry_run:
            print("\n  Dry run: skipping all writes to the destination")
            return

        # Step 5: Node count goes first so new node ids continue after ours
        _print_step(5, "INITIALIZE NODE COUNT")
        print(f"  Initializing node count to {node_count}")
        await self.mutation_client.function_call(
            destination, "genesis_init_node_count", {"node_count": node_count}, cfg.gas
        )
        self._advance(MigrationState.DEST_NODE_COUNT_INIT)

        committer = ChunkedCommitter(self.mutation_client, cfg.chunk_size, cfg.gas, self.debug)

        # Step 6: Every node batch before any account batch
        _print_step(6, "COMMIT NODES")
        if cfg.nodes_start_index:
            print(f"  Resuming from node {cfg.nodes_start_index}")
        self.progress["nodes_committed"] = await committer.commit_in_chunks(
            destination,
            "genesis_init_nodes",
            self.nodes,
            "nodes",
            start_index=cfg.nodes_start_index,
            on_progress=print_progress("nodes"),
        )
        self._advance(MigrationState.NODES_COMMITTED)

        # Step 7: Accounts
        _print_step(7, "COMMIT ACCOUNTS")
        if cfg.accounts_start_index:
            print(f"  Resuming from account {cfg.accounts_start_index}")
        self.progress["accounts_committed"] = await committer.commit_in_chunks(
            destination,
            "genesis_init_accounts",
            self.accounts,
            "accounts",
            start_index=cfg.accounts_start_index,
            on_progress=print_progress("accounts"),
        )
        self._advance(MigrationState.ACCOUNTS_COMMITTED)

        self._advance(MigrationState.DONE)

    async def _get_count(self, account_id: str, method_name: str) -> int:
        count = await self.query_client.view_function(account_id, method_name)
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise RemoteQueryError(
                f"{account_id}.{method_name} returned {count!r}, expected a non-negative integer",
                account_id,
                method_name,
            )
        return count

    def _resume_hint(self, error: BatchCommitError) -> str:
        """Record the failed batch's start as progress and build the re-run settings."""
        progress_key, setting = _RESUME_SETTINGS[error.method_name]
        self.progress[progress_key] = error.range_start
        hint = f"{setting}={error.range_start}"
        # Nodes were all committed if the failure happened on accounts
        if progress_key == "accounts_committed" and self.progress["nodes_committed"] is not None:
            hint = f"NODES_START_INDEX={self.progress['nodes_committed']} {hint}"
        return hint

    def _advance(self, state: MigrationState):
        self.state = state
        if self.debug:
            print(f"  State: {state.name}")

    def print_summary(self, results: Dict):
        """Print a human-readable execution summary.

        Args:
            results: The dict returned by run().
        """
        print(f"\n{'='*60}")
        print("MIGRATION COMPLETE" if results.get("success") else "MIGRATION FAILED")
        print("="*60)
        print(f"Status: {'SUCCESS' if results.get('success') else 'FAILED'}")
        print(f"State: {results.get('state', 'N/A')}")

        summary = results.get("summary", {})
        if summary:
            print(f"Nodes: {summary.get('nodes_fetched', 0)}")
            print(f"Accounts: {summary.get('accounts_fetched', 0)}")
            print(f"Total balance: {summary.get('total_balance_near', 'N/A')} NEAR")

        progress = results.get("progress", {})
        for key in ("nodes_committed", "accounts_committed"):
            if progress.get(key) is not None:
                print(f"{key.replace('_', ' ').capitalize()}: {progress[key]}")

        if results.get("error"):
            print(f"Error: {results['error']}")
        if results.get("resume_hint"):
            print(f"Re-run with: {results['resume_hint']}")


def _print_step(number: int, title: str):
    print(f"\n{'='*60}")
    print(f"STEP {number}: {title}")
    print("="*60)
