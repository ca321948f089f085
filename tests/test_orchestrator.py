"""Tests for core.orchestrator.MigrationOrchestrator."""

import json
import os
from unittest.mock import MagicMock

import pytest

from config.settings import MigrationConfig
from core.errors import RemoteMutationError
from core.orchestrator import MigrationOrchestrator, MigrationState
from core.output_manager import OutputManager

SOURCE = "v0.social08.testnet"
DESTINATION = "v1.social08.testnet"
GAS = 300 * 10**12
ONE_NEAR = 10**24


class FakeNear:
    """In-memory source and destination contracts.

    Serves the view methods from `nodes` and `accounts` and records every
    call. `fail_on` is a (method_name, call_number) pair; that write fails.
    """

    def __init__(self, nodes, accounts, statuses=None, fail_on=None, counts=None):
        self.nodes = nodes
        self.accounts = accounts
        self.statuses = statuses or {SOURCE: "ReadOnly", DESTINATION: "Genesis"}
        self.fail_on = fail_on
        self.counts = counts or {}
        self.queries = []
        self.mutations = []

    async def view_function(self, account_id, method_name, args=None):
        self.queries.append((account_id, method_name, args))
        if method_name == "get_status":
            return self.statuses[account_id]
        if method_name == "get_node_count":
            return self.counts.get(method_name, len(self.nodes))
        if method_name == "get_account_count":
            return self.counts.get(method_name, len(self.accounts))
        records = self.nodes if method_name == "get_nodes" else self.accounts
        start = args["from_index"]
        return records[start:start + args["limit"]]

    async def function_call(self, contract_id, method_name, args, gas):
        self.mutations.append((contract_id, method_name, args, gas))
        if self.fail_on:
            fail_method, fail_number = self.fail_on
            made = sum(1 for m in self.mutations if m[1] == fail_method)
            if method_name == fail_method and made == fail_number:
                raise RemoteMutationError("Smart contract panicked", contract_id, method_name)

    def calls_to(self, method_name):
        return [m for m in self.mutations if m[1] == method_name]


def make_nodes(count):
    return [{"node_id": i, "children": {f"user{i}.testnet": {"Node": i + 1}}} for i in range(count)]


def make_accounts(count, balance=ONE_NEAR):
    return [
        [f"user{i}.testnet", {"storage_balance": str(balance), "used_bytes": 200, "node_id": i + 1}]
        for i in range(count)
    ]


def make_config(**overrides):
    values = dict(
        network_id="testnet",
        rpc_url="https://rpc.testnet.near.org",
        source_account_id=SOURCE,
        destination_account_id=DESTINATION,
        signer_account_id=DESTINATION,
        page_size=50,
        chunk_size=20,
        gas=GAS,
        save_results=False,
    )
    values.update(overrides)
    return MigrationConfig(**values)


def make_orchestrator(near, **config_overrides):
    return MigrationOrchestrator(
        make_config(**config_overrides),
        query_client=near,
        mutation_client=near,
        output_manager=MagicMock(),
    )


def test_full_migration():
    near = FakeNear(make_nodes(120), make_accounts(45))
    orchestrator = make_orchestrator(near)

    results = orchestrator.run()

    assert results["success"] is True
    assert results["state"] == "DONE"
    assert orchestrator.state is MigrationState.DONE

    pages = sorted(
        (args["from_index"], args["limit"]) for _, method, args in near.queries if method == "get_nodes"
    )
    assert pages == [(0, 50), (50, 50), (100, 20)]

    assert near.mutations[0] == (DESTINATION, "genesis_init_node_count", {"node_count": 120}, GAS)

    node_calls = near.calls_to("genesis_init_nodes")
    assert len(node_calls) == 6
    assert all(len(args["nodes"]) == 20 for _, _, args, _ in node_calls)
    assert [n for _, _, args, _ in node_calls for n in args["nodes"]] == near.nodes

    account_calls = near.calls_to("genesis_init_accounts")
    assert [len(args["accounts"]) for _, _, args, _ in account_calls] == [20, 20, 5]
    assert [a for _, _, args, _ in account_calls for a in args["accounts"]] == near.accounts

    assert all(gas == GAS and contract == DESTINATION for contract, _, _, gas in near.mutations)
    assert results["summary"]["total_balance_near"] == "45.000"
    assert results["progress"] == {"nodes_committed": 120, "accounts_committed": 45}


def test_every_node_batch_precedes_every_account_batch():
    near = FakeNear(make_nodes(70), make_accounts(70))
    make_orchestrator(near).run()

    methods = [m[1] for m in near.mutations]
    last_node = max(i for i, m in enumerate(methods) if m == "genesis_init_nodes")
    first_account = methods.index("genesis_init_accounts")
    assert methods[0] == "genesis_init_node_count"
    assert last_node < first_account


def test_source_not_read_only_makes_no_other_calls():
    near = FakeNear(make_nodes(10), make_accounts(10), statuses={SOURCE: "Live", DESTINATION: "Genesis"})
    orchestrator = make_orchestrator(near)

    results = orchestrator.run()

    assert results["success"] is False
    assert results["error_type"] == "PreconditionError"
    assert results["state"] == "START"
    assert near.queries == [(SOURCE, "get_status", None)]
    assert near.mutations == []


def test_destination_not_genesis_stops_before_fetch():
    near = FakeNear(make_nodes(10), make_accounts(10), statuses={SOURCE: "ReadOnly", DESTINATION: "Live"})

    results = make_orchestrator(near).run()

    assert results["error_type"] == "PreconditionError"
    assert [q[1] for q in near.queries] == ["get_status", "get_status"]
    assert near.mutations == []


def test_node_batch_failure_stops_remaining_writes():
    near = FakeNear(make_nodes(120), make_accounts(45), fail_on=("genesis_init_nodes", 3))
    orchestrator = make_orchestrator(near)

    results = orchestrator.run()

    assert results["success"] is False
    assert results["error_type"] == "BatchCommitError"
    assert results["state"] == "DEST_NODE_COUNT_INIT"
    assert len(near.calls_to("genesis_init_nodes")) == 3
    assert near.calls_to("genesis_init_accounts") == []
    assert results["progress"]["nodes_committed"] == 40
    assert results["resume_hint"] == "NODES_START_INDEX=40"


def test_account_batch_failure_hints_both_offsets():
    near = FakeNear(make_nodes(30), make_accounts(45), fail_on=("genesis_init_accounts", 2))

    results = make_orchestrator(near).run()

    assert results["state"] == "NODES_COMMITTED"
    assert len(near.calls_to("genesis_init_accounts")) == 2
    assert results["resume_hint"] == "NODES_START_INDEX=30 ACCOUNTS_START_INDEX=20"


def test_node_count_failure_sends_no_batches():
    near = FakeNear(make_nodes(30), make_accounts(5), fail_on=("genesis_init_node_count", 1))

    results = make_orchestrator(near).run()

    assert results["error_type"] == "RemoteMutationError"
    assert results["state"] == "REPORTED"
    assert "resume_hint" not in results
    assert len(near.mutations) == 1


def test_dry_run_never_writes():
    near = FakeNear(make_nodes(60), make_accounts(3, balance=ONE_NEAR // 2))
    orchestrator = make_orchestrator(near, dry_run=True)

    results = orchestrator.run()

    assert results["success"] is True
    assert results["state"] == "REPORTED"
    assert near.mutations == []
    assert results["summary"]["total_balance_near"] == "1.500"
    assert len(orchestrator.nodes) == 60


def test_malformed_balance_aborts_before_any_write():
    accounts = make_accounts(5)
    accounts[3][1]["storage_balance"] = "lots"
    near = FakeNear(make_nodes(5), accounts)

    results = make_orchestrator(near).run()

    assert results["error_type"] == "ParseError"
    assert results["state"] == "ACCOUNTS_FETCHED"
    assert near.mutations == []


def test_bad_count_is_a_query_error():
    near = FakeNear(make_nodes(5), make_accounts(5), counts={"get_node_count": "5"})

    results = make_orchestrator(near).run()

    assert results["error_type"] == "RemoteQueryError"
    assert results["state"] == "PRECONDITIONS_OK"


def test_resume_offsets_skip_committed_records():
    near = FakeNear(make_nodes(120), make_accounts(45))

    results = make_orchestrator(near, nodes_start_index=100, accounts_start_index=40).run()

    assert results["success"] is True
    node_calls = near.calls_to("genesis_init_nodes")
    assert len(node_calls) == 1
    assert node_calls[0][2]["nodes"] == near.nodes[100:]
    account_calls = near.calls_to("genesis_init_accounts")
    assert len(account_calls) == 1
    assert account_calls[0][2]["accounts"] == near.accounts[40:]
    assert near.calls_to("genesis_init_node_count")[0][2] == {"node_count": 120}


def test_short_page_commits_what_was_fetched():
    near = FakeNear(make_nodes(40), make_accounts(0), counts={"get_node_count": 60})

    results = make_orchestrator(near).run()

    assert results["summary"]["node_count"] == 60
    assert results["summary"]["nodes_fetched"] == 40
    assert near.calls_to("genesis_init_node_count")[0][2] == {"node_count": 60}
    assert len(near.calls_to("genesis_init_nodes")) == 2


def test_results_saved_to_output_dir(tmp_path):
    near = FakeNear(make_nodes(3), make_accounts(3))
    config = make_config(save_results=True)
    output_manager = OutputManager(str(tmp_path), "v0_to_v1", retention_days=0)
    orchestrator = MigrationOrchestrator(config, near, near, output_manager)

    orchestrator.run()

    path = os.path.join(output_manager.current_dir, "migration_results.json")
    with open(path) as f:
        saved = json.load(f)
    assert saved["success"] is True
    assert saved["state"] == "DONE"
    assert saved["config"]["gas"] == GAS


def test_print_summary(capsys):
    orchestrator = make_orchestrator(FakeNear([], []))
    orchestrator.print_summary({
        "success": False,
        "state": "DEST_NODE_COUNT_INIT",
        "summary": {"nodes_fetched": 120, "accounts_fetched": 45, "total_balance_near": "45.000"},
        "progress": {"nodes_committed": 40, "accounts_committed": None},
        "error": "genesis_init_nodes failed",
        "resume_hint": "NODES_START_INDEX=40",
    })

    out = capsys.readouterr().out
    assert "MIGRATION FAILED" in out
    assert "Total balance: 45.000 NEAR" in out
    assert "Nodes committed: 40" in out
    assert "Re-run with: NODES_START_INDEX=40" in out


@pytest.mark.asyncio
async def test_migrate_advances_through_every_state():
    near = FakeNear(make_nodes(5), make_accounts(5))
    orchestrator = make_orchestrator(near, debug=True)
    seen = []
    original = orchestrator._advance

    def record(state):
        seen.append(state)
        original(state)

    orchestrator._advance = record
    await orchestrator.migrate({})

    assert seen == [
        MigrationState.PRECONDITIONS_OK,
        MigrationState.NODES_FETCHED,
        MigrationState.ACCOUNTS_FETCHED,
        MigrationState.REPORTED,
        MigrationState.DEST_NODE_COUNT_INIT,
        MigrationState.NODES_COMMITTED,
        MigrationState.ACCOUNTS_COMMITTED,
        MigrationState.DONE,
    ]
