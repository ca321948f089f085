"""
Errors — Failure types raised by the migration pipeline.

Every error here is fatal to the run. Nothing in the pipeline retries; the
orchestrator records the message in the run results and run.py exits with a
non-zero status. The recovery path is a manual re-run once the cause is
fixed (for a failed write batch, with NODES_START_INDEX/ACCOUNTS_START_INDEX
pointing at the failed range).
"""

from typing import Optional


class MigrationError(Exception):
    """Base class for all pipeline failures."""


class PreconditionError(MigrationError):
    """A contract is not in the lifecycle status the migration requires."""

    def __init__(self, message: str, account_id: str, expected: str, actual):
        super().__init__(message)
        self.account_id = account_id
        self.expected = expected
        self.actual = actual


class RemoteQueryError(MigrationError):
    """A read-only call failed or returned data that could not be decoded."""

    def __init__(self, message: str, account_id: str = "", method_name: str = ""):
        super().__init__(message)
        self.account_id = account_id
        self.method_name = method_name


class ParseError(MigrationError):
    """An account's storage_balance is not a valid decimal."""

    def __init__(self, message: str, account_id: Optional[str] = None):
        super().__init__(message)
        self.account_id = account_id


class RemoteMutationError(MigrationError):
    """A state-changing call was rejected or could not be submitted."""

    def __init__(self, message: str, contract_id: str = "", method_name: str = ""):
        super().__init__(message)
        self.contract_id = contract_id
        self.method_name = method_name


class BatchCommitError(RemoteMutationError):
    """A write batch failed. Records before range_start are already committed."""

    def __init__(
        self,
        message: str,
        contract_id: str,
        method_name: str,
        range_start: int,
        range_end: int,
    ):
        super().__init__(message, contract_id, method_name)
        self.range_start = range_start
        self.range_end = range_end
