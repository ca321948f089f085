"""
Precondition Checker — Validates both contracts before anything is fetched.

The source must be frozen (ReadOnly) so the snapshot cannot change under us,
and the destination must still be in Genesis so it is not written twice.

Pipeline context:
    Used in Step 1 of the orchestrator.
"""

from enum import Enum
from typing import Union

from .errors import PreconditionError
from .remote import QueryClient


class ContractStatus(Enum):
    GENESIS = "Genesis"
    LIVE = "Live"
    READ_ONLY = "ReadOnly"


# How each status is named in precondition failure messages
STATE_NAMES = {
    ContractStatus.GENESIS: "genesis",
    ContractStatus.LIVE: "live",
    ContractStatus.READ_ONLY: "read-only",
}


def parse_status(raw) -> Union[ContractStatus, str]:
    """Map a get_status result to ContractStatus, keeping unknown values verbatim."""
    try:
        return ContractStatus(raw)
    except ValueError:
        return raw


class PreconditionChecker:
    """Check contract lifecycle status before a migration."""

    def __init__(self, query_client: QueryClient, debug: bool = False):
        self.query_client = query_client
        self.debug = debug

    async def check_status(self, account_id: str, expected: ContractStatus, label: str = "contract"):
        """Query get_status on account_id and require it to equal expected.

        Args:
            account_id: The contract to query.
            expected: The status the contract must report.
            label: How the contract is named in the error message.

        Returns:
            The observed status.

        Raises:
            PreconditionError: If the status differs.
        """
        status = parse_status(await self.query_client.view_function(account_id, "get_status"))

        if self.debug:
            shown = status.value if isinstance(status, ContractStatus) else status
            print(f"  Status of {account_id}: {shown}")

        if status is not expected:
            actual = status.value if isinstance(status, ContractStatus) else status
            raise PreconditionError(
                f"The {label} account {account_id} is not at "
                f"{STATE_NAMES[expected]} state (status: {actual!r})",
                account_id=account_id,
                expected=expected.value,
                actual=actual,
            )
        return status

    async def check(self, source_account_id: str, destination_account_id: str):
        """Require a ReadOnly source, then a Genesis destination."""
        await self.check_status(source_account_id, ContractStatus.READ_ONLY, "source")
        await self.check_status(destination_account_id, ContractStatus.GENESIS, "destination")
