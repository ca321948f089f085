"""
NEAR Clients — Read and write access to the source and destination contracts.

This module is responsible for all communication with the NEAR network. It
uses two channels:

  1. JSON-RPC — Used for every read. View calls need no key, so they go
     straight to the RPC node over HTTP:

        POST <rpc_url>
        Body: {"jsonrpc": "2.0", "id": "dontcare", "method": "query",
               "params": {"request_type": "call_function", "finality": "final",
                          "account_id": "db.social08.near",
                          "method_name": "get_nodes",
                          "args_base64": "eyJmcm9tX2luZGV4IjogMCwgImxpbWl0IjogNTB9"}}
        Response: {"result": {"result": [91, 123, ...], "logs": [], ...}}

     The inner "result" is the method's JSON return value as a byte array.

  2. NEAR CLI — Used for every write. Signing a transaction needs the
     signer's private key, which lives in the CLI's legacy key store
     (~/.near-credentials). The arguments are written to a JSON file and
     the client shells out to:

        near contract call-function as-transaction <contract> <method>
             file-args <args.json> prepaid-gas '300 Tgas'
             attached-deposit '0 NEAR' sign-as <signer>
             network-config <network> sign-with-legacy-keychain send

     A batch of nodes can be far larger than the kernel accepts for one
     command-line argument (128 KiB on Linux), so arguments never go on
     the command line. A non-zero exit status is a failed call. The CLI
     submits through the RPC endpoint of its own network config, so
     NEAR_RPC_URL only affects reads.

Both clients expose coroutines so the orchestrator can interleave reads. The
HTTP call itself is blocking (requests), so it runs in a worker thread via
asyncio.to_thread; the CLI runs as an asyncio subprocess.

Pipeline context:
    NearRpcClient is used by the PreconditionChecker and the count queries
    (Steps 1-3) and by the PageFetcher (Steps 2-3). NearCliClient is used by
    the node count initialization and the ChunkedCommitter (Steps 5-7).
"""

import asyncio
import base64
import json
import os
import tempfile
from decimal import Decimal
from typing import Dict, Any, List, Optional

import requests

from .errors import RemoteQueryError, RemoteMutationError

# Keep error messages readable when the CLI dumps a whole transaction outcome.
_ERROR_TAIL_CHARS = 2000

_GAS_PER_TGAS = Decimal(10) ** 12
ARGS_FILENAME = "args.json"


class NearRpcClient:
    """Read-only client for NEAR JSON-RPC view calls.

    Manages a requests.Session shared by every view call of the run.

    Attributes:
        rpc_url: JSON-RPC endpoint (e.g., "https://rpc.mainnet.near.org").
        timeout: Per-request timeout in seconds.
        debug: If True, print every call.
    """

    def __init__(self, rpc_url: str, timeout: int = 30, debug: bool = False):
        """Initialize the client.

        Args:
            rpc_url: JSON-RPC endpoint URL.
            timeout: Per-request timeout in seconds.
            debug: Enable verbose output.
        """
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.debug = debug
        self._session = requests.Session()

    async def view_function(
        self, account_id: str, method_name: str, args: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Call a view method on a contract and return its decoded result.

        Args:
            account_id: The contract account (e.g., "db.social08.near").
            method_name: The view method (e.g., "get_nodes").
            args: JSON-serializable method arguments.

        Returns:
            The method's return value decoded from JSON.

        Raises:
            RemoteQueryError: On transport errors, HTTP errors, RPC errors,
                contract panics, or a result that is not valid JSON.
        """
        return await asyncio.to_thread(self._view_function, account_id, method_name, args or {})

    def _view_function(self, account_id: str, method_name: str, args: Dict[str, Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": "dontcare",
            "method": "query",
            "params": {
                "request_type": "call_function",
                "finality": "final",
                "account_id": account_id,
                "method_name": method_name,
                "args_base64": encode_args(args),
            },
        }

        if self.debug:
            print(f"  View {account_id}.{method_name}({json.dumps(args)})")

        try:
            response = self._session.post(self.rpc_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RemoteQueryError(
                f"View call {account_id}.{method_name} failed: {e}", account_id, method_name
            ) from e

        return decode_view_result(body, account_id, method_name)

    def close(self):
        """Release the pooled HTTP connections."""
        self._session.close()


def encode_args(args: Dict[str, Any]) -> str:
    """Encode view call arguments the way the RPC node expects them (base64 JSON)."""
    return base64.b64encode(json.dumps(args).encode("utf-8")).decode("ascii")


def decode_view_result(body: Any, account_id: str, method_name: str) -> Any:
    """Extract the method's return value from a JSON-RPC "query" response.

    Args:
        body: The parsed JSON-RPC response (any JSON value).
        account_id: The contract that was called (for error messages).
        method_name: The method that was called (for error messages).

    Returns:
        The decoded JSON value.

    Raises:
        RemoteQueryError: If the response carries an RPC error, a contract
            execution error, or a result that is not UTF-8 JSON bytes.
    """
    if not isinstance(body, dict):
        raise RemoteQueryError(
            f"Malformed RPC response for {account_id}.{method_name}: "
            f"expected a JSON object, got {type(body).__name__}",
            account_id,
            method_name,
        )

    if "error" in body:
        error = body["error"]
        if isinstance(error, dict):
            detail = error.get("data") or error.get("message") or json.dumps(error)
        else:
            detail = str(error)
        raise RemoteQueryError(
            f"RPC error calling {account_id}.{method_name}: {detail}", account_id, method_name
        )

    result = body.get("result")
    if not isinstance(result, dict):
        raise RemoteQueryError(
            f"Malformed RPC response for {account_id}.{method_name}: missing result",
            account_id,
            method_name,
        )

    # Contract panics come back as a successful RPC response with an error string
    if result.get("error"):
        raise RemoteQueryError(
            f"{account_id}.{method_name} failed: {result['error']}", account_id, method_name
        )

    raw = result.get("result")
    if raw is None:
        raise RemoteQueryError(
            f"Malformed RPC response for {account_id}.{method_name}: missing result bytes",
            account_id,
            method_name,
        )

    try:
        return json.loads(bytes(raw).decode("utf-8"))
    except (TypeError, ValueError) as e:
        raise RemoteQueryError(
            f"Could not decode result of {account_id}.{method_name}: {e}", account_id, method_name
        ) from e


class NearCliClient:
    """Write client that signs and submits function calls through the NEAR CLI.

    The CLI reads the signer's key from its own key store, so this client
    never touches key material.

    Attributes:
        signer_account_id: Account whose access key signs the calls.
        network_id: "mainnet" or "testnet" (a network-config name of the CLI).
        cli_bin: Name or path of the NEAR CLI executable.
        debug: If True, print each command and the CLI's output.
    """

    def __init__(
        self,
        signer_account_id: str,
        network_id: str,
        cli_bin: str = "near",
        debug: bool = False,
    ):
        self.signer_account_id = signer_account_id
        self.network_id = network_id
        self.cli_bin = cli_bin
        self.debug = debug

    def build_command(
        self, contract_id: str, method_name: str, args_path: str, gas: int
    ) -> List[str]:
        """Build the argv for one call whose JSON arguments are in args_path."""
        return [
            self.cli_bin,
            "contract",
            "call-function",
            "as-transaction",
            contract_id,
            method_name,
            "file-args",
            args_path,
            "prepaid-gas",
            format_gas(gas),
            "attached-deposit",
            "0 NEAR",
            "sign-as",
            self.signer_account_id,
            "network-config",
            self.network_id,
            "sign-with-legacy-keychain",
            "send",
        ]

    async def function_call(
        self, contract_id: str, method_name: str, args: Dict[str, Any], gas: int
    ) -> None:
        """Sign and submit a function call, waiting for its outcome.

        Args:
            contract_id: The contract to call.
            method_name: The change method (e.g., "genesis_init_nodes").
            args: JSON-serializable method arguments, of any size.
            gas: Gas to attach, in gas units.

        Raises:
            RemoteMutationError: If the CLI cannot be started or exits with
                a non-zero status (rejected transaction, contract panic,
                missing key, network failure).
        """
        if self.debug:
            print(f"  Calling {contract_id}.{method_name} as {self.signer_account_id}")

        with tempfile.TemporaryDirectory(prefix="near-args-") as tmp_dir:
            args_path = os.path.join(tmp_dir, ARGS_FILENAME)
            with open(args_path, "w", encoding="utf-8") as f:
                json.dump(args, f, separators=(",", ":"))

            command = self.build_command(contract_id, method_name, args_path, gas)
            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise RemoteMutationError(
                    f"Could not start NEAR CLI {self.cli_bin!r}: {e}", contract_id, method_name
                ) from e

            stdout, stderr = await process.communicate()

        if process.returncode != 0:
            detail = _tail(stderr) or _tail(stdout) or "no output"
            raise RemoteMutationError(
                f"{contract_id}.{method_name} failed (exit code {process.returncode}): {detail}",
                contract_id,
                method_name,
            )

        if self.debug:
            print(f"  {_tail(stdout)}")


def format_gas(gas: int) -> str:
    """Render a gas amount in the CLI's unit syntax, e.g. 300 * 10**12 -> "300 Tgas"."""
    tgas = (Decimal(gas) / _GAS_PER_TGAS).normalize()
    return f"{tgas:f} Tgas"


def _tail(output: bytes) -> str:
    text = output.decode("utf-8", errors="replace").strip()
    return text[-_ERROR_TAIL_CHARS:]
