"""
Async JSON client for EOSIO nodes (chain and history APIs).
"""
import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from ..exceptions import NotFoundError, TransportError

logger = logging.getLogger(__name__)

# Node error names meaning "this entity does not exist"
NOT_FOUND_ERROR_NAMES = frozenset({
    "tx_not_found",
    "unknown_transaction_exception",
    "unknown_block_exception",
    "account_query_exception",
})


def _to_hex(value: Union[bytes, bytearray, str, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    return value


class EosRpcClient:
    """
    Thin async wrapper over the nodeos HTTP API.

    Every method maps to one endpoint and returns the decoded JSON body.
    HTTP failures and node-side errors become ``TransportError``; node errors
    that mean "unknown entity" become ``NotFoundError``.
    """

    def __init__(
        self,
        node_url: str,
        push_url: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the client

        Args:
            node_url: Base URL of a node serving chain and history APIs
            push_url: Base URL used for transaction submission (defaults to node_url)
            timeout: Per-request HTTP timeout in seconds
            client: Optional preconfigured httpx.AsyncClient
            logger: Optional logger instance
        """
        if not node_url.startswith(("http://", "https://")):
            raise ValueError(f"node_url must be an http(s) URL, got: {node_url}")
        self.node_url = node_url.rstrip("/")
        self.push_url = (push_url or node_url).rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.logger = logger or logging.getLogger(__name__)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _post(self, path: str, payload: Dict[str, Any], base_url: Optional[str] = None) -> Any:
        url = f"{base_url or self.node_url}{path}"
        try:
            response = await self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error calling {url}: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                f"Invalid JSON response from {url}: {e}",
                error_code=response.status_code
            ) from e

        if response.status_code >= 400 or (isinstance(data, dict) and "error" in data):
            error = data.get("error", {}) if isinstance(data, dict) else {}
            if not isinstance(error, dict):
                error = {"what": str(error)}
            name = error.get("name", "")
            what = error.get("what") or (data.get("message") if isinstance(data, dict) else None)
            message = f"Node error from {path}: {name or response.status_code} {what or ''}".strip()
            if name in NOT_FOUND_ERROR_NAMES or response.status_code == 404:
                raise NotFoundError(message)
            raise TransportError(message, error_code=error.get("code", response.status_code), details=error)
        return data

    async def get_info(self) -> Dict[str, Any]:
        return await self._post("/v1/chain/get_info", {})

    async def get_block(self, block_num_or_id: Union[int, str]) -> Dict[str, Any]:
        return await self._post("/v1/chain/get_block", {"block_num_or_id": block_num_or_id})

    async def get_transaction(self, tx_id: str, block_num_hint: Optional[int] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"id": tx_id}
        if block_num_hint is not None:
            payload["block_num_hint"] = block_num_hint
        return await self._post("/v1/history/get_transaction", payload)

    async def get_actions(self, account_name: str, pos: int = -1, offset: int = -100) -> Dict[str, Any]:
        """
        Fetch an account's action history page.

        Args:
            account_name: Account whose actions to list
            pos: Sequence position to start from (-1 for the latest)
            offset: Number of actions relative to pos (negative walks backwards)
        """
        return await self._post("/v1/history/get_actions", {
            "account_name": account_name,
            "pos": pos,
            "offset": offset,
        })

    async def get_table_rows(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post("/v1/chain/get_table_rows", params)

    async def get_abi(self, account_name: str) -> Dict[str, Any]:
        return await self._post("/v1/chain/get_abi", {"account_name": account_name})

    async def get_raw_abi(self, account_name: str) -> Dict[str, Any]:
        return await self._post("/v1/chain/get_raw_abi", {"account_name": account_name})

    async def get_required_keys(self, transaction: Dict[str, Any], available_keys: List[str]) -> List[str]:
        result = await self._post("/v1/chain/get_required_keys", {
            "transaction": transaction,
            "available_keys": available_keys,
        })
        return result["required_keys"]

    async def abi_json_to_bin(self, code: str, action: str, args: Dict[str, Any]) -> str:
        result = await self._post("/v1/chain/abi_json_to_bin", {
            "code": code,
            "action": action,
            "args": args,
        })
        return result["binargs"]

    async def serialize_actions(self, actions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Replace each action's JSON data with its ABI-serialized hex form"""
        serialized = []
        for action in actions:
            binargs = await self.abi_json_to_bin(action["account"], action["name"], action["data"])
            serialized.append({**action, "data": binargs})
        return serialized

    async def push_transaction(self, signed_tx: Dict[str, Any]) -> Dict[str, Any]:
        """
        Submit a signed transaction to the push endpoint.

        Args:
            signed_tx: Dict with ``signatures`` and ``serialized_transaction``
                (bytes or hex), optionally ``serialized_context_free_data``

        Raises:
            TransportError: If signed_tx lacks signatures or the serialized transaction
        """
        if not isinstance(signed_tx, dict):
            raise TransportError(f"Malformed signed transaction: expected a dict, got {type(signed_tx).__name__}")
        missing = [key for key in ("signatures", "serialized_transaction") if key not in signed_tx]
        if missing:
            raise TransportError(f"Malformed signed transaction: missing {', '.join(missing)}")
        payload = {
            "signatures": signed_tx["signatures"],
            "compression": signed_tx.get("compression", 0),
            "packed_context_free_data": _to_hex(signed_tx.get("serialized_context_free_data")),
            "packed_trx": _to_hex(signed_tx["serialized_transaction"]),
        }
        result = await self._post("/v1/chain/push_transaction", payload, base_url=self.push_url)
        self.logger.debug("push_transaction result from %s: %s", self.push_url, result)
        return result
