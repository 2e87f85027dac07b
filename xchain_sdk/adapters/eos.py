"""
EOSIO chain adapter.

Finality on EOSIO is reached when a block falls below the last
irreversible block reported by ``get_info``; deposits arrive as token
``transfer`` actions whose memo carries the inlock parameters.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..bounded import retry_call
from ..config import ChainSettings
from ..decoder import decode_actions, encode_token, unwrap_action
from ..exceptions import NotFoundError, XChainError
from ..finality import FinalityResult, FinalityTracker
from ..models import Block, CanonicalEvent, ChainInfo, PendingReceipt
from ..clients.eos_rpc import EosRpcClient
from ..utils import parse_block_time
from .base import ChainHandle, bounded_call

logger = logging.getLogger(__name__)

# Defaults for get_table_rows, overridable per call
TABLE_PARAMS: Dict[str, Any] = {
    "json": True,
    "table_key": "",
    "lower_bound": "",
    "upper_bound": "",
    "index_position": 1,
    "key_type": "",
    "limit": 10,
    "reverse": False,
    "show_payer": False,
}


class EosAdapter:
    """Adapter for EOSIO chains backed by an ``EosRpcClient``"""

    native_success_status = "executed"

    def __init__(
        self,
        settings: ChainSettings,
        client: Optional[EosRpcClient] = None,
        is_leader: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the adapter

        Args:
            settings: Chain settings (action table, endpoints, timeouts)
            client: Optional preconfigured node client
            is_leader: Whether this process may emit fee-withdrawal events
            logger: Optional logger instance
        """
        self.settings = settings
        self.chain_type = settings.chain_type
        self.handle = ChainHandle(settings.chain_type, settings.node_url)
        self.client = client or EosRpcClient(settings.node_url, settings.push_url)
        self.is_leader = is_leader
        self.logger = logger or logging.getLogger(__name__)
        self.tracker = FinalityTracker(self, poll_interval=settings.poll_interval_s, logger=self.logger)

    async def aclose(self) -> None:
        await self.client.aclose()

    # ── chain state ─────────────────────────────────────────────────

    async def get_chain_info(self) -> ChainInfo:
        info = await bounded_call(self.settings, self.client.get_info(), "get_info")
        self.logger.debug("ChainType: %s get_info result is %s", self.chain_type, info)
        return ChainInfo(
            chain_id=info["chain_id"],
            head_height=info["head_block_num"],
            irreversible_height=info["last_irreversible_block_num"],
            raw=info,
        )

    async def get_chain_id(self) -> str:
        """Chain id, fetched from the node once and cached on the handle"""
        if self.handle.chain_id is not None:
            return self.handle.chain_id
        info = await bounded_call(self.settings, self.client.get_info(), "get_chain_id")
        return self.handle.remember_chain_id(info["chain_id"])

    async def get_head_height(self) -> int:
        info = await bounded_call(self.settings, self.client.get_info(), "get_head_height")
        return info["head_block_num"]

    async def get_irreversible_height(self) -> int:
        info = await bounded_call(self.settings, self.client.get_info(), "get_irreversible_height")
        return info["last_irreversible_block_num"]

    async def fetch_heights(self) -> Tuple[int, int]:
        info = await self.client.get_info()
        return info["head_block_num"], info["last_irreversible_block_num"]

    async def get_block(self, number: int) -> Block:
        raw = await bounded_call(self.settings, self.client.get_block(number), "get_block")
        timestamp = parse_block_time(raw["timestamp"])
        return Block(
            number=raw.get("block_num", number),
            timestamp=timestamp,
            block_id=raw.get("id"),
            raw={**raw, "timestamp": timestamp},
        )

    # ── receipts and finality ───────────────────────────────────────

    async def fetch_receipt(self, tx_id: str, block_hint: Optional[int] = None) -> Optional[PendingReceipt]:
        try:
            raw = await self.client.get_transaction(tx_id, block_hint)
        except NotFoundError:
            return None
        status = (raw.get("trx") or {}).get("receipt", {}).get("status")
        return PendingReceipt(
            tx_id=raw.get("id", tx_id),
            block_number=raw.get("block_num"),
            status=status,
            raw=raw,
        )

    async def get_receipt(self, tx_id: str, block_hint: Optional[int] = None) -> Optional[PendingReceipt]:
        return await bounded_call(
            self.settings, self.fetch_receipt(tx_id, block_hint), "get_receipt"
        )

    async def wait_for_confirmation(
        self,
        tx_id: str,
        wait_blocks: int,
        block_hint: Optional[int] = None,
        timeout_ms: Optional[int] = None
    ) -> FinalityResult:
        return await bounded_call(
            self.settings,
            self.tracker.wait_for_confirmation(tx_id, wait_blocks, block_hint),
            "wait_for_confirmation",
            timeout_ms,
        )

    async def is_irreversible(self, tx_id: str, block_hint: Optional[int] = None) -> bool:
        return await bounded_call(
            self.settings,
            self.tracker.is_irreversible(tx_id, 0, block_hint),
            "is_irreversible",
        )

    # ── event scanning ──────────────────────────────────────────────

    async def scan_events(
        self,
        account: str,
        from_block: int,
        to_block: int,
        filter_actions: Optional[List[str]] = None,
        retry_times: Optional[int] = None
    ) -> List[CanonicalEvent]:
        """
        Decode the account's actions within [from_block, to_block].

        Args:
            account: Contract account whose history is read
            from_block: First block number, inclusive
            to_block: Last block number, inclusive
            filter_actions: Action names to keep (defaults to the configured
                deposit, withdraw and debt actions)
            retry_times: Retries of the history call (defaults to the configured count)

        Returns:
            Canonical events in history order
        """
        names = set(filter_actions if filter_actions is not None else self.settings.scan_actions)
        retries = self.settings.scan_retry_times if retry_times is None else retry_times
        page = self.settings.history_page_size

        def in_range(record: Dict[str, Any]) -> bool:
            try:
                act, _ = unwrap_action(record)
                return from_block <= record["block_num"] <= to_block and act["name"] in names
            except (KeyError, TypeError):
                return True  # leave malformed records to the decoder, which logs them

        async def scan() -> List[CanonicalEvent]:
            result = await retry_call(
                lambda: self.client.get_actions(account, -1, -page),
                retries,
                f"ChainType: {self.chain_type} scan_events",
                self.logger,
            )
            actions = [record for record in result.get("actions", []) if in_range(record)]
            return decode_actions(actions, self.settings, self.is_leader, self.logger)

        return await bounded_call(self.settings, scan(), "scan_events")

    # ── submission ──────────────────────────────────────────────────

    async def send_signed_transaction(self, signed_tx: Dict[str, Any]) -> Dict[str, Any]:
        result = await bounded_call(
            self.settings, self.client.push_transaction(signed_tx), "send_signed_transaction"
        )
        self.logger.debug("ChainType: %s send_signed_transaction result is %s", self.chain_type, result)
        return result

    async def submit_signed_transaction(
        self,
        signed_tx: Dict[str, Any]
    ) -> Tuple[Optional[Exception], Optional[Dict[str, Any]]]:
        """
        Submit a signed transaction without raising.

        Returns:
            ``(None, result)`` on success, ``(error, None)`` on failure
        """
        try:
            return None, await self.send_signed_transaction(signed_tx)
        except XChainError as e:
            self.logger.error("ChainType: %s send_signed_transaction failed: %s", self.chain_type, e)
            return e, None

    async def submit_and_confirm(
        self,
        signed_tx: Dict[str, Any],
        wait_blocks: int,
        timeout_ms: Optional[int] = None
    ) -> FinalityResult:
        result = await self.send_signed_transaction(signed_tx)
        tx_id = result["transaction_id"]
        block_hint = (result.get("processed") or {}).get("block_num")
        return await self.wait_for_confirmation(tx_id, wait_blocks, block_hint, timeout_ms)

    # ── contract state ──────────────────────────────────────────────

    async def get_table_rows(self, code: str, scope: Any, table: str, **params: Any) -> List[Dict[str, Any]]:
        """
        Read rows of a contract table.

        Args:
            code: Contract account
            scope: Table scope
            table: Table name
            **params: Overrides for ``TABLE_PARAMS`` (limit, bounds, index)
        """
        args = {**TABLE_PARAMS, **params, "code": code, "scope": scope, "table": table}
        result = await bounded_call(self.settings, self.client.get_table_rows(args), "get_table_rows")
        return result["rows"]

    async def get_storeman_fee(
        self,
        storeman_pk: str,
        token_orig_account: str,
        htlc_addr: Optional[str] = None
    ) -> str:
        """
        Look up a storeman's accumulated fee for one token.

        Scans the ``pks`` index table for the storeman key, then reads the
        ``fees`` table scoped by the matching index id.

        Raises:
            NotFoundError: If the storeman key is not registered
        """
        htlc = htlc_addr or self.settings.htlc_addr
        limit = self.settings.history_page_size

        async def lookup() -> str:
            pks = await self.get_table_rows(htlc, htlc, "pks", limit=limit)
            pk_id = next((row["id"] for row in pks if row["pk"] == storeman_pk), None)
            if pk_id is None:
                raise NotFoundError(f"storemanPk {storeman_pk} is not found")

            fees = await self.get_table_rows(htlc, pk_id, "fees", limit=limit)
            for fee in fees:
                if encode_token(fee["account"], fee["fee"]) == token_orig_account:
                    return fee["fee"]
            return "0"

        return await bounded_call(self.settings, lookup(), "get_storeman_fee")

    # ── transaction building helpers ────────────────────────────────

    async def serialize_actions(self, actions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return await bounded_call(self.settings, self.client.serialize_actions(actions), "serialize_actions")

    async def get_required_keys(self, transaction: Dict[str, Any], available_keys: List[str]) -> List[str]:
        return await bounded_call(
            self.settings,
            self.client.get_required_keys(transaction, available_keys),
            "get_required_keys",
        )

    async def get_rawabi_and_abi(self, account: str) -> Dict[str, Any]:
        async def fetch() -> Dict[str, Any]:
            raw_abi = await self.client.get_raw_abi(account)
            abi = await self.client.get_abi(account)
            return {"accountName": account, "rawAbi": raw_abi["abi"], "abi": abi["abi"]}

        return await bounded_call(self.settings, fetch(), "get_rawabi_and_abi")

    def __repr__(self) -> str:
        return f"EosAdapter({self.handle!r})"
