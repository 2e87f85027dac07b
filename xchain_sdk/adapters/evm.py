"""
EVM chain adapter (Ethereum, Wanchain).

The irreversibility watermark is the ``finalized`` block; nodes without
that tag fall back to ``head - finality_depth``. Contract logs are decoded
through the configured event ABI into the same raw record shape the EOS
history API returns, so one decoder serves both families.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import BlockNotFound, TransactionNotFound, Web3Exception

from ..bounded import retry_call
from ..config import ChainSettings
from ..decoder import decode_actions
from ..exceptions import NotFoundError, TransportError, XChainError
from ..finality import FinalityResult, FinalityTracker
from ..models import Block, CanonicalEvent, ChainInfo, PendingReceipt
from ..utils import hex_add_0x
from .._rate_limited_log import rate_limited_log
from .base import ChainHandle, bounded_call

logger = logging.getLogger(__name__)


def _hex(value: Union[bytes, str]) -> str:
    if isinstance(value, (bytes, bytearray)):
        return hex_add_0x(bytes(value).hex())
    return value


def _plain(value: Any) -> Any:
    """Convert web3 AttributeDicts and bytes into JSON-friendly values"""
    if isinstance(value, (bytes, bytearray)):
        return _hex(value)
    if isinstance(value, dict) or hasattr(value, "items"):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def event_topic(abi_entry: Dict[str, Any]) -> str:
    """Lower-case 0x-prefixed topic0 of an event ABI entry"""
    types = ",".join(item["type"] for item in abi_entry.get("inputs", []))
    signature = f"{abi_entry['name']}({types})"
    return hex_add_0x(AsyncWeb3.keccak(text=signature).hex()).lower()


class EvmAdapter:
    """Adapter for EVM chains backed by an ``AsyncWeb3`` instance"""

    native_success_status = "1"

    def __init__(
        self,
        settings: ChainSettings,
        w3: Optional[AsyncWeb3] = None,
        is_leader: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the adapter

        Args:
            settings: Chain settings (event ABI, endpoints, timeouts)
            w3: Optional preconfigured AsyncWeb3 instance
            is_leader: Whether this process may emit fee-withdrawal events
            logger: Optional logger instance
        """
        self.settings = settings
        self.chain_type = settings.chain_type
        self.handle = ChainHandle(settings.chain_type, settings.node_url)
        self.w3 = w3 or AsyncWeb3(AsyncHTTPProvider(settings.node_url))
        self.is_leader = is_leader
        self.logger = logger or logging.getLogger(__name__)
        self.tracker = FinalityTracker(self, poll_interval=settings.poll_interval_s, logger=self.logger)

        self.contract = None
        self._topics: Dict[str, str] = {}
        if settings.event_abi:
            self.contract = self.w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(settings.htlc_addr),
                abi=settings.event_abi
            )
            self._topics = {
                event_topic(entry): entry["name"]
                for entry in settings.event_abi
                if entry.get("type") == "event"
            }

    @property
    def chain_key(self) -> str:
        return self.chain_type

    async def aclose(self) -> None:
        disconnect = getattr(self.w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()

    async def _rpc(self, work: Any, operation: str) -> Any:
        try:
            return await work
        except XChainError:
            raise
        except (TransactionNotFound, BlockNotFound) as e:
            raise NotFoundError(f"ChainType: {self.chain_type} {operation}: {e}") from e
        except Exception as e:
            raise TransportError(f"ChainType: {self.chain_type} {operation} failed: {e}") from e

    # ── chain state ─────────────────────────────────────────────────

    async def _finalized_height(self, head: int) -> int:
        try:
            block = await self.w3.eth.get_block("finalized")
            return block["number"]
        except (Web3Exception, ValueError) as e:
            rate_limited_log(
                "ChainType: %s node has no finalized block tag, using head - %d: %s",
                self.chain_type, self.settings.finality_depth, e,
                level="debug",
                key=f"finalized:{self.chain_type}",
                logger_instance=self.logger,
            )
            return max(head - self.settings.finality_depth, 0)

    async def fetch_heights(self) -> Tuple[int, int]:
        head = await self._rpc(self.w3.eth.block_number, "block_number")
        irreversible = await self._rpc(self._finalized_height(head), "get_block(finalized)")
        return head, irreversible

    async def get_chain_info(self) -> ChainInfo:
        async def fetch() -> ChainInfo:
            chain_id = await self._rpc(self.w3.eth.chain_id, "chain_id")
            head, irreversible = await self.fetch_heights()
            return ChainInfo(
                chain_id=str(chain_id),
                head_height=head,
                irreversible_height=irreversible,
            )

        return await bounded_call(self.settings, fetch(), "get_info")

    async def get_chain_id(self) -> str:
        """Chain id, fetched from the node once and cached on the handle"""
        if self.handle.chain_id is not None:
            return self.handle.chain_id
        chain_id = await bounded_call(self.settings, self._rpc(self.w3.eth.chain_id, "chain_id"), "get_chain_id")
        return self.handle.remember_chain_id(str(chain_id))

    async def get_head_height(self) -> int:
        return await bounded_call(
            self.settings, self._rpc(self.w3.eth.block_number, "block_number"), "get_head_height"
        )

    async def get_irreversible_height(self) -> int:
        async def fetch() -> int:
            _, irreversible = await self.fetch_heights()
            return irreversible

        return await bounded_call(self.settings, fetch(), "get_irreversible_height")

    async def get_block(self, number: int) -> Block:
        block = await bounded_call(
            self.settings, self._rpc(self.w3.eth.get_block(number), "get_block"), "get_block"
        )
        raw = _plain(block)
        return Block(
            number=raw["number"],
            timestamp=float(raw["timestamp"]),
            block_id=raw.get("hash"),
            raw=raw,
        )

    async def get_pending_nonce(self, address: str) -> int:
        """Next nonce for address, counting transactions still in the pool"""
        return await bounded_call(
            self.settings,
            self._rpc(
                self.w3.eth.get_transaction_count(AsyncWeb3.to_checksum_address(address), "pending"),
                "get_transaction_count",
            ),
            "get_pending_nonce",
        )

    # ── receipts and finality ───────────────────────────────────────

    async def fetch_receipt(self, tx_id: str, block_hint: Optional[int] = None) -> Optional[PendingReceipt]:
        """
        Receipt of a mined transaction, a receipt without a block for one still
        in the pool, or None when the node knows neither.
        """
        try:
            receipt = await self._rpc(self.w3.eth.get_transaction_receipt(tx_id), "get_transaction_receipt")
        except NotFoundError:
            try:
                pending = await self._rpc(self.w3.eth.get_transaction(tx_id), "get_transaction")
            except NotFoundError:
                return None
            raw = _plain(pending)
            return PendingReceipt(tx_id=raw.get("hash", tx_id), block_number=None, raw=raw)
        raw = _plain(receipt)
        status = raw.get("status")
        return PendingReceipt(
            tx_id=raw.get("transactionHash", tx_id),
            block_number=raw.get("blockNumber"),
            status=None if status is None else str(status),
            raw=raw,
        )

    async def get_receipt(self, tx_id: str, block_hint: Optional[int] = None) -> Optional[PendingReceipt]:
        return await bounded_call(self.settings, self.fetch_receipt(tx_id, block_hint), "get_receipt")

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
            self.settings, self.tracker.is_irreversible(tx_id, 0, block_hint), "is_irreversible"
        )

    # ── event scanning ──────────────────────────────────────────────

    def _log_to_record(self, log: Any, block_times: Dict[int, float]) -> Optional[Dict[str, Any]]:
        topics = log.get("topics") or []
        if not topics:
            return None
        name = self._topics.get(_hex(topics[0]).lower())
        if name is None:
            return None
        decoded = getattr(self.contract.events, name)().process_log(log)
        return {
            "act": {
                "account": decoded["address"],
                "name": name,
                "data": _plain(decoded["args"]),
            },
            "block_num": decoded["blockNumber"],
            "block_time": block_times[decoded["blockNumber"]],
            "trx_id": _hex(decoded["transactionHash"]),
        }

    async def scan_events(
        self,
        account: str,
        from_block: int,
        to_block: int,
        filter_actions: Optional[List[str]] = None,
        retry_times: Optional[int] = None
    ) -> List[CanonicalEvent]:
        """
        Decode contract logs emitted by account within [from_block, to_block].

        Logs whose topic does not match a configured event, or whose event
        name is filtered out, are ignored.
        """
        if self.contract is None:
            return []
        names = set(filter_actions if filter_actions is not None else self.settings.scan_actions)
        retries = self.settings.scan_retry_times if retry_times is None else retry_times
        log_filter = {
            "address": AsyncWeb3.to_checksum_address(account),
            "fromBlock": from_block,
            "toBlock": to_block,
        }

        async def scan() -> List[CanonicalEvent]:
            logs = await retry_call(
                lambda: self._rpc(self.w3.eth.get_logs(log_filter), "get_logs"),
                retries,
                f"ChainType: {self.chain_type} scan_events",
                self.logger,
            )
            block_times: Dict[int, float] = {}
            for log in logs:
                number = log["blockNumber"]
                if number not in block_times:
                    block = await self._rpc(self.w3.eth.get_block(number), "get_block")
                    block_times[number] = float(block["timestamp"])

            records = []
            for log in logs:
                try:
                    record = self._log_to_record(log, block_times)
                except Exception as e:
                    rate_limited_log(
                        "ChainType: %s skipped undecodable log %s: %r",
                        self.chain_type, log, e,
                        level="error",
                        key=f"log:{self.chain_type}:{log!r}",
                        logger_instance=self.logger,
                    )
                    continue
                if record is not None and record["act"]["name"] in names:
                    records.append(record)
            return decode_actions(records, self.settings, self.is_leader, self.logger)

        return await bounded_call(self.settings, scan(), "scan_events")

    # ── submission ──────────────────────────────────────────────────

    async def send_signed_transaction(self, signed_tx: Union[bytes, str]) -> str:
        """Broadcast a raw signed transaction and return its 0x hash"""
        tx_hash = await bounded_call(
            self.settings,
            self._rpc(self.w3.eth.send_raw_transaction(signed_tx), "send_raw_transaction"),
            "send_signed_transaction",
        )
        tx_hash = _hex(tx_hash)
        self.logger.info("ChainType: %s transaction sent: %s", self.chain_type, tx_hash)
        return tx_hash

    async def submit_signed_transaction(
        self,
        signed_tx: Union[bytes, str]
    ) -> Tuple[Optional[Exception], Optional[str]]:
        """
        Submit a raw signed transaction without raising.

        Returns:
            ``(None, tx_hash)`` on success, ``(error, None)`` on failure
        """
        try:
            return None, await self.send_signed_transaction(signed_tx)
        except XChainError as e:
            self.logger.error("ChainType: %s send_signed_transaction failed: %s", self.chain_type, e)
            return e, None

    async def submit_and_confirm(
        self,
        signed_tx: Union[bytes, str],
        wait_blocks: int,
        timeout_ms: Optional[int] = None
    ) -> FinalityResult:
        tx_hash = await self.send_signed_transaction(signed_tx)
        return await self.wait_for_confirmation(tx_hash, wait_blocks, None, timeout_ms)

    def __repr__(self) -> str:
        return f"EvmAdapter({self.handle!r})"
