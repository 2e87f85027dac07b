"""
Finality tracking for submitted transactions.

A transaction is final once its inclusion block is buried under the
required confirmation depth AND sits at or below the chain's
irreversibility watermark. Depth alone is not enough on chains whose
watermark lags behind the head.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Optional, Protocol, Tuple

from .exceptions import NotFoundError
from .models import PendingReceipt, SUCCESS_STATUS

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0


class FinalityState(str, Enum):
    """States of a confirmation wait"""
    PENDING = "pending"                            # no inclusion block yet
    INCLUDED_UNCONFIRMED = "included_unconfirmed"  # included, depth or watermark not reached
    FINAL = "final"
    NOT_FOUND = "not_found"
    FAILED = "failed"                              # chain client error, raised to the caller


class FinalitySource(Protocol):
    """What the tracker needs from a chain"""

    chain_type: str
    native_success_status: Optional[str]

    def fetch_receipt(self, tx_id: str, block_hint: Optional[int] = None) -> Awaitable[Optional[PendingReceipt]]:
        """Receipt for tx_id, or None when the chain does not know it"""
        ...

    def fetch_heights(self) -> Awaitable[Tuple[int, int]]:
        """Current (head height, irreversibility watermark)"""
        ...


@dataclass(frozen=True)
class FinalityResult:
    """Terminal outcome of a confirmation wait"""
    state: FinalityState
    receipt: Optional[PendingReceipt] = None
    head_height: Optional[int] = None
    irreversible_height: Optional[int] = None

    @property
    def is_final(self) -> bool:
        return self.state is FinalityState.FINAL


def evaluate(
    receipt: Optional[PendingReceipt],
    wait_blocks: int,
    head_height: int,
    irreversible_height: int
) -> FinalityState:
    """
    Classify a receipt against one snapshot of chain heights.

    The result is monotonic: a FINAL receipt stays FINAL for any snapshot
    with equal or greater heights.
    """
    if receipt is None:
        return FinalityState.NOT_FOUND
    if receipt.block_number is None:
        return FinalityState.PENDING
    if (receipt.block_number + wait_blocks <= head_height
            and receipt.block_number <= irreversible_height):
        return FinalityState.FINAL
    return FinalityState.INCLUDED_UNCONFIRMED


class FinalityTracker:
    """Polls a chain until a transaction is final or known to be missing"""

    def __init__(
        self,
        source: FinalitySource,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        logger: Optional[logging.Logger] = None
    ):
        self.source = source
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)

    def _canonical(self, receipt: PendingReceipt) -> PendingReceipt:
        native = self.source.native_success_status
        if native is not None and receipt.status == native:
            return receipt.model_copy(update={"status": SUCCESS_STATUS})
        return receipt

    async def _snapshot(self, tx_id: str, block_hint: Optional[int]):
        receipt = await self.source.fetch_receipt(tx_id, block_hint)
        if receipt is None:
            return None, None, None
        head, irreversible = await self.source.fetch_heights()
        return receipt, head, irreversible

    async def wait_for_confirmation(
        self,
        tx_id: str,
        wait_blocks: int,
        block_hint: Optional[int] = None
    ) -> FinalityResult:
        """
        Block until tx_id is final or the chain reports it missing.

        There is no retry cap here; the caller bounds the wait with a
        deadline. Errors from the chain are not retried.

        Args:
            tx_id: Transaction identifier
            wait_blocks: Required confirmation depth
            block_hint: Optional block number to speed up receipt lookup

        Returns:
            FinalityResult in state FINAL or NOT_FOUND
        """
        chain_type = self.source.chain_type
        while True:
            try:
                receipt, head, irreversible = await self._snapshot(tx_id, block_hint)
            except Exception as e:
                self.logger.error(
                    "ChainType: %s confirmation wait for %s ended in state %s: %s",
                    chain_type, tx_id, FinalityState.FAILED.value, e
                )
                raise

            if receipt is None:
                self.logger.debug("ChainType: %s transaction %s not found", chain_type, tx_id)
                return FinalityResult(FinalityState.NOT_FOUND)

            state = evaluate(receipt, wait_blocks, head, irreversible)
            if state is FinalityState.FINAL:
                return FinalityResult(state, self._canonical(receipt), head, irreversible)

            self.logger.debug(
                "ChainType: %s transaction %s in block %s, head %d, irreversible %d, "
                "waiting for %d confirmations",
                chain_type, tx_id, receipt.block_number, head, irreversible, wait_blocks
            )
            await asyncio.sleep(self.poll_interval)

    async def is_irreversible(
        self,
        tx_id: str,
        wait_blocks: int = 0,
        block_hint: Optional[int] = None
    ) -> bool:
        """
        Check finality once without waiting.

        Raises:
            NotFoundError: If the chain does not know the transaction
        """
        receipt, head, irreversible = await self._snapshot(tx_id, block_hint)
        if receipt is None:
            raise NotFoundError(f"Transaction {tx_id} not found on {self.source.chain_type}")
        final = evaluate(receipt, wait_blocks, head, irreversible) is FinalityState.FINAL
        if not final:
            self.logger.debug(
                "ChainType: %s transaction %s in block %s is not irreversible yet, watermark %d",
                self.source.chain_type, tx_id, receipt.block_number, irreversible
            )
        return final
