"""
Capability interfaces shared by every chain adapter.

Adapters do not inherit behavior from a common superclass. Each one
composes the shared helpers (``bounded_call``, ``FinalityTracker``,
``decode_actions``) and satisfies the protocols below structurally.
"""
import logging
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Tuple, TypeVar, runtime_checkable

from ..bounded import bounded
from ..config import ChainSettings
from ..finality import FinalityResult
from ..models import Block, CanonicalEvent, ChainInfo, PendingReceipt

T = TypeVar('T')

logger = logging.getLogger(__name__)


class ChainHandle:
    """
    Identity of one configured chain instance.

    The chain identifier is discovered lazily and written at most once;
    later writes with a different value are ignored and logged.
    """

    def __init__(self, chain_type: str, endpoint: str):
        self.chain_type = chain_type
        self.endpoint = endpoint
        self._chain_id: Optional[str] = None

    @property
    def chain_id(self) -> Optional[str]:
        return self._chain_id

    def remember_chain_id(self, chain_id: str) -> str:
        """
        Cache the chain identifier if none is cached yet.

        Returns:
            The cached identifier (the first one ever written)
        """
        if self._chain_id is None:
            self._chain_id = chain_id
        elif self._chain_id != chain_id:
            logger.warning(
                "ChainType: %s node at %s reported chain id %s, keeping cached %s",
                self.chain_type, self.endpoint, chain_id, self._chain_id
            )
        return self._chain_id

    def __repr__(self) -> str:
        return f"ChainHandle({self.chain_type!r}, {self.endpoint!r}, chain_id={self._chain_id!r})"


def timeout_label(chain_type: str, operation: str) -> str:
    return f"ChainType: {chain_type} {operation} timeout"


async def bounded_call(
    settings: ChainSettings,
    work: Awaitable[T],
    operation: str,
    timeout_ms: Optional[int] = None
) -> T:
    """Run one adapter operation under the chain's configured deadline"""
    return await bounded(
        work,
        timeout_ms or settings.promise_timeout_ms,
        timeout_label(settings.chain_type, operation)
    )


@runtime_checkable
class ChainAdapter(Protocol):
    """Uniform operation set every chain adapter exposes"""

    chain_type: str
    handle: ChainHandle
    settings: ChainSettings

    async def get_chain_info(self) -> ChainInfo: ...

    async def get_chain_id(self) -> str: ...

    async def get_head_height(self) -> int: ...

    async def get_irreversible_height(self) -> int: ...

    async def get_block(self, number: int) -> Block: ...

    async def get_receipt(self, tx_id: str, block_hint: Optional[int] = None) -> Optional[PendingReceipt]: ...

    async def wait_for_confirmation(
        self,
        tx_id: str,
        wait_blocks: int,
        block_hint: Optional[int] = None,
        timeout_ms: Optional[int] = None
    ) -> FinalityResult: ...

    async def is_irreversible(self, tx_id: str, block_hint: Optional[int] = None) -> bool: ...

    async def scan_events(
        self,
        account: str,
        from_block: int,
        to_block: int,
        filter_actions: Optional[List[str]] = None,
        retry_times: Optional[int] = None
    ) -> List[CanonicalEvent]: ...

    async def send_signed_transaction(self, signed_tx: Any) -> Any: ...

    async def submit_signed_transaction(self, signed_tx: Any) -> Tuple[Optional[Exception], Any]: ...

    async def submit_and_confirm(
        self,
        signed_tx: Any,
        wait_blocks: int,
        timeout_ms: Optional[int] = None
    ) -> FinalityResult: ...

    async def aclose(self) -> None: ...


@runtime_checkable
class TableQueryable(Protocol):
    """Key-value contract state reads"""

    async def get_table_rows(self, code: str, scope: str, table: str, **params: Any) -> List[Dict[str, Any]]: ...
