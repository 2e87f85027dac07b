"""
Per-address nonce sequencing.

Chains with account nonces reject a transaction whose sequence number is
not exactly the next one, so concurrent submissions from one account must
draw numbers from a single ordered source. ``NonceSequencer`` keeps one
``NonceState`` per ``(chain key, address)`` and an ``asyncio.Lock`` per key
that serializes allocation and renewal.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Dict, Optional, Protocol, Tuple, runtime_checkable

from .exceptions import SequencingConflict

logger = logging.getLogger(__name__)


@runtime_checkable
class NonceSource(Protocol):
    """Capability for chains that number account transactions"""

    @property
    def chain_key(self) -> str:
        """Stable identifier of the chain instance"""
        ...

    def get_pending_nonce(self, address: str) -> Awaitable[int]:
        """Next usable nonce for address, counting pending transactions"""
        ...


@dataclass
class NonceState:
    """
    Sequencing state for one address on one chain.

    Attributes:
        last_allocated: Last number handed out (base - 1 before the first allocation)
        locked: Whether an operation awaiting the chain holds the address lock
        renew_in_flight: Whether a renewal is re-reading the on-chain nonce
    """
    last_allocated: int
    locked: bool = False
    renew_in_flight: bool = False


class NonceSequencer:
    """
    Process-wide nonce allocator keyed by ``(chain key, address)``.

    State is created on first use of a key and lives until an explicit
    ``renew()`` re-reads the on-chain value.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._states: Dict[Tuple[str, str], NonceState] = {}
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    @staticmethod
    def _key(source: NonceSource, address: str) -> Tuple[str, str]:
        return (source.chain_key, address.lower())

    def _lock_for(self, key: Tuple[str, str]) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def state(self, source: NonceSource, address: str) -> Optional[NonceState]:
        """Current state for an address, or None before first use"""
        return self._states.get(self._key(source, address))

    async def _load(self, source: NonceSource, address: str) -> NonceState:
        nonce = int(await source.get_pending_nonce(address))
        self.logger.debug("ChainType: %s loaded nonce %d for %s", source.chain_key, nonce, address)
        return NonceState(last_allocated=nonce - 1)

    async def initialize(self, source: NonceSource, address: str) -> NonceState:
        """
        Load the on-chain nonce for an address unless it is already tracked.

        Args:
            source: Chain to read the pending nonce from
            address: Account address

        Returns:
            The address's NonceState
        """
        key = self._key(source, address)
        async with self._lock_for(key):
            state = self._states.get(key)
            if state is None:
                state = await self._load(source, address)
                self._states[key] = state
            return state

    async def allocate(self, source: NonceSource, address: str) -> int:
        """
        Hand out the next nonce for an address.

        Concurrent callers queue on the address lock, so every caller gets a
        distinct value and the values form a gapless increasing run.

        Raises:
            SequencingConflict: If the lock discipline was bypassed
        """
        key = self._key(source, address)
        async with self._lock_for(key):
            state = self._states.get(key)
            if state is None:
                state = await self._load(source, address)
                self._states[key] = state

            # Both flags are cleared before the lock is released
            if state.locked or state.renew_in_flight:
                raise SequencingConflict(
                    f"Nonce state for {address} on {source.chain_key} is busy while its lock is held"
                )
            nonce = state.last_allocated + 1
            state.last_allocated = nonce

        self.logger.debug("ChainType: %s allocated nonce %d for %s", source.chain_key, nonce, address)
        return nonce

    async def renew(self, source: NonceSource, address: str) -> NonceState:
        """
        Re-read the on-chain nonce, replacing the tracked state.

        Used after the chain reports a nonce that diverged from ours, e.g.
        after an administrative transaction sent from the same account.
        Allocations for the address wait until the renewal finishes.
        """
        key = self._key(source, address)
        async with self._lock_for(key):
            current = self._states.get(key)
            if current is not None:
                current.locked = True
                current.renew_in_flight = True
            try:
                fresh = await self._load(source, address)
            finally:
                if current is not None:
                    current.locked = False
                    current.renew_in_flight = False
            self._states[key] = fresh
            self.logger.info(
                "ChainType: %s renewed nonce for %s, next nonce is %d",
                source.chain_key, address, fresh.last_allocated + 1
            )
            return fresh
