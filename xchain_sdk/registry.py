"""
Process-wide registry of chain adapters and nonce state.
"""
import logging
from typing import Any, Dict, Optional

from .adapters.base import ChainAdapter
from .adapters.eos import EosAdapter
from .adapters.evm import EvmAdapter
from .config import ChainConfig
from .exceptions import CapabilityError, ConfigError
from .nonce import NonceSequencer, NonceSource, NonceState

logger = logging.getLogger(__name__)

ADAPTER_FAMILIES = {
    "eos": EosAdapter,
    "evm": EvmAdapter,
}


class AdapterRegistry:
    """
    Owns one adapter per chain type and the shared ``NonceSequencer``.

    Adapters are created on first use from the packaged chain table.
    """

    def __init__(
        self,
        testnet: bool = False,
        is_leader: bool = False,
        storeman_renew: bool = False,
        overrides: Optional[Dict[str, Dict[str, Any]]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the registry

        Args:
            testnet: Whether to read the testnet section of the chain table
            is_leader: Leader role flag handed to every adapter
            storeman_renew: When set, ``init_nonce`` leaves nonce state untouched
            overrides: Per-chain-type settings overrides
            logger: Optional logger instance
        """
        self.testnet = testnet
        self.is_leader = is_leader
        self.storeman_renew = storeman_renew
        self.overrides = {k.upper(): v for k, v in (overrides or {}).items()}
        self.logger = logger or logging.getLogger(__name__)
        self.nonces = NonceSequencer(logger=self.logger)
        self._adapters: Dict[str, ChainAdapter] = {}

    def register(self, adapter: ChainAdapter) -> ChainAdapter:
        """Install a ready-made adapter for its chain type"""
        self._adapters[adapter.chain_type.upper()] = adapter
        return adapter

    def get_adapter(self, chain_type: str) -> ChainAdapter:
        """
        Get the adapter for a chain type, creating it on first use.

        Raises:
            ConfigError: If the chain type or its family is unknown
        """
        key = chain_type.upper()
        adapter = self._adapters.get(key)
        if adapter is not None:
            return adapter

        settings = ChainConfig.get_chain(key, testnet=self.testnet, overrides=self.overrides.get(key))
        factory = ADAPTER_FAMILIES.get(settings.family)
        if factory is None:
            raise ConfigError(f"Unsupported chain family '{settings.family}' for chain type '{key}'")
        adapter = factory(settings, is_leader=self.is_leader, logger=self.logger)
        self.logger.debug("Created %r", adapter)
        return self.register(adapter)

    def _nonce_source(self, chain_type: str) -> NonceSource:
        adapter = self.get_adapter(chain_type)
        if not isinstance(adapter, NonceSource):
            raise CapabilityError(f"ChainType: {chain_type} has no account nonces")
        return adapter

    async def init_nonce(self, chain_type: str, address: str) -> Optional[NonceState]:
        """
        Load the on-chain nonce for an address ahead of the first allocation.

        Skipped while a storeman renewal is flagged.
        """
        if self.storeman_renew:
            return None
        return await self.nonces.initialize(self._nonce_source(chain_type), address)

    async def allocate_nonce(self, chain_type: str, address: str) -> int:
        return await self.nonces.allocate(self._nonce_source(chain_type), address)

    async def renew_nonce(self, chain_type: str, address: str) -> NonceState:
        return await self.nonces.renew(self._nonce_source(chain_type), address)

    async def aclose(self) -> None:
        """Close every adapter's network resources"""
        for adapter in list(self._adapters.values()):
            await adapter.aclose()
        self._adapters.clear()
