"""
Static chain configuration for the xchain adapter SDK.

The chain table ships as package data (``chains.json``) with a ``main`` and a
``testnet`` section. Node URLs and the operation timeout can be overridden
through environment variables.
"""
import json
import logging
import os
from importlib import resources
from typing import Dict, Any, Optional, List

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_PROMISE_TIMEOUT_MS = 600_000
DEFAULT_POLL_INTERVAL_S = 30.0


class ChainSettings(BaseModel):
    """Per-chain static settings"""
    chain_type: str
    family: str = "eos"
    node_url: str
    bp_node_url: Optional[str] = None
    htlc_addr: str = ""
    deposit_action: List[str] = Field(default_factory=list)
    withdraw_action: List[str] = Field(default_factory=list)
    debt_action: List[str] = Field(default_factory=list)
    withdraw_fee_action: Optional[str] = None
    scan_retry_times: int = 3
    promise_timeout_ms: int = DEFAULT_PROMISE_TIMEOUT_MS
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    history_page_size: int = 100
    finality_depth: int = 0
    event_abi: List[Dict[str, Any]] = Field(default_factory=list)

    class Config:
        extra = "forbid"

    @property
    def push_url(self) -> str:
        """Endpoint used for signed transaction submission"""
        return self.bp_node_url or self.node_url

    @property
    def scan_actions(self) -> List[str]:
        """Action names a range scan filters on by default"""
        return list(self.deposit_action) + list(self.withdraw_action) + list(self.debt_action)


class ChainConfig:
    """Loader for the packaged chain table"""

    _chains_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_chains(cls, testnet: bool = False) -> Dict[str, Any]:
        """
        Load the chain table section for main or test network.

        Args:
            testnet: Whether to read the testnet section

        Returns:
            Mapping of chain type to raw settings
        """
        if cls._chains_cache is None:
            with resources.files("xchain_sdk").joinpath("chains.json").open("r") as f:
                cls._chains_cache = json.load(f)
        return cls._chains_cache["testnet" if testnet else "main"]

    @classmethod
    def get_chain(
        cls,
        chain_type: str,
        testnet: bool = False,
        overrides: Optional[Dict[str, Any]] = None
    ) -> ChainSettings:
        """
        Get validated settings for one chain type.

        Args:
            chain_type: Chain type tag such as "EOS" or "ETH"
            testnet: Whether to read the testnet section
            overrides: Optional keys replacing the table values

        Returns:
            ChainSettings for the chain

        Raises:
            ConfigError: If the chain type is unknown or the entry is invalid
        """
        chain_type = chain_type.upper()
        chains = cls.load_chains(testnet)
        if chain_type not in chains:
            available = ", ".join(sorted(chains.keys()))
            raise ConfigError(f"Unknown chain type '{chain_type}'. Available chain types: {available}")

        raw = dict(chains[chain_type])
        raw["chain_type"] = chain_type

        # Environment beats the table, explicit overrides beat both
        for key in ("node_url", "bp_node_url"):
            env_value = os.environ.get(f"XCHAIN_{chain_type}_{key.upper()}")
            if env_value:
                raw[key] = env_value

        timeout_env = os.environ.get("XCHAIN_PROMISE_TIMEOUT_MS")
        if timeout_env:
            try:
                raw["promise_timeout_ms"] = int(timeout_env)
            except ValueError:
                raise ConfigError(f"XCHAIN_PROMISE_TIMEOUT_MS must be an integer, got: {timeout_env}")

        raw.update(overrides or {})

        try:
            return ChainSettings(**raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration for chain type '{chain_type}': {e}") from e

    @classmethod
    def get_node_url(
        cls,
        chain_type: str,
        override: Optional[str] = None,
        testnet: bool = False
    ) -> str:
        """
        Resolve the node URL for a chain type.

        An explicit override wins, then ``XCHAIN_<TYPE>_NODE_URL``, then the
        value from the packaged table.
        """
        if override:
            return override
        return cls.get_chain(chain_type, testnet=testnet).node_url

    @classmethod
    def get_bp_node_url(
        cls,
        chain_type: str,
        override: Optional[str] = None,
        testnet: bool = False
    ) -> str:
        """Resolve the submission endpoint, falling back to the node URL"""
        if override:
            return override
        return cls.get_chain(chain_type, testnet=testnet).push_url
