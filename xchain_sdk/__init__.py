"""
xchain adapter SDK - chain-adapter core of a cross-chain asset bridge.
"""
from .version import __version__
from .exceptions import (
    XChainError, ConfigError, OperationTimeout, TransportError, NotFoundError,
    DecodeSkipped, SequencingConflict, CapabilityError
)
from .models import (
    SUCCESS_STATUS, EventKind, ValueKind, ChainInfo, Block, DepositArgs,
    CanonicalEvent, PendingReceipt
)
from .config import ChainConfig, ChainSettings
from .bounded import TimeoutSpec, bounded, run_bounded, retry_call
from .decoder import decode_action, decode_actions
from .finality import FinalityState, FinalityResult, FinalityTracker
from .nonce import NonceSequencer, NonceState, NonceSource
from .adapters import ChainAdapter, ChainHandle, EosAdapter, EvmAdapter
from .clients import EosRpcClient
from .registry import AdapterRegistry

__all__ = [
    "__version__",
    "XChainError",
    "ConfigError",
    "OperationTimeout",
    "TransportError",
    "NotFoundError",
    "DecodeSkipped",
    "SequencingConflict",
    "CapabilityError",
    "SUCCESS_STATUS",
    "EventKind",
    "ValueKind",
    "ChainInfo",
    "Block",
    "DepositArgs",
    "CanonicalEvent",
    "PendingReceipt",
    "ChainConfig",
    "ChainSettings",
    "TimeoutSpec",
    "bounded",
    "run_bounded",
    "retry_call",
    "decode_action",
    "decode_actions",
    "FinalityState",
    "FinalityResult",
    "FinalityTracker",
    "NonceSequencer",
    "NonceState",
    "NonceSource",
    "ChainAdapter",
    "ChainHandle",
    "EosAdapter",
    "EvmAdapter",
    "EosRpcClient",
    "AdapterRegistry",
]
