"""
Node clients used by the chain adapters.
"""
from .eos_rpc import EosRpcClient

__all__ = ["EosRpcClient"]
