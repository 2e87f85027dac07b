"""
Chain adapters: one implementation of the uniform capability set per chain family.
"""
from .base import ChainAdapter, ChainHandle, TableQueryable, bounded_call
from .eos import EosAdapter
from .evm import EvmAdapter

__all__ = [
    "ChainAdapter",
    "ChainHandle",
    "TableQueryable",
    "bounded_call",
    "EosAdapter",
    "EvmAdapter",
]
