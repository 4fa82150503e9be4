"""Chain RPC access and contract encoding."""

from chain.abi import ContractEvent, ContractFunction
from chain.node import ChainNode, ChainNodeConfig, TransactionHandle

__all__ = [
    "ChainNode",
    "ChainNodeConfig",
    "ContractEvent",
    "ContractFunction",
    "TransactionHandle",
]
