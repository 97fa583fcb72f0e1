"""Supported chains and per-chain state access."""

from chainhopper.chains.registry import ChainRegistry
from chainhopper.chains.rpc import ChainRpcClient, RpcError, build_rpc_clients

__all__ = [
    "ChainRegistry",
    "ChainRpcClient",
    "RpcError",
    "build_rpc_clients",
]
