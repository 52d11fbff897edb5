"""
RPC Module
"""
from .registry import (
    CallerContext,
    RpcPermissionError,
    RpcRegistry,
    Services,
    UnknownRpcError,
    build_registry,
    create_services,
)

__all__ = [
    "CallerContext",
    "RpcPermissionError",
    "RpcRegistry",
    "Services",
    "UnknownRpcError",
    "build_registry",
    "create_services",
]
