"""
Tag resolvers: plugin contract, registry and built-ins.
"""

from __future__ import annotations

from .base import FunctionResolver, ResolveCall, Resolver, ResolverKind
from .builtins import ConfigResolver, EnvResolver, register_builtins
from .registry import ResolverRegistry

__all__ = [
    "Resolver",
    "ResolverKind",
    "ResolveCall",
    "FunctionResolver",
    "ResolverRegistry",
    "EnvResolver",
    "ConfigResolver",
    "register_builtins",
]
