"""
API module for SchemaHub server.

This module provides the external interface:
- RegistryServicer (transport-independent service logic)
- HTTP server (aiohttp REST API)

Invariants:
    - All /v1/services and /v1/versions operations require an API key
    - Authentication happens before any store access
    - Errors are returned as {"error", "error_code"} payloads

How to change safely:
    - Add new operations, don't change existing response shapes
    - HTTP endpoints must match servicer semantics
"""

from .http_server import create_http_app
from .servicer import DEFAULT_TAG, RegistryServicer

__all__ = [
    "DEFAULT_TAG",
    "RegistryServicer",
    "create_http_app",
]
