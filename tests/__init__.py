"""
SchemaHub Test Suite.

This package contains:
- unit/: Unit tests (parser, diff rules, policy, engine, stores, config)
- integration/: Integration tests (servicer and HTTP API over SQLite)
"""
