"""
SchemaHub Server - schema registry for GraphQL SDL documents.

This package implements a registry that CI jobs and CLIs talk to in order to:
- Push schema documents for a service under a tag (environment)
- Check a candidate schema against the tagged schema for breaking changes
- Browse the push history of a service

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌──────────────────┐
    │  CLI / CI   │────▶│    HTTP     │────▶│ RegistryServicer │
    │  (client)   │     │   Server    │     │  (auth, errors)  │
    └─────────────┘     └─────────────┘     └────────┬─────────┘
                                                     │
                 ┌──────────────┬────────────────────┼──────────────┐
                 │              │                    │              │
                 ▼              ▼                    ▼              ▼
           ┌──────────┐  ┌───────────┐        ┌───────────┐  ┌────────────┐
           │  Schema  │  │ Tag Index │        │  History  │  │    Diff    │
           │  Store   │  │           │        │    Log    │  │   Engine   │
           └────┬─────┘  └─────┬─────┘        └─────┬─────┘  └────────────┘
                │              │                    │
                ▼              ▼                    ▼
           ┌─────────────────────────────────────────────┐
           │              SQLite (registry.db)           │
           └─────────────────────────────────────────────┘

Invariants:
    - Schema versions are immutable and content-addressed per service
    - Exactly one current version per (service, tag) at any time
    - History is append-only and never rewritten
    - Diffs are pure and deterministic

How to change safely:
    - Severity rules live in schema/policy.py; override them via YAML
    - SQLite schema changes must be additive
    - Keep HTTP responses backward compatible for CI parsers

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
