"""
DocStore Test Suite.

This package contains:
- unit/: Unit tests (types, schema, queries, stores, config)
- integration/: Model, Node and Database lifecycles against the in-memory store
"""
