"""
Unit Tests

Unit tests run in isolation without a database. Services use the
in-memory learning repository, a seeded random source and a fixed clock.
"""
