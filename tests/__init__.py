"""Test suite for cytometree.

Test organization:
- fixtures/: Synthetic event generators
- unit/: Unit tests for individual modules

Run tests with:
    pytest tests/
    pytest tests/unit/
    pytest tests/ -v --tb=short
"""
