"""
Integration tests for the tsmigrator library.

These tests run complete migrations between in-memory stores with
realistic data volumes, concurrency and injected endpoint faults.

Run integration tests:
    pytest tests/integration/ -v

Skip integration tests:
    pytest tests/ -v -m "not integration"
"""
