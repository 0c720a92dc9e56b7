# tests/integration/__init__.py
"""
Integration tests for component interactions.

These run whole executions through the scheduler, context manager, loop,
executor, broadcaster and usage ledger. Only the automation session and
the decision capability are faked.
"""
