# tests/__init__.py
"""
Test suite for AgentScale.

This package contains all tests for the orchestration service:
- unit: Unit tests for individual components
- integration: Full executions through the scheduler with fake sessions
- fakes: Test doubles for automation sessions and decision strategies
"""
