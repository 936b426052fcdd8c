"""
Test package for simple_mq

This package contains tests for the simple_mq library including:
- Unit tests for the broker client adapter (contexts, consumers, producers, delivery)
- Tests for the session manager and the interactive command loop
- End-to-end listener scenarios against an in-memory broker
- Example script tests

Run all tests with: python -m pytest tests/ -v
"""
