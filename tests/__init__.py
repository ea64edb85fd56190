"""
Test Suite

Contains unit tests for the backend system.

Structure:
- tests/unit/: Tests for individual components (cache, orchestrator,
  provider client, time utilities, configuration, HTTP routes)

No test talks to Yahoo Finance: providers are replaced by in-memory fakes
and HTTP calls are monkeypatched.

Uses pytest with pytest-asyncio for testing async functionality.
"""
