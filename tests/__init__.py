"""
Test Suite for the Gleba Backend

Unit tests for the rural property validation and area accounting engine and
its HTTP surface. The database, Redis and the IBGE download are mocked, so
the suite runs without external services.

Test Categories:
- test_units / test_engine: Unit conversion and geometry engines
- test_validation / test_calculation: Rule-set and area accounting
- test_registry: Layer registry lifecycle and derived areas
- test_api / test_resilience: FastAPI endpoints, middleware, health
- test_cache / test_etl / test_seed / test_models: Ambient stack
- conftest.py: Shared fixtures and test configuration

Running Tests:
    pytest                          # Run all tests
    pytest -m registry -v           # One marker group
    python scripts/run_tests.py     # With coverage and JUnit reports

Author: Gleba Project
License: AGPL-3.0
"""
