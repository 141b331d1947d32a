"""
Integration tests package.

Integration tests verify that multiple components work together correctly.
Most run fully in process (in-memory vector store, fake embedder). Tests
marked ``integration`` call the real providers and need API keys.

To run live integration tests:
    pytest tests/integration/ -v --run-integration

To skip them (default):
    pytest tests/ -v
"""
