"""
Food diary backend package.

This package provides a FastAPI application for logging meals, with
document-store, object-storage and auth abstractions so the same code runs
against managed services in production and in-memory doubles in tests.
"""
