"""
OpenBooks Backend — Application Package Initializer
===================================================

What: Marks the `openbooks` directory as a Python package.
Who:  Used by pytest, uvicorn (`uvicorn openbooks.main:app`) and the tests.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (PhotoStore, projection, │  ← Validation, authorization,
    │   seed, blob uploaders)             │    in-memory aggregate
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← Entity records + API contracts
    ├─────────────────────────────────────┤
    │   Storage (DocumentStore backends)  │  ← JSON file or Cosmos DB
    └─────────────────────────────────────┘

    The storage layer never sees HTTP; routes never touch a backend directly.
"""

__version__ = "1.0.0"
