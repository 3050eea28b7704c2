"""
School Directory Backend: Application Package
==============================================

Layered layout:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (Repository, Uploads,    │  ← validation, uniqueness,
    │            AI descriptions)         │    external calls
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Connection Pool)   │  ← async engine, session factory
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
