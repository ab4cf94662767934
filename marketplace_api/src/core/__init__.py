"""
Core application utilities for settings and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- Structured logging with correlation ids
- Password hashing and JWT helpers
- Dependency helpers (DB session, current profile, role checks)
"""
