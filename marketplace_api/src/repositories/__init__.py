"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each domain area and never
commit; services own the transaction boundary.
"""
