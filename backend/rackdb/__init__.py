# backend/rackdb/__init__.py
"""
RackDB: a rack/bin inventory ledger served over a REST API.

ORM models live in rackdb/apps/*/models.py; Alembic's env.py imports them
so every table is registered on Base.metadata.
"""

__version__ = "1.0.0"
