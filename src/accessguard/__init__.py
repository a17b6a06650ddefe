"""Field-level access guard for CRUD and upsert operations."""

__version__ = "0.1.0"
