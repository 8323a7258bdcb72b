"""Data stores for persistence and caching.

Stores handle:
- PostgreSQL: engine lifecycle, transactional sessions
- Redis: shared JSON cache for materialized variants

No business logic in stores - that belongs in services.
"""
