"""Infrastructure layer — clock, timers, graph storage, SQLite persistence.

This layer depends on stdlib and third-party libs (SQLAlchemy, NetworkX).
It must never import from services, plugins, or runtime.
"""
