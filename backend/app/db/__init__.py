"""Database package: async engine, session factory and ORM models."""

from app.db.base import Base, async_session_maker, build_engine, engine, get_db, init_db

__all__ = ["Base", "async_session_maker", "build_engine", "engine", "get_db", "init_db"]
