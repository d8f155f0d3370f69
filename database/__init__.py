from .database import (
    engine,
    SessionLocal,
    Base,
    get_db,
    session_scope,
    DATABASE_URL
)

__all__ = ['engine', 'SessionLocal', 'Base', 'get_db', 'session_scope', 'DATABASE_URL']
