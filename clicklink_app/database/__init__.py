from .connection import Base, Database, get_db

__all__ = ["Base", "Database", "get_db"]
