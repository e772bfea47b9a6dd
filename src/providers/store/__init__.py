"""Relational store implementations.

SQLiteDocumentStore implements IDocumentStore with aiosqlite; the database
lives at DATABASE_PATH (default: data/citewise.db).
"""

from src.providers.store.sqlite_document_store import SQLiteDocumentStore

__all__ = ["SQLiteDocumentStore"]
