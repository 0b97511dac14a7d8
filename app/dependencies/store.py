"""
Store wiring for the FastAPI app.
"""

from typing import Optional

from app.config.database import get_client, get_database
from app.config.settings import get_settings
from app.repositories.store import DocumentStore, InMemoryDocumentStore, MongoDocumentStore

_store: Optional[DocumentStore] = None


def get_store() -> DocumentStore:
    """
    Return a singleton store so every request shares one client.
    """
    global _store
    if _store:
        return _store

    settings = get_settings()
    if settings.use_in_memory_store:
        _store = InMemoryDocumentStore()
    else:
        _store = MongoDocumentStore(
            get_client(),
            get_database(),
            use_transactions=settings.use_transactions,
        )
    return _store
