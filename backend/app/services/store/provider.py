from __future__ import annotations

import logging

from app.core.settings import settings
from app.services.store.base import EntityStore
from app.services.store.memory import InMemoryStore

logger = logging.getLogger(__name__)

_STORE: EntityStore | None = None


def build_store(backend: str | None = None) -> EntityStore:
    kind = (backend or settings.store_backend or "sql").lower()
    if kind == "memory":
        logger.info("store.init backend=memory")
        return InMemoryStore()
    if kind != "sql":
        raise RuntimeError(f"Unknown STORE_BACKEND: {kind}")

    from app.core.database import SessionLocal, engine
    from app.services.store.sql import SqlStore

    logger.info("store.init backend=sql url=%s", engine.url.render_as_string(hide_password=True))
    return SqlStore(engine, SessionLocal, create_tables=settings.db_auto_create)


def init_store(store: EntityStore | None = None) -> EntityStore:
    global _STORE
    _STORE = store or build_store()
    return _STORE


def get_store() -> EntityStore:
    if _STORE is None:
        return init_store()
    return _STORE
