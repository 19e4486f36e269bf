from fastapi import Depends

from app.services.lifecycle import LifecycleManager
from app.services.store.base import EntityStore
from app.services.store.provider import get_store


def get_lifecycle(store: EntityStore = Depends(get_store)) -> LifecycleManager:
    return LifecycleManager(store)


def split_csv(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    values = [v.strip() for v in raw.split(",") if v.strip()]
    return values or None
