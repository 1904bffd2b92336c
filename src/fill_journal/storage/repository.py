from __future__ import annotations

from fill_journal.config.app_config import AppConfig
from fill_journal.storage.base import StorageRepository
from fill_journal.storage.local_store import LocalRepository
from fill_journal.storage.sqlite_store import SqliteRepository


def open_repository(config: AppConfig) -> StorageRepository:
    settings = config.app
    tz = config.analytics.tz
    if settings.storage == "local":
        return LocalRepository(settings.local_path, user_id=settings.user_id, tz=tz)
    return SqliteRepository(settings.db_path, user_id=settings.user_id, tz=tz)
