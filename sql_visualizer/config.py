"""
Application settings, read from SQL_VISUALIZER_* environment variables
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from sql_visualizer.persistence import FileStorage, InMemoryStorage, KeyValueStorage


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix='SQL_VISUALIZER_',
        env_file='.env',
        extra='ignore',
    )

    host: str = '0.0.0.0'
    port: int = 8000
    reload: bool = False
    log_level: str = 'info'
    storage_dir: Optional[Path] = None
    debug_trace: bool = False

    def create_storage(self) -> KeyValueStorage:
        if self.storage_dir is None:
            return InMemoryStorage()
        return FileStorage(self.storage_dir)


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
