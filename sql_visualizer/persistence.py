"""
Persistence for the visualizer's query text and settings
"""
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from pydantic import ValidationError

from sql_visualizer.exceptions import StorageError
from sql_visualizer.models import SettingsPatch, VisualizerSettings

logger = logging.getLogger(__name__)

QUERY_KEY = 'sql-visualizer-query'
SETTINGS_KEY = 'sql-visualizer-settings'


class KeyValueStorage:
    """String key/value store; values are JSON documents."""

    def load(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def save(self, key: str, value: str) -> None:
        raise NotImplementedError


class InMemoryStorage(KeyValueStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def save(self, key: str, value: str) -> None:
        self._values[key] = value


class FileStorage(KeyValueStorage):
    """One `<key>.json` file per key inside a directory"""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / '{}.json'.format(key)

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError('Cannot read {}: {}'.format(path, exc)) from exc

    def save(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(value, encoding='utf-8')
        except OSError as exc:
            raise StorageError('Cannot write {}: {}'.format(path, exc)) from exc


def _read_json(storage: KeyValueStorage, key: str):
    try:
        raw = storage.load(key)
    except StorageError as exc:
        logger.warning('Ignoring persisted %s: %s', key, exc)
        return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning('Ignoring persisted %s: not valid JSON', key)
        return None


def load_persisted(storage: KeyValueStorage) -> Tuple[Optional[str], Optional[VisualizerSettings]]:
    """
    Read the persisted query and settings

    Returns:
        (query, settings); either is None when absent, unreadable or invalid
    """
    query = _read_json(storage, QUERY_KEY)
    if query is not None and not isinstance(query, str):
        logger.warning('Ignoring persisted %s: expected a string', QUERY_KEY)
        query = None

    settings = None
    stored_settings = _read_json(storage, SETTINGS_KEY)
    if stored_settings is not None:
        try:
            settings = VisualizerSettings().merge(SettingsPatch.model_validate(stored_settings))
        except ValidationError as exc:
            logger.warning('Ignoring persisted %s: %s', SETTINGS_KEY, exc.errors())

    return query, settings


def save_query(storage: KeyValueStorage, query: str) -> None:
    storage.save(QUERY_KEY, json.dumps(query))


def save_settings(storage: KeyValueStorage, settings: VisualizerSettings) -> None:
    storage.save(SETTINGS_KEY, json.dumps(settings.to_json()))
