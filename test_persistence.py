"""
Tests for query/settings persistence
"""
import json

import pytest

from sql_visualizer.exceptions import StorageError
from sql_visualizer.models import VisualizerSettings
from sql_visualizer.persistence import (
    QUERY_KEY,
    SETTINGS_KEY,
    FileStorage,
    InMemoryStorage,
    KeyValueStorage,
    load_persisted,
)
from sql_visualizer.store import DEFAULT_QUERY, VisualizationStore


class BrokenStorage(KeyValueStorage):
    """Storage whose reads and writes always fail"""

    def load(self, key):
        raise StorageError('disk unavailable')

    def save(self, key, value):
        raise StorageError('disk unavailable')


def test_hydrates_query_and_settings():
    storage = InMemoryStorage({
        QUERY_KEY: json.dumps('SELECT a FROM t1'),
        SETTINGS_KEY: json.dumps({'theme': 'dark', 'nodeSpacing': 300}),
    })

    store = VisualizationStore(storage=storage)

    assert store.state.query == 'SELECT a FROM t1'
    assert store.state.settings == VisualizerSettings(theme='dark', node_spacing=300)
    assert [t.name for t in store.state.parsed_query.tables] == ['t1']


STORED_VALUE_CASES = [
    {'name': 'corrupt json', 'query': '{not json', 'settings': '[1, 2'},
    {'name': 'wrong types', 'query': '42', 'settings': '"dark"'},
    {'name': 'out of range', 'query': 'null', 'settings': json.dumps({'nodeSpacing': 9000})},
]


@pytest.mark.parametrize('case', STORED_VALUE_CASES, ids=[case['name'] for case in STORED_VALUE_CASES])
def test_bad_stored_values_fall_back_to_defaults(case):
    storage = InMemoryStorage({QUERY_KEY: case['query'], SETTINGS_KEY: case['settings']})

    query, settings = load_persisted(storage)
    store = VisualizationStore(storage=storage)

    assert (query, settings) == (None, None)
    assert store.state.query == DEFAULT_QUERY
    assert store.state.settings == VisualizerSettings()


def test_unknown_settings_keys_are_ignored():
    storage = InMemoryStorage({SETTINGS_KEY: json.dumps({'darkMode': True, 'fontSize': 14})})

    _, settings = load_persisted(storage)

    assert settings == VisualizerSettings(dark_mode=True)


def test_transitions_write_query_and_settings():
    storage = InMemoryStorage()
    store = VisualizationStore(storage=storage)

    store.set_query('SELECT b FROM t2')
    store.set_settings({'darkMode': True})

    assert json.loads(storage.load(QUERY_KEY)) == 'SELECT b FROM t2'
    assert json.loads(storage.load(SETTINGS_KEY)) == {
        'darkMode': True, 'autoLayout': True, 'showTableColumns': True,
        'nodeSpacing': 250, 'theme': 'light',
    }


def test_ui_flags_are_not_persisted():
    storage = InMemoryStorage()
    store = VisualizationStore(storage=storage)

    store.set_show_settings(True)
    store.set_selected_node('table-users-0')

    assert storage.load(QUERY_KEY) is None
    assert storage.load(SETTINGS_KEY) is None


def test_broken_storage_never_affects_state():
    store = VisualizationStore(storage=BrokenStorage())

    store.set_query('SELECT b FROM t2')
    store.set_settings({'theme': 'auto'})

    assert store.state.query == 'SELECT b FROM t2'
    assert store.state.settings.theme == 'auto'
    assert [t.name for t in store.state.parsed_query.tables] == ['t2']


def test_file_storage_round_trip(tmp_path):
    storage = FileStorage(tmp_path / 'state')
    store = VisualizationStore(storage=storage)

    store.set_query('SELECT c FROM t3')
    store.set_settings({'nodeSpacing': 175})

    assert (tmp_path / 'state' / (QUERY_KEY + '.json')).exists()

    reopened = VisualizationStore(storage=FileStorage(tmp_path / 'state'))
    assert reopened.state.query == 'SELECT c FROM t3'
    assert reopened.state.settings.node_spacing == 175


def test_file_storage_missing_key(tmp_path):
    assert FileStorage(tmp_path).load(QUERY_KEY) is None


def test_file_storage_undecodable_file(tmp_path):
    (tmp_path / (QUERY_KEY + '.json')).write_bytes(b'"\xff\xfe broken"')

    with pytest.raises(StorageError):
        FileStorage(tmp_path).load(QUERY_KEY)

    store = VisualizationStore(storage=FileStorage(tmp_path))
    assert store.state.query == DEFAULT_QUERY
    assert store.state.error is None


def test_file_storage_write_error(tmp_path):
    blocker = tmp_path / 'blocker'
    blocker.write_text('not a directory')

    with pytest.raises(StorageError):
        FileStorage(blocker).save(QUERY_KEY, '"x"')
