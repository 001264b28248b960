"""
Reactive Visualization Store
Holds the query text, settings and exactly one of {parsed graph, error message}
"""
import functools
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from sql_visualizer.exceptions import ParseError
from sql_visualizer.extractor import QueryExtractor
from sql_visualizer.models import (
    ExternalConfig,
    SettingsPatch,
    VisualizerSettings,
    VisualizerState,
)
from sql_visualizer.persistence import (
    InMemoryStorage,
    KeyValueStorage,
    load_persisted,
    save_query,
    save_settings,
)

logger = logging.getLogger(__name__)

DEFAULT_QUERY = """SELECT
  u.id,
  u.name,
  u.email,
  p.title as post_title,
  COUNT(c.id) as comment_count
FROM users u
LEFT JOIN posts p ON u.id = p.user_id
LEFT JOIN comments c ON p.id = c.post_id
WHERE u.active = 1
  AND p.published = 1
GROUP BY u.id, p.id
ORDER BY u.name, p.created_at DESC"""

Listener = Callable[[VisualizerState], None]


def transition(method):
    """Publish a store operation once, after all of its state swaps"""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._origin is not None:
            return method(self, *args, **kwargs)

        self._origin = self._state
        try:
            return method(self, *args, **kwargs)
        finally:
            origin, self._origin = self._origin, None
            if self._state is not origin:
                self._publish(origin)

    return wrapper


class VisualizationStore:
    """
    Single source of truth for the visualizer

    Every public operation is one transition: it swaps in a new
    VisualizerState, then writes changed query/settings to storage and
    notifies listeners once with the final state. Neither side effect
    can fail the transition.
    """

    def __init__(
        self,
        extractor: Optional[QueryExtractor] = None,
        storage: Optional[KeyValueStorage] = None,
        parse_on_start: bool = True,
    ):
        self.extractor = extractor or QueryExtractor()
        self.storage = storage if storage is not None else InMemoryStorage()
        self._listeners: List[Listener] = []
        # state before the running operation; None between operations
        self._origin: Optional[VisualizerState] = None

        query, settings = load_persisted(self.storage)
        self._state = VisualizerState(
            query=query if query is not None else DEFAULT_QUERY,
            settings=settings or VisualizerSettings(),
        )
        if parse_on_start:
            self.parse_query()

    @property
    def state(self) -> VisualizerState:
        return self._state

    def snapshot(self) -> Dict[str, Any]:
        return self._state.to_json()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with the new state after every transition

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Transitions

    @transition
    def set_query(self, query: str):
        self._set(query=query, error=None)
        if self._state.settings.auto_layout:
            self.parse_query()

    @transition
    def parse_query(self):
        query = self._state.query
        if not query.strip():
            self._set(parsed_query=None, error=None)
            return

        try:
            parsed = self.extractor.parse(query)
        except ParseError as exc:
            logger.info('Query rejected: %s', exc)
            self._set(parsed_query=None, error=str(exc))
            return
        self._set(parsed_query=parsed, error=None)

    @transition
    def set_settings(self, patch: Union[SettingsPatch, Mapping[str, Any]]):
        """
        Merge a partial settings update

        Raises:
            pydantic.ValidationError: the patch is invalid; state is left untouched
        """
        if not isinstance(patch, SettingsPatch):
            patch = SettingsPatch.model_validate(patch)

        self._set(settings=self._state.settings.merge(patch))
        if patch.auto_layout is True:
            self.parse_query()

    @transition
    def set_show_settings(self, show: bool):
        self._set(show_settings=show)

    @transition
    def set_is_editing(self, editing: bool):
        self._set(is_editing=editing)

    @transition
    def set_selected_node(self, node_id: Optional[str]):
        self._set(selected_node=node_id)

    @transition
    def clear_error(self):
        self._set(error=None)

    @transition
    def handle_external_config(self, config: Union[ExternalConfig, Mapping[str, Any]]):
        """Apply configuration from the embedding page; malformed input is ignored."""
        if not isinstance(config, ExternalConfig):
            try:
                config = ExternalConfig.model_validate(config)
            except ValidationError as exc:
                logger.warning('Ignoring malformed external config: %s', exc.errors())
                return

        if config.initial_query:
            self._set(query=config.initial_query, error=None)
            self.parse_query()
        if config.settings is not None:
            self.set_settings(config.settings)

    @transition
    def reset_to_defaults(self):
        self._set(
            query=DEFAULT_QUERY,
            settings=VisualizerSettings(),
            show_settings=False,
            is_editing=False,
            selected_node=None,
            error=None,
            parsed_query=None,
        )
        self.parse_query()

    # Internals

    def _set(self, **changes):
        self._state = self._state.model_copy(update=changes)

    def _publish(self, previous: VisualizerState):
        if self._state.query != previous.query:
            self._persist(save_query, self._state.query)
        if self._state.settings != previous.settings:
            self._persist(save_settings, self._state.settings)

        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception('State listener %r failed', listener)

    def _persist(self, writer, value):
        try:
            writer(self.storage, value)
        except Exception:
            logger.exception('Persistence write %s failed', writer.__name__)
