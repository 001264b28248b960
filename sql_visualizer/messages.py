"""
External configuration channel
Routes configuration messages from the embedding page into the store
"""
import logging
from collections import deque
from typing import Any, Deque

from pydantic import ValidationError

from sql_visualizer.models import ExternalConfigMessage
from sql_visualizer.store import VisualizationStore

logger = logging.getLogger(__name__)

MESSAGE_TYPE = 'sql-visualizer-config'


def dispatch_message(store: VisualizationStore, payload: Any) -> bool:
    """
    Apply one inbound message to the store

    Returns:
        True when the message was a well-formed visualizer config and was applied
    """
    if not isinstance(payload, dict) or payload.get('type') != MESSAGE_TYPE:
        return False

    try:
        message = ExternalConfigMessage.model_validate(payload)
    except ValidationError as exc:
        logger.warning('Ignoring malformed %s message: %s', MESSAGE_TYPE, exc.errors())
        return False

    store.handle_external_config(message)
    return True


class MessageChannel:
    """FIFO inbox; messages are applied one at a time in arrival order"""

    def __init__(self, store: VisualizationStore):
        self.store = store
        self._inbox: Deque[Any] = deque()

    def post(self, payload: Any):
        self._inbox.append(payload)

    def drain(self) -> int:
        """Apply every queued message; returns how many were accepted"""
        accepted = 0
        while self._inbox:
            if dispatch_message(self.store, self._inbox.popleft()):
                accepted += 1
        return accepted

    def __len__(self):
        return len(self._inbox)
