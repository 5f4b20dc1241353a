import logging
from typing import Callable, Dict, List, Optional

from .events import ChangeEvent, ChangeType, table_channel, tournament_channel

logger = logging.getLogger(__name__)

ALL_TABLES = "*"

ChangeHandler = Callable[[str, ChangeType, dict], None]


class ChangeFeed:
    """
    Row-level change notification for tournaments, players, registrations
    and matches.

    Handlers registered in this process are always called. With a Redis
    client the event is also published so other processes (and the SSE
    stream) see it; without one the feed runs in local mode.
    """

    def __init__(self, redis_client=None):
        self.redis = redis_client
        self._handlers: Dict[str, List[ChangeHandler]] = {}
        self._pubsub = None
        self._listener = None
        if self.redis is None:
            logger.info("ChangeFeed running in local mode (no Redis)")

    @property
    def is_local(self) -> bool:
        return self.redis is None

    def subscribe(self, table: str, handler: ChangeHandler):
        table = getattr(table, 'value', table)
        self._handlers.setdefault(table, []).append(handler)

    def unsubscribe(self, table: str, handler: ChangeHandler) -> bool:
        table = getattr(table, 'value', table)
        handlers = self._handlers.get(table, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def publish(
        self,
        table: str,
        event_type: ChangeType,
        row: dict = None,
        tournament_id: Optional[str] = None
    ) -> ChangeEvent:
        event = ChangeEvent(table=table, event_type=event_type, row=row, tournament_id=tournament_id)
        self._dispatch(event)

        if self.redis is not None:
            try:
                payload = event.to_json()
                self.redis.publish(table_channel(event.table), payload)
                if tournament_id:
                    self.redis.publish(tournament_channel(tournament_id), payload)
            except Exception as e:
                logger.error(f"Failed to publish {event.event_type.value} on {event.table}: {e}")

        return event

    def _dispatch(self, event: ChangeEvent):
        handlers = self._handlers.get(event.table, []) + self._handlers.get(ALL_TABLES, [])
        for handler in handlers:
            try:
                handler(event.table, event.event_type, event.row)
            except Exception:
                logger.exception(f"Change handler failed for {event.event_type.value} on {event.table}")

    def start_listening(self):
        """Relay changes published by other processes to local handlers."""
        if self.redis is None or self._listener is not None:
            return

        self._pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        self._pubsub.psubscribe(**{table_channel('*'): self._message_handler})
        self._listener = self._pubsub.run_in_thread(sleep_time=0.1, daemon=True)

    def _message_handler(self, message):
        try:
            event = ChangeEvent.from_json(message['data'])
        except (ValueError, KeyError) as e:
            logger.error(f"Dropping unreadable change message on {message.get('channel')}: {e}")
            return
        self._dispatch(event)

    def stop_listening(self):
        if self._listener is not None:
            self._listener.stop()
            self._listener = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None
