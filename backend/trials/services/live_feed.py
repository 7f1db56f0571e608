# backend/trials/services/live_feed.py
"""
Живая лента для табло (Server-Sent Events).

Подписчики: asyncio.Queue в цикле сервера, а публикуют сюда потоки
ChangeNotifier, поэтому publish() передаёт сообщение в цикл через
call_soon_threadsafe.
"""

import asyncio
import json
import logging
import threading

from ..db import SessionLocal
from .notifier import LedgerEvent

logger = logging.getLogger(__name__)

QUEUE_SIZE = 256


class LiveFeed:
    def __init__(self):
        self._subscribers: set[asyncio.Queue] = set()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()

    def subscribe(self) -> asyncio.Queue:
        """Вызывать из корутины: запоминаем цикл сервера."""
        q: asyncio.Queue = asyncio.Queue(maxsize=QUEUE_SIZE)
        with self._lock:
            self._loop = asyncio.get_running_loop()
            self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        with self._lock:
            self._subscribers.discard(q)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _put(self, message: dict) -> None:
        for q in list(self._subscribers):
            try:
                q.put_nowait(message)
            except asyncio.QueueFull:
                # медленный клиент: выкидываем самое старое
                try:
                    q.get_nowait()
                    q.put_nowait(message)
                except (asyncio.QueueEmpty, asyncio.QueueFull):
                    self._subscribers.discard(q)

    def publish(self, message: dict) -> None:
        with self._lock:
            loop = self._loop
            if loop is None or not self._subscribers:
                return
        if loop.is_closed():
            return
        loop.call_soon_threadsafe(self._put, message)


def format_sse(message: dict) -> str:
    event = message.get("type", "message")
    payload = json.dumps(message, separators=(",", ":"), default=str)
    return f"event: {event}\ndata: {payload}\n\n"


_feed = LiveFeed()


def get_live_feed() -> LiveFeed:
    return _feed


def make_live_feed_listener(feed: LiveFeed, session_factory=SessionLocal):
    """
    Слушатель для ChangeNotifier: шлёт само событие и свежую таблицу.
    """
    # импорт здесь, чтобы не зациклить services.scoring <-> live_feed
    from .scoring import get_standings

    def live_feed_listener(event: LedgerEvent) -> None:
        feed.publish(event.as_dict())
        if not feed.subscriber_count:
            return
        db = session_factory()
        try:
            standings = get_standings(db)
        finally:
            db.close()
        feed.publish({
            "type": "leaderboard",
            "standings": [board.as_dict() for board in standings],
        })

    return live_feed_listener
