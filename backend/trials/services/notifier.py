# backend/trials/services/notifier.py
"""
Оповещение «журнал попыток изменился».

Вызывается ПОСЛЕ commit. У каждого слушателя (табло, бэкап в таблицу)
свой поток: события до него доходят строго в порядке записи, а ошибки
только логируются и никогда не долетают до операции судьи.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

CREATED = "created"
CORRECTED = "corrected"
REMOVED = "removed"
RESET = "reset"


@dataclass(frozen=True)
class LedgerEvent:
    kind: str
    attempt: dict | None = None

    def as_dict(self) -> dict:
        return {"type": self.kind, "attempt": self.attempt}


Listener = Callable[[LedgerEvent], None]


class ChangeNotifier:
    def __init__(self):
        # слушатель -> его однопоточный исполнитель
        self._listeners: dict[Listener, ThreadPoolExecutor] = {}
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Listener:
        name = getattr(listener, "__name__", "listener")
        with self._lock:
            if listener not in self._listeners:
                self._listeners[listener] = ThreadPoolExecutor(
                    max_workers=1,
                    thread_name_prefix=f"ledger-notify-{name}",
                )
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            executor = self._listeners.pop(listener, None)
        if executor is not None:
            executor.shutdown(wait=False)

    def ledger_changed(self, event: LedgerEvent) -> None:
        with self._lock:
            targets = list(self._listeners.items())
            for listener, executor in targets:
                future = executor.submit(self._deliver, listener, event)
                self._pending.add(future)
                future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @staticmethod
    def _deliver(listener: Listener, event: LedgerEvent) -> None:
        try:
            listener(event)
        except Exception:
            name = getattr(listener, "__name__", repr(listener))
            logger.exception("Ledger listener %s failed on %s event", name, event.kind)

    def drain(self, timeout: float | None = 10.0) -> None:
        """Дождаться доставки всего, что уже отправлено."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        with self._lock:
            executors = list(self._listeners.values())
            self._listeners.clear()
        for executor in executors:
            executor.shutdown(wait=True)


_notifier: ChangeNotifier | None = None


def get_notifier() -> ChangeNotifier:
    global _notifier
    if _notifier is None:
        _notifier = ChangeNotifier()
    return _notifier
