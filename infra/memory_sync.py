from __future__ import annotations

import threading
from queue import Empty, Queue
from typing import Callable, Optional

from domain.ports import SyncSink
from domain.sync_messages import SyncMessage, decode, encode
from infra.logger_config import get_logger

log = get_logger("sync.queue")


class QueueSyncChannel(SyncSink):
    """
    Canal de sync em processo: fila de mensagens tipadas entregues a um
    handler (normalmente SyncApplier.apply do outro lado).

    Cada mensagem passa por encode/decode, como passaria pelo fio.
    Entrega por thread própria (start/stop) ou síncrona com drain().
    """

    def __init__(self, handler: Callable[[SyncMessage], bool], *, queue_max: int = 0):
        self._handler = handler
        self._q: Queue[dict] = Queue(maxsize=queue_max)
        self._stop = threading.Event()
        self._t: Optional[threading.Thread] = None

        self.total_delivered = 0
        self.total_rejected = 0

    def publish(self, message: SyncMessage) -> None:
        self._q.put(encode(message))

    def _deliver(self, payload: dict) -> None:
        msg = decode(payload)
        if msg is None:
            self.total_rejected += 1
            log.warning("rejected sync payload type=%s", payload.get("type"))
            return
        self._handler(msg)
        self.total_delivered += 1

    def drain(self) -> int:
        """Entrega tudo que está na fila agora, na thread do chamador."""
        n = 0
        while True:
            try:
                payload = self._q.get_nowait()
            except Empty:
                return n
            try:
                self._deliver(payload)
                n += 1
            finally:
                self._q.task_done()

    def start(self) -> None:
        if self._t is not None:
            return
        self._stop.clear()
        self._t = threading.Thread(target=self._worker, daemon=True)
        self._t.start()

    def stop(self) -> None:
        if self._t is None:
            return
        self._stop.set()
        self._t.join(timeout=5)
        self._t = None
        self.drain()

    def _worker(self) -> None:
        while not self._stop.is_set():
            try:
                payload = self._q.get(timeout=0.2)
            except Empty:
                continue
            try:
                self._deliver(payload)
            except Exception:
                log.exception("sync handler failed for type=%s", payload.get("type"))
            finally:
                self._q.task_done()
