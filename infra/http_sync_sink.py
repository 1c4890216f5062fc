from __future__ import annotations

import queue
import threading
import time
from typing import Dict, Optional

import httpx

from domain.ports import SyncSink
from domain.sync_messages import SyncMessage, encode
from infra.logger_config import get_logger

log = get_logger("sync.http")

# 4xx que ainda vale repetir
_RETRYABLE_CLIENT_STATUS = frozenset({408, 425, 429})


def _is_retryable(exc: httpx.HTTPError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status in _RETRYABLE_CLIENT_STATUS
    return True


class HttpSyncSink(SyncSink):
    """
    Envia mensagens de sync para o outro cliente via HTTP (POST JSON).

    Um único sender: a ordem de publicação é a ordem de entrega
    (session_started antes de drink_logged antes de session_ended).
    Falha de rede nunca volta para quem publicou; 4xx definitivo não é repetido.
    """

    def __init__(
        self,
        url: str,
        *,
        source_device: str = "phone",
        queue_max: int = 5000,
        timeout_sec: float = 2.0,
        max_retries: int = 3,
        backoff_sec: float = 0.25,
        drop_on_full: bool = False,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._url = url
        self._headers: Dict[str, str] = {"X-Pacing-Source": source_device}
        self._timeout = timeout_sec
        self._max_retries = max_retries
        self._backoff = backoff_sec
        self._drop_on_full = drop_on_full

        self._pending: queue.Queue[SyncMessage | None] = queue.Queue(maxsize=queue_max)
        self._sender: Optional[threading.Thread] = None
        self._client = client
        self._owns_client = client is None

        self.total_published = 0
        self.total_dropped = 0
        self.total_rejected = 0
        self.total_failed = 0
        self.total_sent = 0

    @property
    def running(self) -> bool:
        return self._sender is not None

    def start(self) -> None:
        if self.running:
            return
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        self._sender = threading.Thread(target=self._run, name="sync-http", daemon=True)
        self._sender.start()

    def stop(self) -> None:
        if not self.running:
            return
        # None = fim da fila; o que já foi publicado ainda sai
        self._pending.put(None)
        self._sender.join(timeout=5)
        self._sender = None
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def publish(self, message: SyncMessage) -> None:
        if not self.running:
            raise RuntimeError("HttpSyncSink.publish chamado antes de start()")
        self.total_published += 1
        try:
            self._pending.put(message, block=not self._drop_on_full)
        except queue.Full:
            self.total_dropped += 1
            log.warning("sync queue full, dropped %s", type(message).__name__)

    def join(self) -> None:
        """Espera a fila esvaziar (tudo enviado ou desistido)."""
        self._pending.join()

    def _post(self, payload: dict) -> None:
        client = self._client
        if client is None:
            raise RuntimeError("HttpSyncSink sem cliente HTTP (start() não chamado ou já parado)")
        r = client.post(self._url, json=payload, headers=self._headers)
        r.raise_for_status()

    def _deliver(self, message: SyncMessage) -> None:
        payload = encode(message)
        kind = payload["type"]
        for attempt in range(self._max_retries + 1):
            try:
                self._post(payload)
            except RuntimeError as e:
                self.total_failed += 1
                log.error("sync %s not sent: %s", kind, e)
                return
            except httpx.HTTPError as e:
                if not _is_retryable(e):
                    self.total_rejected += 1
                    log.error("sync %s rejected by peer: %s", kind, e)
                    return
                if attempt == self._max_retries:
                    self.total_failed += 1
                    log.error("sync %s failed after %d attempts: %s", kind, attempt + 1, e)
                    return
                time.sleep(min(self._backoff * (2 ** attempt), 2.0))
            else:
                self.total_sent += 1
                return

    def _run(self) -> None:
        while True:
            message = self._pending.get()
            try:
                if message is None:
                    return
                self._deliver(message)
            finally:
                self._pending.task_done()
