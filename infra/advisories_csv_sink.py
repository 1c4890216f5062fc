from __future__ import annotations

import csv
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Dict, List, Optional

from domain.models import EventToEmit
from domain.ports import AdvisorySink
from infra.logger_config import get_logger
from infra.sinks import fmt_epoch

log = get_logger("journal")

CSV_HEADER = ["utc_time", "session_id", "event_type", "code", "severity", "message"]


@dataclass(frozen=True)
class JournalEntry:
    session_id: str
    t_epoch: float
    event: EventToEmit

    def as_row(self) -> list:
        e = self.event
        return [fmt_epoch(self.t_epoch), self.session_id, e.event_type.value, e.code.value, e.severity, e.message]


class AsyncCsvAdvisoryWriter(AdvisorySink):
    """
    Diário dos advisories emitidos, em CSV, escrito fora do ciclo de avaliação.

    csv_path pode conter "{date}" (data UTC do advisory, AAAA-MM-DD): um arquivo
    por dia. O diário é só histórico; o dedupe vem do PacingEventStore.
    """

    def __init__(
        self,
        csv_path: str,
        *,
        queue_max: int = 20000,
        drop_on_full: bool = True,
        flush_every_n: int = 200,
        flush_every_sec: float = 2.0,
    ):
        self.csv_path = csv_path
        self.drop_on_full = drop_on_full
        self.flush_every_n = flush_every_n
        self.flush_every_sec = flush_every_sec

        self._entries: Queue[JournalEntry] = Queue(maxsize=queue_max)
        self._closing = threading.Event()
        self._writer: Optional[threading.Thread] = None

        self.total_written = 0
        self.total_dropped = 0
        self.total_failed = 0

    def start(self) -> None:
        if self._writer is not None:
            return
        self._closing.clear()
        self._writer = threading.Thread(target=self._run, name="advisory-journal", daemon=True)
        self._writer.start()

    def stop(self) -> None:
        if self._writer is None:
            return
        self._closing.set()
        self._writer.join(timeout=5)
        self._writer = None

    def publish(self, session_id: str, t_epoch: float, event: EventToEmit) -> None:
        if self._writer is None:
            raise RuntimeError("AsyncCsvAdvisoryWriter.publish chamado antes de start()")
        entry = JournalEntry(session_id=session_id, t_epoch=float(t_epoch), event=event)
        try:
            self._entries.put(entry, block=not self.drop_on_full)
        except Full:
            self.total_dropped += 1
            log.warning("journal queue full, dropped %s for session %s", event.code.value, session_id)

    def path_for(self, t_epoch: float) -> Path:
        day = datetime.fromtimestamp(t_epoch, tz=timezone.utc).strftime("%Y-%m-%d")
        return Path(self.csv_path.replace("{date}", day))

    def _write(self, batch: List[JournalEntry]) -> None:
        by_file: Dict[Path, List[JournalEntry]] = defaultdict(list)
        for entry in batch:
            by_file[self.path_for(entry.t_epoch)].append(entry)

        for path, entries in by_file.items():
            try:
                new_file = not path.exists() or path.stat().st_size == 0
                with path.open("a", newline="", encoding="utf-8") as f:
                    w = csv.writer(f)
                    if new_file:
                        w.writerow(CSV_HEADER)
                    w.writerows(entry.as_row() for entry in entries)
            except OSError:
                # perde só este lote; o diário segue vivo
                self.total_failed += len(entries)
                log.exception("journal write failed: %s (%d entries)", path, len(entries))
                continue
            self.total_written += len(entries)

    def _take_all(self) -> List[JournalEntry]:
        out: List[JournalEntry] = []
        while True:
            try:
                out.append(self._entries.get_nowait())
            except Empty:
                return out

    def _run(self) -> None:
        batch: List[JournalEntry] = []
        last_write = time.monotonic()

        while not self._closing.is_set():
            try:
                batch.append(self._entries.get(timeout=0.2))
            except Empty:
                pass

            due = (time.monotonic() - last_write) >= self.flush_every_sec
            if batch and (len(batch) >= self.flush_every_n or due):
                self._write(batch)
                batch = []
                last_write = time.monotonic()

        # fechando: o que sobrou na fila também vai para o disco
        batch.extend(self._take_all())
        if batch:
            self._write(batch)
