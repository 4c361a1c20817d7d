import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import DuplicateEventIdError, EventNotFoundError
from .models import Event


class ReadWriteLock:
    """
    Lock multi-reader / single-writer.
    Writer yang sedang menunggu mendapat prioritas supaya tidak kelaparan.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class LedgerSnapshot:
    """View read-only atas isi ledger pada satu titik waktu."""
    events: Tuple[Event, ...]
    newest_timestamp: Optional[datetime]

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self):
        return iter(self.events)


class LedgerWriter:
    """
    Handle tulis yang hanya hidup di dalam EventLedger.write_section().
    Append ditampung dulu lalu di-commit sekaligus saat section selesai.
    """

    def __init__(self, ledger: "EventLedger"):
        self._ledger = ledger
        self._pending: List[Event] = []
        self._pending_ids = set()
        self._newest = ledger._newest

    def newest_timestamp(self) -> Optional[datetime]:
        """Timestamp terbaru termasuk event yang belum di-commit."""
        return self._newest

    def append(self, event: Event):
        if event.id in self._ledger._index or event.id in self._pending_ids:
            raise DuplicateEventIdError(event.id)
        self._pending.append(event)
        self._pending_ids.add(event.id)
        if self._newest is None or event.timestamp > self._newest:
            self._newest = event.timestamp

    @property
    def pending(self) -> List[Event]:
        return list(self._pending)


class EventLedger:
    """
    Koleksi event append-only di memori.
    Ledger adalah satu-satunya pemilik sequence event; akses dari luar
    hanya lewat snapshot(), find_by_id(), newest_timestamp() dan write_section().
    """

    def __init__(self, events: Iterable[Event] = ()):
        self._lock = ReadWriteLock()
        self._events: Tuple[Event, ...] = ()
        self._index: Dict[str, Event] = {}
        self._newest: Optional[datetime] = None
        self.extend(events)

    @contextmanager
    def write_section(self):
        """
        Section tulis eksklusif. Semua event yang di-append di dalamnya
        terlihat oleh reader sebagai satu batch atomik, atau tidak sama sekali
        bila terjadi exception.
        """
        with self._lock.write():
            writer = LedgerWriter(self)
            yield writer
            if writer._pending:
                for event in writer._pending:
                    self._index[event.id] = event
                self._events = self._events + tuple(writer._pending)
                self._newest = writer._newest

    def append(self, event: Event):
        with self.write_section() as writer:
            writer.append(event)

    def extend(self, events: Iterable[Event]) -> int:
        with self.write_section() as writer:
            for event in events:
                writer.append(event)
            return len(writer._pending)

    def snapshot(self) -> LedgerSnapshot:
        with self._lock.read():
            return LedgerSnapshot(events=self._events, newest_timestamp=self._newest)

    def find_by_id(self, event_id: str) -> Event:
        with self._lock.read():
            event = self._index.get(event_id)
        if event is None:
            raise EventNotFoundError("The requested event does not exist")
        return event

    def newest_timestamp(self) -> Optional[datetime]:
        with self._lock.read():
            return self._newest

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._events)
