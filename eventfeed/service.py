import logging
import re
from datetime import timedelta
from typing import List, Optional

from .errors import InvalidQueryError
from .generator import EventGenerator
from .ledger import EventLedger
from .models import Event, EventPage, NewEventsCount, to_millis
from .pagination import DEFAULT_LIMIT, PageRequest, clamp_limit, paginate
from .stats import FeedStats

DEFAULT_MAX_SYNTHETIC_BATCH = 100

# Bilangan bulat desimal ASCII saja (tanpa spasi, underscore, atau digit non-ASCII)
INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1


def parse_int(raw) -> int:
    if isinstance(raw, bool):
        raise TypeError(raw)
    if isinstance(raw, int):
        return raw
    if not isinstance(raw, str) or not INTEGER_PATTERN.fullmatch(raw):
        raise ValueError(raw)
    return int(raw)


def parse_millis(raw, name: str) -> int:
    """
    Parse parameter timestamp Unix milidetik (int atau string angka).
    Nilai di luar rentang datetime tetap diterima; engine pagination
    men-clamp-nya saat memfilter.
    """
    try:
        value = parse_int(raw)
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(raw)
        return value
    except (TypeError, ValueError):
        raise InvalidQueryError(
            f"The '{name}' parameter must be Unix milliseconds (e.g., 1705312200000)",
            error="Invalid timestamp format",
        )


def parse_limit(raw) -> int:
    try:
        return parse_int(raw)
    except (TypeError, ValueError):
        raise InvalidQueryError(
            "The 'limit' parameter must be a positive integer (max: 100)",
            error="Invalid limit format",
        )


def _present(value) -> bool:
    return value is not None and value != ""


class FeedService:
    """
    Fasad di atas EventLedger + engine pagination.
    Menerjemahkan encoding eksternal (timestamp milidetik + ID opsional)
    ke PageRequest bertipe, lalu kembali ke EventPage.
    """

    def __init__(
        self,
        ledger: EventLedger,
        generator: EventGenerator,
        stats: Optional[FeedStats] = None,
        max_synthetic_batch: int = DEFAULT_MAX_SYNTHETIC_BATCH,
    ):
        self.ledger = ledger
        self.generator = generator
        self.stats = stats or FeedStats()
        self.max_synthetic_batch = max_synthetic_batch

    def _serve(self, request: PageRequest) -> EventPage:
        snapshot = self.ledger.snapshot()
        page = paginate(snapshot.events, request)
        self.stats.inc_pages()
        return page

    def get_latest(self, limit: int = DEFAULT_LIMIT) -> EventPage:
        return self._serve(PageRequest.latest(limit))

    def get_older_than(self, ts: int, event_id: Optional[str] = None) -> EventPage:
        return self._serve(PageRequest.older_than(ts, event_id))

    def get_newer_than(self, ts: int, event_id: Optional[str] = None) -> EventPage:
        return self._serve(PageRequest.newer_than(ts, event_id))

    def build_request(self, limit=None, before_ts=None, before_id=None,
                      after_ts=None, after_id=None) -> PageRequest:
        """
        Validasi kombinasi parameter query mentah dan ubah ke PageRequest.
        Semua validasi selesai sebelum ledger disentuh.
        """
        if _present(before_id) and not _present(before_ts):
            raise InvalidQueryError(
                "The 'before_id' parameter requires the 'before_ts' parameter to be provided",
                error="Invalid parameter combination",
            )
        if _present(after_id) and not _present(after_ts):
            raise InvalidQueryError(
                "The 'after_id' parameter requires the 'after_ts' parameter to be provided",
                error="Invalid parameter combination",
            )

        parsed_limit = clamp_limit(parse_limit(limit)) if _present(limit) else None
        before = parse_millis(before_ts, "before_ts") if _present(before_ts) else None
        after = parse_millis(after_ts, "after_ts") if _present(after_ts) else None

        if before is not None and after is not None:
            raise InvalidQueryError(
                "Cannot use both 'before_ts' and 'after_ts' parameters together",
                error="Invalid parameter combination",
            )

        if before is not None:
            return PageRequest.newer_than(before, before_id or None)
        if after is not None:
            return PageRequest.older_than(after, after_id or None)
        # limit hanya berlaku untuk halaman terbaru (tanpa cursor)
        return PageRequest.latest(DEFAULT_LIMIT if parsed_limit is None else parsed_limit)

    def page(self, limit=None, before_ts=None, before_id=None,
             after_ts=None, after_id=None) -> EventPage:
        return self._serve(self.build_request(limit, before_ts, before_id, after_ts, after_id))

    def get_by_id(self, event_id: str) -> Event:
        if not event_id:
            raise InvalidQueryError("Event ID is required", error="Invalid event ID")
        event = self.ledger.find_by_id(event_id)
        self.stats.inc_lookups()
        return event

    def count_newer_than(self, ts) -> NewEventsCount:
        since = parse_millis(ts, "since_ts")
        total = critical = 0
        for event in self.ledger.snapshot():
            if to_millis(event.timestamp) > since:
                total += 1
                if event.is_critical:
                    critical += 1
        return NewEventsCount(total_count=total, critical_count=critical)

    def append_synthetic(self, n: int) -> List[Event]:
        """
        Buat n event dengan timestamp naik ketat, mulai setelah event terbaru
        di ledger dan tidak pernah sebelum 'now', lalu append sebagai satu batch.
        """
        if isinstance(n, bool) or not isinstance(n, int) or not 0 <= n <= self.max_synthetic_batch:
            raise InvalidQueryError(
                f"The 'count' parameter must be an integer between 0 and {self.max_synthetic_batch}",
                error="Invalid count",
            )
        if n == 0:
            return []

        step = timedelta(milliseconds=1)
        with self.ledger.write_section() as writer:
            start = self.generator.now()
            newest = writer.newest_timestamp()
            if newest is not None and newest >= start:
                start = newest + step
            for i in range(n):
                writer.append(self.generator.make_event(start + i * step, sequence=i))
            batch = writer.pending

        self.stats.inc_synthetic(len(batch))
        logging.info(
            f"Appended {len(batch)} synthetic event(s), newest at {to_millis(batch[-1].timestamp)}"
        )
        return batch
