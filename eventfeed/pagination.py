"""
Engine pagination berbasis cursor.

Semua fungsi di sini murni: bekerja atas sekumpulan event (biasanya isi
LedgerSnapshot) dan tidak pernah membaca ledger secara langsung.

Urutan kanonik: timestamp menurun, lalu id menurun. Tiga mode permintaan:

- LATEST   : halaman terbaru, ukuran = limit (default 20, maks 100)
- REFRESH  : event yang lebih baru (strict >) dari boundary, ukuran tetap 20
- BACKWARD : event yang lebih lama (strict <) dari boundary, ukuran tetap 20

Bila boundary_id diberikan, posisi record boundary di urutan kanonik dipakai
untuk memotong window secara presisi (event dengan timestamp sama tetapi id
berbeda tetap ikut). Bila record boundary tidak ditemukan, engine kembali ke
filter timestamp murni.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from .errors import InvalidQueryError
from .models import Cursor, Event, EventPage, clamp_millis, from_millis

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
CURSOR_PAGE_SIZE = 20


class PageMode(str, Enum):
    LATEST = "latest"
    REFRESH = "refresh"
    BACKWARD = "backward"


@dataclass(frozen=True)
class Boundary:
    timestamp: datetime
    event_id: Optional[str] = None


@dataclass(frozen=True)
class PageRequest:
    mode: PageMode
    limit: int = DEFAULT_LIMIT
    boundary: Optional[Boundary] = None

    @classmethod
    def latest(cls, limit=DEFAULT_LIMIT) -> "PageRequest":
        return cls(PageMode.LATEST, limit=clamp_limit(limit))

    @classmethod
    def newer_than(cls, timestamp_ms: int, event_id: Optional[str] = None) -> "PageRequest":
        return cls(PageMode.REFRESH, limit=CURSOR_PAGE_SIZE,
                   boundary=Boundary(from_millis(clamp_millis(timestamp_ms)), event_id or None))

    @classmethod
    def older_than(cls, timestamp_ms: int, event_id: Optional[str] = None) -> "PageRequest":
        return cls(PageMode.BACKWARD, limit=CURSOR_PAGE_SIZE,
                   boundary=Boundary(from_millis(clamp_millis(timestamp_ms)), event_id or None))

    @property
    def page_size(self) -> int:
        if self.mode is PageMode.LATEST:
            return self.limit
        return CURSOR_PAGE_SIZE


def clamp_limit(limit) -> int:
    """Validasi limit: harus integer positif; nilai di atas MAX_LIMIT dipotong."""
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidQueryError(
            "The 'limit' parameter must be a positive integer (max: 100)",
            error="Invalid limit format",
        )
    if limit <= 0:
        raise InvalidQueryError(
            "The 'limit' parameter must be a positive integer (max: 100)",
            error="Invalid limit format",
        )
    return min(limit, MAX_LIMIT)


def sort_canonical(events: Iterable[Event]) -> List[Event]:
    return sorted(events, key=lambda e: e.sort_key, reverse=True)


def canonical_precedes(a: Event, b: Event) -> bool:
    """True jika a muncul sebelum b di urutan kanonik (a lebih baru)."""
    return a.sort_key > b.sort_key


def _beyond_timestamp(event: Event, request: PageRequest, inclusive: bool = False) -> bool:
    ts = request.boundary.timestamp
    if request.mode is PageMode.REFRESH:
        return event.timestamp >= ts if inclusive else event.timestamp > ts
    return event.timestamp <= ts if inclusive else event.timestamp < ts


def _refine_by_id(events: Iterable[Event], request: PageRequest) -> Optional[List[Event]]:
    boundary = request.boundary
    candidates = sort_canonical(e for e in events if _beyond_timestamp(e, request, inclusive=True))
    for index, event in enumerate(candidates):
        if event.id == boundary.event_id and event.timestamp == boundary.timestamp:
            if request.mode is PageMode.BACKWARD:
                return candidates[index + 1:]
            return candidates[:index]
    # Record boundary tidak ada di snapshot (atau timestamp-nya tidak cocok)
    return None


def select_window(events: Iterable[Event], request: PageRequest) -> List[Event]:
    """
    Seluruh event yang memenuhi permintaan, dalam urutan kanonik,
    sebelum dipotong ke ukuran halaman.
    """
    if request.mode is PageMode.LATEST:
        return sort_canonical(events)

    events = tuple(events)
    if request.boundary.event_id is not None:
        window = _refine_by_id(events, request)
        if window is not None:
            return window
    return sort_canonical(e for e in events if _beyond_timestamp(e, request))


def paginate(events: Iterable[Event], request: PageRequest) -> EventPage:
    window = select_window(events, request)
    page = window[:request.page_size]
    has_next = len(window) > len(page)

    next_cursor = None
    if page and has_next:
        # Event terakhir = yang paling lama di halaman ini
        next_cursor = Cursor.of(page[-1])

    return EventPage(events=page, has_next=has_next, next_cursor=next_cursor)
