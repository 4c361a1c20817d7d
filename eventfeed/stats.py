# eventfeed/stats.py
import threading
import time
from dataclasses import dataclass, field


@dataclass
class FeedStats:
    """
    Kelas untuk melacak statistik operasional feed.
    Digunakan untuk menghitung halaman yang dilayani, lookup, event sintetis, dan uptime sistem.
    """
    pages_served: int = 0
    lookups: int = 0
    synthetic_appended: int = 0
    start_time: float = field(default_factory=time.monotonic)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc_pages(self, count: int = 1):
        """Menambah jumlah halaman event yang dikembalikan ke client."""
        with self._lock:
            self.pages_served += count

    def inc_lookups(self, count: int = 1):
        """Menambah jumlah lookup event berdasarkan ID."""
        with self._lock:
            self.lookups += count

    def inc_synthetic(self, count: int = 1):
        """Menambah jumlah event sintetis yang di-append ke ledger."""
        with self._lock:
            self.synthetic_appended += count

    def get_stats(self) -> dict:
        """Mengembalikan statistik sistem dalam bentuk dictionary."""
        with self._lock:
            pages, lookups, synthetic = self.pages_served, self.lookups, self.synthetic_appended
        uptime = time.monotonic() - self.start_time
        return {
            "pages_served": pages,
            "lookups": lookups,
            "synthetic_appended": synthetic,
            "uptime_seconds": round(uptime, 2),
            "throughput": (
                round(pages / uptime, 4)
                if uptime > 0 else 0
            ),
        }
