# eventfeed/generator.py
import random
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .models import Event, truncate_millis

# Katalog perangkat: (device_id, device_name, location)
DEVICES = [
    ("DEVICE-001", "Device - Main Entrance", "Main Entrance, Building A"),
    ("DEVICE-002", "Device - Server Room Access", "Server Room, Floor 3"),
    ("DEVICE-003", "Device - Executive Floor", "Executive Floor, Building B"),
    ("DEVICE-004", "Device - Parking Garage", "Parking Garage, Level 2"),
    ("DEVICE-005", "Device - Research Lab", "Research Lab, Building C"),
    ("DEVICE-006", "Device - Data Center", "Data Center, Basement"),
    ("DEVICE-007", "Device - Warehouse Entrance", "Warehouse Entrance, Building D"),
    ("DEVICE-008", "Device - Conference Room", "Conference Room, Floor 5"),
    ("DEVICE-009", "Device - IT Office", "IT Office, Floor 2"),
    ("DEVICE-010", "Device - Lobby", "Lobby, Building A"),
]

# Pola event: (type, severity, message)
EVENT_PATTERNS = [
    ("facial_authentication", "info", "Facial authentication successful"),
    ("tailgating_detection", "critical", "Tailgating detected"),
    ("access_denied", "warning", "Access denied - Authentication failure"),
    ("facial_authentication", "info", "Facial authentication successful"),
    ("facial_authentication", "info", "Facial authentication successful"),
    ("tailgating_detection", "critical", "Tailgating detected"),
    ("access_denied", "warning", "Access denied"),
    ("facial_authentication", "info", "Facial authentication successful"),
    ("facial_authentication", "warning", "Facial authentication failed - Low confidence match"),
    ("tailgating_detection", "critical", "Tailgating detected"),
]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def discover_log_files(files_dir) -> List[str]:
    """Daftar nama file system_log_*.txt yang tersedia untuk download_url."""
    path = Path(files_dir)
    if not path.is_dir():
        return []
    return sorted(p.name for p in path.glob("system_log_*.txt") if p.is_file())


class EventGenerator:
    """
    Pembuat event sintetis yang bisa di-inject.
    Dengan seed yang sama (dan clock yang sama) hasilnya deterministik,
    sehingga ledger bisa diisi secara reproducible di tes.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
        log_files: Sequence[str] = (),
    ):
        self._rng = random.Random(seed)
        self._clock = clock
        self.log_files = list(log_files)

    def now(self) -> datetime:
        return truncate_millis(self._clock())

    def new_id(self) -> str:
        return str(uuid.UUID(int=self._rng.getrandbits(128), version=4))

    def _download_url(self, index: int) -> Optional[str]:
        if not self.log_files:
            return None
        return f"/api/files/{self.log_files[index % len(self.log_files)]}"

    def make_event(self, timestamp: datetime, sequence: int = 0) -> Event:
        """Satu event acak dari katalog dengan timestamp yang ditentukan."""
        event_id = self.new_id()
        device_id, device_name, location = self._rng.choice(DEVICES)
        event_type, severity, message = self._rng.choice(EVENT_PATTERNS)

        download_url = None
        if event_type == "tailgating_detection" and self._rng.random() < 0.3:
            download_url = self._download_url(sequence)

        return Event(
            id=event_id,
            device_id=device_id,
            device_name=device_name,
            type=event_type,
            severity=severity,
            message=message,
            timestamp=timestamp,
            location=location,
            download_url=download_url,
        )

    def sample_events(self, count: int = 50, now: Optional[datetime] = None) -> List[Event]:
        """
        Data awal untuk demo pagination: event tersebar mundur beberapa jam
        dari 'now', dengan sesekali system error yang membawa file log.
        """
        now = now or self.now()
        events = []
        for i in range(1, count + 1):
            idx = i % len(DEVICES)
            device_id, device_name, location = DEVICES[idx]
            event_type, severity, message = EVENT_PATTERNS[idx]
            offset = timedelta(hours=i // 2, minutes=(i * 7) % 60)

            download_url = None
            if i % 7 == 0:
                event_type, severity = "system", "error"
                message = "System error - Camera calibration required"
                download_url = self._download_url(i // 7)
            elif event_type == "tailgating_detection" and i % 3 == 0:
                download_url = self._download_url(i // 3)

            events.append(Event(
                id=self.new_id(),
                device_id=device_id,
                device_name=device_name,
                type=event_type,
                severity=severity,
                message=f"{message} - Event #{i}",
                timestamp=now - offset,
                location=location,
                download_url=download_url,
            ))
        return events
