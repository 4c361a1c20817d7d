# tests/test_generator.py
from datetime import datetime, timezone

from eventfeed.generator import EventGenerator, discover_log_files

NOW = datetime(2024, 1, 15, 10, 0, 0, 987654, tzinfo=timezone.utc)


def test_same_seed_same_events():
    a = EventGenerator(seed=5, clock=lambda: NOW).sample_events(20)
    b = EventGenerator(seed=5, clock=lambda: NOW).sample_events(20)
    assert [e.model_dump() for e in a] == [e.model_dump() for e in b]

def test_sample_events_are_unique_and_in_the_past():
    events = EventGenerator(seed=1, clock=lambda: NOW).sample_events(50)
    assert len({e.id for e in events}) == 50
    assert all(e.timestamp < NOW for e in events)
    assert all(e.timestamp.microsecond % 1000 == 0 for e in events)

def test_now_is_truncated_to_milliseconds():
    assert EventGenerator(clock=lambda: NOW).now().microsecond == 987000

def test_download_urls_only_with_log_files(tmp_path):
    assert all(e.download_url is None for e in EventGenerator(seed=3).sample_events(50))

    (tmp_path / "system_log_1.txt").write_text("boot ok")
    (tmp_path / "system_log_2.txt").write_text("camera fault")
    (tmp_path / "notes.md").write_text("ignored")
    files = discover_log_files(tmp_path)
    assert files == ["system_log_1.txt", "system_log_2.txt"]

    events = EventGenerator(seed=3, log_files=files).sample_events(50)
    urls = {e.download_url for e in events if e.download_url}
    assert urls
    assert urls <= {"/api/files/system_log_1.txt", "/api/files/system_log_2.txt"}

def test_discover_log_files_missing_dir(tmp_path):
    assert discover_log_files(tmp_path / "nope") == []
