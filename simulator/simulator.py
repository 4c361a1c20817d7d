import requests
import time
from requests.exceptions import RequestException
import logging

# ===========================
# Konfigurasi Simulator
# ===========================
BASE_URL = "http://localhost:8080"
USERNAME = "demo"
PASSWORD = "demo123"
BURSTS = 10
BURST_SIZE = 5
RETRY_LIMIT = 3
RETRY_DELAY = 1
BURST_INTERVAL = 0.5

# Setup basic logging
logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')

# ===========================
# Fungsi Pembantu
# ===========================

def login(session, base_url=BASE_URL, username=USERNAME, password=PASSWORD):
    """Login dan kembalikan header Authorization untuk request berikutnya."""
    r = session.post(f"{base_url}/api/login", json={"username": username, "password": password}, timeout=10)
    r.raise_for_status()
    return {"Authorization": f"Bearer {r.json()['token']}"}

def safe_post(session, url, headers, params=None, retries=RETRY_LIMIT, delay=RETRY_DELAY):
    """Melakukan POST dengan mekanisme retry; mengembalikan (body, latency_ms) atau (None, 0)."""
    for attempt in range(1, retries + 1):
        try:
            start = time.perf_counter()
            r = session.post(url, params=params, headers=headers, timeout=10)
            latency_ms = (time.perf_counter() - start) * 1000
            if r.status_code == 200:
                return r.json(), latency_ms
            logging.warning(f"Attempt {attempt}: status {r.status_code} - {r.text}")
        except RequestException as e:
            logging.error(f"Attempt {attempt}: {e}")
        time.sleep(delay)
    return None, 0

def push_bursts(session, headers, base_url=BASE_URL, bursts=BURSTS, burst_size=BURST_SIZE, interval=BURST_INTERVAL):
    """Kirim beberapa burst event sintetis; kembalikan daftar latensi dan ID yang dibuat."""
    latencies_ms, created_ids = [], []
    for i in range(1, bursts + 1):
        body, latency_ms = safe_post(session, f"{base_url}/api/events/simulate", headers, params={"count": burst_size})
        if body is not None:
            latencies_ms.append(latency_ms)
            created_ids.extend(e["id"] for e in body["events"])
        status = "✅ OK" if body is not None else "❌ Gagal"
        logging.info(f"Burst {i}/{bursts} dikirim... {status} (Latency: {latency_ms:.2f}ms)")
        if interval:
            time.sleep(interval)
    return latencies_ms, created_ids

def new_events_count(session, headers, since_ts, base_url=BASE_URL):
    r = session.get(f"{base_url}/api/events/new-count", params={"since_ts": since_ts}, headers=headers, timeout=5)
    r.raise_for_status()
    return r.json()

def walk_feed(session, headers, base_url=BASE_URL, limit=20):
    """Ambil halaman terbaru lalu ikuti next_cursor mundur sampai habis."""
    r = session.get(f"{base_url}/api/events", params={"limit": limit}, headers=headers, timeout=5)
    r.raise_for_status()
    page = r.json()
    events = list(page["events"])
    pages = 1

    while page["has_next"]:
        cursor = page["next_cursor"]
        r = session.get(
            f"{base_url}/api/events",
            params={"after_ts": cursor["timestamp"], "after_id": cursor["event_id"]},
            headers=headers,
            timeout=5,
        )
        r.raise_for_status()
        page = r.json()
        events.extend(page["events"])
        pages += 1

    return events, pages

def verify_feed(events):
    """Cek tidak ada duplikat dan urutan kanonik (timestamp desc, id desc) terjaga."""
    ids = [e["id"] for e in events]
    if len(ids) != len(set(ids)):
        raise AssertionError("Feed contains duplicate events")
    keys = [(e["timestamp"], e["id"]) for e in events]
    if keys != sorted(keys, reverse=True):
        raise AssertionError("Feed is not in canonical order")
    return True

def analyze_latencies(latencies_ms, name, indent="  "):
    """Menghitung dan menampilkan statistik latensi."""
    if not latencies_ms:
        return

    avg_latency = sum(latencies_ms) / len(latencies_ms)
    print(f"\n{indent}Analisis Latensi - {name}:")
    print(f"{indent}  Rata-rata: {avg_latency:.2f} ms")
    print(f"{indent}  Max:       {max(latencies_ms):.2f} ms")
    print(f"{indent}  Min:       {min(latencies_ms):.2f} ms")

# ===========================
# Main Function
# ===========================

def run_simulation(session=None, base_url=BASE_URL, bursts=BURSTS, burst_size=BURST_SIZE, interval=BURST_INTERVAL):
    session = session or requests.Session()
    headers = login(session, base_url)

    # Titik awal untuk hitungan unread
    latest = session.get(f"{base_url}/api/events", params={"limit": 1}, headers=headers, timeout=5).json()
    since_ts = latest["events"][0]["timestamp"] if latest["events"] else 0

    latencies_ms, created_ids = push_bursts(session, headers, base_url, bursts, burst_size, interval)
    counts = new_events_count(session, headers, since_ts, base_url)
    events, pages = walk_feed(session, headers, base_url)

    print("\n--- HASIL SIMULASI ---")
    print(f"  Event dibuat:       {len(created_ids)}")
    print(f"  Unread (total):     {counts['total_count']}")
    print(f"  Unread (critical):  {counts['critical_count']}")
    print(f"  Total di feed:      {len(events)} ({pages} halaman)")
    analyze_latencies(latencies_ms, f"POST /api/events/simulate (per burst {burst_size} event)")

    verify_feed(events)
    assert counts["total_count"] == len(created_ids)
    assert set(created_ids) <= {e["id"] for e in events}
    print("Verifikasi feed berhasil! ✅")
    return {"created": len(created_ids), "counts": counts, "feed_size": len(events), "pages": pages}

# ===========================
# Entry Point
# ===========================
if __name__ == "__main__":
    run_simulation()
