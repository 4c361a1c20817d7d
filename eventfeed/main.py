# main.py

import asyncio
import logging
import uvicorn
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Optional

from .auth import Authenticator, Identity, UserDirectory
from .config import Settings, settings as default_settings
from .errors import AuthenticationError, FeedError, ForbiddenError, InvalidQueryError
from .generator import EventGenerator, discover_log_files
from .ledger import EventLedger
from .models import (
    ErrorResponse,
    Event,
    EventPage,
    LoginRequest,
    LoginResponse,
    NewEventsCount,
    SimulatedBatch,
    UserProfile,
)
from .service import FeedService, parse_int
from .stats import FeedStats

# Konfigurasi logging dasar
logging.basicConfig(level=default_settings.log_level, format='%(asctime)s - %(levelname)s - %(message)s')

auth_scheme = HTTPBearer(auto_error=False)


def error_responses(*codes):
    """Dokumentasi OpenAPI untuk body error {error, message, code}."""
    return {code: {"model": ErrorResponse} for code in codes}


# Fungsi factory untuk testing
def create_app(settings: Optional[Settings] = None, generator: Optional[EventGenerator] = None) -> FastAPI:
    settings = settings or default_settings
    generator = generator or EventGenerator(
        seed=settings.seed,
        log_files=discover_log_files(settings.files_dir),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Saat startup: isi ledger dengan data awal dan jalankan task simulasi (jika aktif)."""
        seeded = app.state.ledger.extend(generator.sample_events(settings.seed_event_count))
        logging.info(f"Ledger seeded with {seeded} event(s).")

        app.state.traffic_task = None
        if settings.simulate_interval_seconds > 0:
            app.state.traffic_task = asyncio.create_task(
                live_traffic(app.state.feed, settings.simulate_interval_seconds, settings.simulate_batch_size)
            )
        logging.info("Application startup complete.")

        yield

        # Saat shutdown: batalkan task simulasi
        if app.state.traffic_task is not None:
            app.state.traffic_task.cancel()
            await asyncio.gather(app.state.traffic_task, return_exceptions=True)
        logging.info("Application shutdown complete.")

    app = FastAPI(title="IoT Event Feed", lifespan=lifespan)

    app.state.settings = settings
    app.state.ledger = EventLedger()
    app.state.stats_tracker = FeedStats()
    app.state.feed = FeedService(
        app.state.ledger,
        generator,
        stats=app.state.stats_tracker,
        max_synthetic_batch=settings.simulate_max_batch,
    )
    app.state.authenticator = Authenticator(
        UserDirectory.with_defaults(),
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expiration_hours=settings.jwt_expiration_hours,
    )

    # ===================================================================
    # TRAFIK LIVE (opsional)
    # ===================================================================
    async def live_traffic(feed: FeedService, interval: float, batch_size: int):
        """Background task yang menambahkan event sintetis secara periodik."""
        logging.info(f"Live traffic task started (every {interval}s, batch {batch_size}).")
        while True:
            try:
                await asyncio.sleep(interval)
                await asyncio.to_thread(feed.append_synthetic, batch_size)
            except asyncio.CancelledError:
                logging.info("Live traffic task stopping.")
                break
            except FeedError as e:
                logging.error(f"Error appending synthetic events: {e}", exc_info=True)
            except Exception as e:
                logging.error(f"Unexpected error in live traffic loop: {e}", exc_info=True)

    # ===================================================================

    @app.exception_handler(FeedError)
    async def feed_error_handler(request: Request, exc: FeedError):
        if exc.status_code >= 500:
            logging.error(f"Internal error on {request.url.path}: {exc}", exc_info=exc)
            return JSONResponse(status_code=500, content={"error": "Internal server error", "code": 500})
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    def current_identity(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    ) -> Identity:
        """Validasi token bearer dari header Authorization."""
        if credentials is None or credentials.scheme.lower() != "bearer":
            raise AuthenticationError(error="Unauthorized")
        return request.app.state.authenticator.validate(credentials.credentials)

    # --- API Endpoints ---

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/api/login", response_model=LoginResponse, responses=error_responses(401))
    def login(body: LoginRequest, request: Request):
        """Login dengan username/password, mengembalikan token bearer."""
        authenticator = request.app.state.authenticator
        token = authenticator.authenticate(body.username, body.password)
        user = authenticator.users.get_by_username(body.username)
        return LoginResponse(token=token, user=user.profile())

    @app.get("/api/user/{user_id}", response_model=UserProfile, responses=error_responses(401, 403, 404))
    def get_user_profile(user_id: str, request: Request, identity: Identity = Depends(current_identity)):
        """User hanya boleh melihat profilnya sendiri."""
        if identity.subject_id != user_id:
            raise ForbiddenError("You can only view your own profile")
        return request.app.state.authenticator.users.get_by_id(user_id).profile()

    @app.get("/api/events", response_model=EventPage, response_model_exclude_none=True,
             responses=error_responses(400, 401))
    def get_events(
        request: Request,
        limit: Optional[str] = Query(None),
        before_ts: Optional[str] = Query(None),
        before_id: Optional[str] = Query(None),
        after_ts: Optional[str] = Query(None),
        after_id: Optional[str] = Query(None),
        identity: Identity = Depends(current_identity),
    ):
        """
        Daftar event dengan pagination cursor, selalu terurut terbaru dulu.
        - limit: halaman terbaru (default 20, maks 100)
        - before_ts (+ before_id): event yang lebih baru (refresh)
        - after_ts (+ after_id): event yang lebih lama (load more)
        """
        feed: FeedService = request.app.state.feed
        return feed.page(limit=limit, before_ts=before_ts, before_id=before_id,
                         after_ts=after_ts, after_id=after_id)

    @app.get("/api/events/new-count", response_model=NewEventsCount, responses=error_responses(400, 401))
    def get_new_events_count(
        request: Request,
        since_ts: Optional[str] = Query(None),
        identity: Identity = Depends(current_identity),
    ):
        """Jumlah event yang lebih baru dari since_ts (untuk badge unread)."""
        if not since_ts:
            raise InvalidQueryError("The 'since_ts' parameter is required", error="Missing parameter")
        return request.app.state.feed.count_newer_than(since_ts)

    @app.post("/api/events/simulate", response_model=SimulatedBatch, response_model_exclude_none=True,
              responses=error_responses(400, 401))
    def simulate_events(
        request: Request,
        count: str = Query("1"),
        identity: Identity = Depends(current_identity),
    ):
        """Menambahkan event sintetis untuk mensimulasikan trafik live."""
        try:
            n = parse_int(count)
        except (TypeError, ValueError):
            raise InvalidQueryError("The 'count' parameter must be an integer", error="Invalid count")
        batch = request.app.state.feed.append_synthetic(n)
        return SimulatedBatch(events=batch, count=len(batch))

    @app.get("/api/events/{event_id}", response_model=Event, response_model_exclude_none=True,
             responses=error_responses(401, 404))
    def get_event(event_id: str, request: Request, identity: Identity = Depends(current_identity)):
        return request.app.state.feed.get_by_id(event_id)

    @app.get("/stats")
    def get_feed_stats(request: Request):
        """Menampilkan statistik operasional."""
        current_stats = request.app.state.stats_tracker.get_stats()
        current_stats["ledger_size"] = len(request.app.state.ledger)
        return current_stats

    return app

# Buat aplikasi
app = create_app()

if __name__ == "__main__":
    # Dijalankan dengan: python -m eventfeed.main
    uvicorn.run("eventfeed.main:app", host=default_settings.host, port=default_settings.port)
