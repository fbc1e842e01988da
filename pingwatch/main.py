import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .jobs import JobsManager
from .probes.ping import ping_target
from .probes.speedtest import SnapshotCache, run_speedtest
from .ratelimit import FixedWindowLimiter
from .settings_store import get_settings
from .stats import StatsEngine
from .storage import StateStore

logger = logging.getLogger(__name__)

APP_TITLE = "pingwatch"
APP_VERSION = "2.0.0"

WINDOW_ROUTES = {
    "10m": "tenMinutes",
    "hour": "hour",
    "day": "day",
    "week": "week",
    "month": "month",
}


class ApiError(Exception):
    def __init__(self, status_code, message):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _client_key(request):
    return request.client.host if request.client else "unknown"


def rate_limited(limiter):
    def dependency(request: Request):
        if not limiter.hit(_client_key(request)):
            raise ApiError(429, "Too many requests, please try again later.")

    return dependency


def require_api_key(settings):
    def dependency(request: Request):
        expected = settings["api"].get("api_key") or ""
        key = request.headers.get("x-api-key") or request.query_params.get("api_key")
        if not expected or key != expected:
            raise ApiError(401, "Unauthorized: Invalid API key")

    return dependency


def load_state(store, engine, cache):
    """Seed the engine and snapshot cache from disk.

    Raises StateCorruptError on malformed files; callers must not start.
    """
    records, aggregates = store.load_stats()
    engine.seed(records, aggregates)
    cache.seed(store.load_speedtest())
    cache.store = store


def create_app(settings=None, start_jobs=True, pinger=ping_target, speedtest_runner=run_speedtest):
    settings = settings or get_settings()
    engine = StatsEngine()
    cache = SnapshotCache()

    @asynccontextmanager
    async def lifespan(app):
        target = (settings["probe"].get("target") or "").strip()
        if not target:
            raise ValueError("PING_TARGET is not set")
        store = StateStore(settings["storage"]["data_dir"])
        load_state(store, engine, cache)
        app.state.store = store
        app.state.jobs = JobsManager(
            engine,
            cache,
            store,
            settings,
            pinger=pinger,
            speedtest_runner=speedtest_runner,
        )
        if start_jobs:
            app.state.jobs.start()
        logger.info("%s %s started, data_dir=%s", APP_TITLE, APP_VERSION, store.data_dir)
        try:
            yield
        finally:
            if start_jobs:
                app.state.jobs.stop()

    app = FastAPI(title=APP_TITLE, version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.cache = cache
    app.state.jobs = None

    limits = settings["api"]["rate_limit"]
    general_limiter = FixedWindowLimiter(limits["general"], limits["window_seconds"])
    health_limiter = FixedWindowLimiter(limits["health"], limits["window_seconds"])
    protected = [Depends(rate_limited(general_limiter)), Depends(require_api_key(settings))]

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.get("/results/history", dependencies=protected)
    def results_history():
        return [record.to_dict() for record in engine.history()]

    @app.get("/results/failed", dependencies=protected)
    def results_failed():
        return [record.to_dict() for record in engine.failed()]

    @app.get("/results/{window}", dependencies=protected)
    def results_window(window: str):
        name = WINDOW_ROUTES.get(window)
        if name is None:
            raise ApiError(404, f"Unknown window: {window}")
        return engine.window(name)

    @app.get("/speedtest", dependencies=protected)
    def speedtest():
        snapshot = cache.latest
        if snapshot is None:
            raise ApiError(503, "No speedtest result available yet.")
        return snapshot.to_dict()

    @app.get("/health", dependencies=[Depends(rate_limited(health_limiter))])
    def health():
        jobs = app.state.jobs.status.snapshot() if app.state.jobs is not None else {}
        return {
            "status": "ok",
            "time": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "jobs": jobs,
        }

    return app


app = create_app()
