"""
Dashboard API - Main FastAPI Application
Aggregates transit, weather, calendar, tasks and rotating art per display mode
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query, Request, WebSocket
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config.settings import settings
from dashboard.aggregator import filter_urgent_tasks, get_all_modes, get_next_event
from dashboard.context import AppContext, get_context
from dashboard.errors import InvalidModeError, SourceUnavailable
from dashboard.realtime import serve_client
from dashboard.rotation import FilterSet
from dashboard.utils.helpers import iso_now

load_dotenv()

# Version tracking
APP_VERSION = "v1.0.0"
APP_NAME = "Dashboard API"

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("dashboard")

STARTED_AT = time.time()


def _resolve_context() -> AppContext:
    """The context routes see, honouring test overrides."""
    return app.dependency_overrides.get(get_context, get_context)()


@asynccontextmanager
async def lifespan(app: FastAPI):
    context = _resolve_context()
    context.ws_manager.attach_loop(asyncio.get_running_loop())
    context.store.start_sweeper()
    if context.settings.scheduler_enabled:
        context.scheduler.start()
    logger.info(f"{APP_NAME} {APP_VERSION} started ({context.settings.environment})")
    try:
        yield
    finally:
        context.scheduler.stop()
        context.store.stop_sweeper()
        await context.ws_manager.close_all()
        logger.info(f"{APP_NAME} stopped")


app = FastAPI(
    title=APP_NAME,
    description="Mode-aware dashboard data for wall displays",
    version=APP_VERSION,
    lifespan=lifespan,
)


class ModeChangeRequest(BaseModel):
    mode: str


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms")
    return response


@app.exception_handler(InvalidModeError)
async def invalid_mode_handler(request: Request, exc: InvalidModeError):
    return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})


@app.exception_handler(SourceUnavailable)
async def source_unavailable_handler(request: Request, exc: SourceUnavailable):
    logger.warning(f"Upstream unavailable for {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"success": False, "error": str(exc)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc) or "Internal Server Error"})


# =============================================================================
# SERVER
# =============================================================================

@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "timestamp": iso_now(), "uptime": round(time.time() - STARTED_AT, 3)}


@app.get("/")
def home():
    return {"message": f"Welcome to the {APP_NAME}. See /health for status."}


@app.get("/api")
def api_index():
    return {"name": APP_NAME, "version": APP_VERSION}


@app.get("/status")
def detailed_status(context: AppContext = Depends(get_context)):
    """Server, scheduler, cache, mode and upstream status in one place."""
    profile = context.mode_state.profile()
    return {
        "server": {
            "status": "healthy",
            "uptime": round(time.time() - STARTED_AT, 3),
            "environment": context.settings.environment,
            "timestamp": iso_now(),
        },
        "websocket": {"activeConnections": context.ws_manager.client_count, "enabled": True},
        "scheduler": context.scheduler.status(),
        "cache": context.store.stats().to_dict(),
        "profile": {
            "currentMode": profile["mode"],
            "modeName": profile["name"],
            "lastChanged": profile["lastChanged"],
        },
        "services": {
            "lifestack": context.lifestack.health_check(),
            "transit": {"configured": bool(context.settings.cta_bus_api_key or context.settings.cta_train_api_key)},
            "weather": {"configured": bool(context.settings.openweather_api_key)},
        },
    }


@app.get("/cache/stats")
def cache_stats(context: AppContext = Depends(get_context)):
    """Get cache statistics."""
    return context.store.stats().to_dict()


@app.post("/cache/flush")
def cache_flush(context: AppContext = Depends(get_context)):
    removed = context.store.flush()
    return {"success": True, "data": {"flushed": removed}}


# =============================================================================
# DASHBOARD API
# =============================================================================

def _change_mode(context: AppContext, mode: str) -> dict:
    transition = context.mode_state.set_mode(mode)
    context.ws_manager.broadcast_threadsafe("profile:changed", context.mode_state.profile())
    return {
        "mode": transition.to_mode,
        "previousMode": transition.from_mode,
        "lastChanged": transition.timestamp,
        "message": f"Mode changed to {transition.to_mode}",
    }


@app.get("/api/dashboard")
def api_dashboard(context: AppContext = Depends(get_context)):
    """Aggregated dashboard data for the current mode."""
    composite = context.aggregator.aggregate(context.mode_state.current)
    return {"success": True, "data": composite.to_dict()}


@app.get("/api/dashboard/data")
def api_dashboard_data(
    mode: Optional[str] = Query(None, description="Mode to aggregate, defaults to the current mode"),
    context: AppContext = Depends(get_context),
):
    """
    Aggregated dashboard data for a mode.

    Unknown modes are served as the default mode.
    """
    composite = context.aggregator.aggregate(mode or context.mode_state.current)
    return {"success": True, "data": composite.to_dict()}


@app.get("/api/dashboard/refresh")
def api_dashboard_refresh(context: AppContext = Depends(get_context)):
    composite = context.aggregator.aggregate(context.mode_state.current)
    return {"success": True, "data": composite.to_dict(), "message": "Dashboard data refreshed"}


@app.get("/api/dashboard/mode")
def api_get_mode(context: AppContext = Depends(get_context)):
    return {
        "success": True,
        "data": {"mode": context.mode_state.current, "lastChanged": context.mode_state.last_changed},
    }


@app.post("/api/dashboard/mode")
def api_set_mode(body: ModeChangeRequest, context: AppContext = Depends(get_context)):
    return {"success": True, "data": _change_mode(context, body.mode)}


@app.get("/api/dashboard/modes")
def api_modes(context: AppContext = Depends(get_context)):
    return {"success": True, "data": {"modes": get_all_modes(), "currentMode": context.mode_state.current}}


# =============================================================================
# PROFILE API
# =============================================================================

@app.get("/api/profile")
def api_profile(context: AppContext = Depends(get_context)):
    return {"success": True, "data": context.mode_state.profile()}


@app.post("/api/profile")
def api_set_profile(body: ModeChangeRequest, context: AppContext = Depends(get_context)):
    _change_mode(context, body.mode)
    return {"success": True, "data": context.mode_state.profile(), "message": f"Profile switched to {body.mode}"}


@app.get("/api/profile/history")
def api_profile_history(context: AppContext = Depends(get_context)):
    history = context.mode_state.history()
    return {"success": True, "data": {"history": history, "count": len(history)}}


@app.post("/api/profile/reset")
def api_profile_reset(context: AppContext = Depends(get_context)):
    context.mode_state.reset()
    profile = context.mode_state.profile()
    context.ws_manager.broadcast_threadsafe("profile:changed", profile)
    return {"success": True, "data": profile, "message": "Profile reset to default mode"}


# =============================================================================
# UPSTREAM DATA API
# =============================================================================

@app.get("/api/weather")
def api_weather(context: AppContext = Depends(get_context)):
    """Current conditions."""
    return {"success": True, "data": context.weather.get_current()}


@app.get("/api/weather/forecast")
def api_weather_forecast(context: AppContext = Depends(get_context)):
    forecast = context.weather.get_forecast()
    return {"success": True, "data": {"forecast": forecast, "days": len(forecast)}}


@app.get("/api/weather/all")
def api_weather_all(context: AppContext = Depends(get_context)):
    """Current conditions and forecast, with fallbacks when the upstream is down."""
    return {"success": True, "data": context.weather.get_all()}


@app.get("/api/transit")
def api_transit(context: AppContext = Depends(get_context)):
    return {"success": True, "data": context.transit.get_all()}


@app.get("/api/transit/buses")
def api_transit_buses(context: AppContext = Depends(get_context)):
    return {"success": True, "data": context.transit.get_buses()}


@app.get("/api/transit/trains")
def api_transit_trains(context: AppContext = Depends(get_context)):
    return {"success": True, "data": context.transit.get_trains()}


@app.get("/api/calendar/today")
def api_calendar_today(context: AppContext = Depends(get_context)):
    events = context.lifestack.get_today_events()
    return {"success": True, "data": {"events": events, "count": len(events), "lastUpdated": iso_now()}}


@app.get("/api/calendar/next")
def api_calendar_next(context: AppContext = Depends(get_context)):
    event = get_next_event(context.lifestack.get_today_events())
    data = {"event": event, "lastUpdated": iso_now()}
    if event is None:
        data["message"] = "No upcoming events"
    return {"success": True, "data": data}


@app.get("/api/tasks")
def api_tasks(context: AppContext = Depends(get_context)):
    tasks = context.lifestack.get_tasks()
    return {"success": True, "data": {"tasks": tasks, "count": len(tasks), "lastUpdated": iso_now()}}


@app.get("/api/tasks/urgent")
def api_tasks_urgent(context: AppContext = Depends(get_context)):
    """Incomplete tasks due within 24 hours, soonest first."""
    tasks = filter_urgent_tasks(context.lifestack.get_tasks())
    return {"success": True, "data": {"tasks": tasks, "count": len(tasks), "lastUpdated": iso_now()}}


# =============================================================================
# ART API
# =============================================================================

def _parse_styles(styles: Optional[str]) -> FilterSet:
    if not styles:
        return FilterSet()
    return FilterSet.from_styles([s.strip() for s in styles.split(",") if s.strip()])


@app.get("/api/art")
def api_art(
    styles: Optional[str] = Query(None, description="Comma-separated art styles, e.g. Cubism,Surrealism"),
    context: AppContext = Depends(get_context),
):
    """Current artwork per display slot."""
    return {"success": True, "data": context.rotation.get_all_current(_parse_styles(styles))}


@app.post("/api/art/refresh")
def api_art_refresh(
    styles: Optional[str] = Query(None, description="Comma-separated art styles"),
    context: AppContext = Depends(get_context),
):
    """Rebuild every art pool for the given styles."""
    return {"success": True, "data": context.rotation.refresh_all(_parse_styles(styles))}


# =============================================================================
# WEBSOCKET
# =============================================================================

@app.websocket("/ws")
async def dashboard_socket(websocket: WebSocket, context: AppContext = Depends(get_context)):
    """Real-time dashboard channel."""
    await serve_client(context, websocket)
