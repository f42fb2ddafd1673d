import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cardloop.application.config import resolve_config
from cardloop.application.factory import AppContext, build_context
from cardloop.consts import APP_NAME, VERSION
from cardloop.domain.constants import DEFAULT_FORECAST_DAYS
from cardloop.domain.errors import InvalidArgument, NotFound, StorageFailure

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cardloop.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"{APP_NAME} server v{VERSION} starting up...")
    yield
    # Shutdown
    context = getattr(app.state, "context", None)
    if context is not None:
        context.close()
        app.state.context = None
    logger.info(f"{APP_NAME} server shutting down...")


app = FastAPI(
    title=f"{APP_NAME} server",
    description="HTTP API for spaced-repetition review sessions.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


def get_context(request: Request) -> AppContext:
    """One shared context per process; built from config on first use."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        context = build_context(resolve_config())
        request.app.state.context = context
    return context


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


@app.exception_handler(InvalidArgument)
async def invalid_argument_handler(request: Request, exc: InvalidArgument):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    logger.error(f"Storage failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class LoadRequest(BaseModel):
    deck_id: str


class GradeRequest(BaseModel):
    grade: int
    mark_hard: bool = False


class FlagRequest(BaseModel):
    value: bool = True


class ModeRequest(BaseModel):
    mode: str


def _session_payload(context: AppContext) -> dict[str, Any]:
    return {**context.session.snapshot(), "stats": asdict(context.reviews.stats)}


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.get("/decks")
async def list_decks(context: AppContext = Depends(get_context)):
    return [asdict(summary) for summary in await context.stats.list_decks()]


@app.get("/decks/{deck_id}/cards")
async def deck_cards(deck_id: str, context: AppContext = Depends(get_context)):
    return [asdict(detail) for detail in await context.decks.get_deck_cards(deck_id)]


@app.post("/decks/import")
async def import_decks(
    payload: dict[str, Any] | list[dict[str, Any]] = Body(...),
    context: AppContext = Depends(get_context),
):
    written = await context.importer.import_payload(payload)
    return {"imported": written}


@app.post("/cards/{card_id}/suspend")
async def suspend_card(card_id: str, req: FlagRequest, context: AppContext = Depends(get_context)):
    return asdict(await context.decks.set_card_suspended(card_id, req.value))


@app.post("/cards/{card_id}/hard")
async def flag_card(card_id: str, req: FlagRequest, context: AppContext = Depends(get_context)):
    return asdict(await context.decks.set_card_hard_flag(card_id, req.value))


@app.get("/session")
async def get_session(context: AppContext = Depends(get_context)):
    return {**_session_payload(context), "last_deck": await context.session.last_deck()}


@app.post("/session/load")
async def load_session(req: LoadRequest, context: AppContext = Depends(get_context)):
    logger.info(f"Queue load requested for deck '{req.deck_id}'")
    await context.session.load_queue_for_today(req.deck_id)
    context.reviews.reset_stats()
    return _session_payload(context)


@app.post("/session/mode")
async def set_mode(req: ModeRequest, context: AppContext = Depends(get_context)):
    if req.mode not in ("input", "output"):
        raise InvalidArgument(f"Unsupported mode: {req.mode!r}")
    context.session.set_mode(req.mode)  # type: ignore[arg-type]
    return _session_payload(context)


@app.get("/session/card")
async def current_card(context: AppContext = Depends(get_context)):
    card = await context.reviews.load_current_card()
    return {"card": asdict(card) if card else None, "revealed": context.session.revealed}


@app.post("/session/reveal")
async def reveal(context: AppContext = Depends(get_context)):
    context.session.reveal()
    return _session_payload(context)


@app.post("/session/grade")
async def grade(req: GradeRequest, context: AppContext = Depends(get_context)):
    review = await context.reviews.submit_grade(req.grade, mark_hard=req.mark_hard)
    return {"review": asdict(review), "session": _session_payload(context)}


@app.post("/session/disable")
async def disable(context: AppContext = Depends(get_context)):
    review = await context.reviews.disable_current_card()
    return {"review": asdict(review), "session": _session_payload(context)}


@app.post("/session/reset")
async def reset(context: AppContext = Depends(get_context)):
    await context.session.reset_session()
    context.reviews.reset_stats()
    return _session_payload(context)


@app.get("/stats")
async def review_stats(context: AppContext = Depends(get_context)):
    return asdict(await context.stats.review_stats())


@app.get("/forecast")
async def due_forecast(
    days: int = DEFAULT_FORECAST_DAYS,
    context: AppContext = Depends(get_context),
):
    return [asdict(day) for day in await context.stats.due_forecast(days)]
