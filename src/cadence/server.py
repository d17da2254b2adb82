import logging
import time
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from cadence.application.card_service import add_card
from cadence.application.config import AppConfig, resolve_config
from cadence.application.factory import create_review_session, get_card_store
from cadence.application.session import ReviewSession
from cadence.consts import VERSION
from cadence.domain.errors import NoCurrentCardError, StoreError
from cadence.domain.models import QueueEntry, Rating
from cadence.domain.ports import CardStore

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cadence.server")

# One sitting per user; discarded on restart
_sessions: dict[str, ReviewSession] = {}
_store: CardStore | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"cadence server v{VERSION} starting up...")
    yield
    # Shutdown
    _sessions.clear()
    logger.info("cadence server shutting down...")


app = FastAPI(
    title="cadence server",
    description="Spaced-repetition review sessions over HTTP.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_config() -> AppConfig:
    return resolve_config()


def get_store(config: AppConfig = Depends(get_config)) -> CardStore:
    global _store
    if _store is None:
        _store = get_card_store(config)
    return _store


def get_session(user_id: str) -> ReviewSession:
    session = _sessions.get(user_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"No active session for {user_id}")
    return session


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class CardView(BaseModel):
    id: str
    front: str | None
    back: str | None
    stage: str
    is_new: bool
    is_again_requeue: bool
    position: int

    @classmethod
    def from_entry(cls, entry: QueueEntry) -> "CardView":
        return cls(
            id=entry.card_id,
            front=entry.card.front,
            back=entry.card.back,
            stage=entry.card.stage.value,
            is_new=entry.is_new,
            is_again_requeue=entry.is_again_requeue,
            position=entry.position,
        )


class ProgressResponse(BaseModel):
    total: int
    completed_count: int
    review_count: int
    new_count: int
    again_count: int
    completed_pct: float
    review_pct: float
    new_pct: float
    again_pct: float


class SessionState(BaseModel):
    status: str  # empty, active, complete
    current_card: CardView | None
    previews: dict[str, str] | None
    total_cards: int
    reviewed_count: int
    cumulative_reviewed_count: int
    total_new_cards: int
    new_cards_available_today: int
    new_cards_per_day: int
    current_index: int
    progress: ProgressResponse


class StartSessionRequest(BaseModel):
    # If None, use config.
    new_cards_per_day: int | None = Field(default=None, ge=0)


class NewCardsRequest(BaseModel):
    ignore_limit: bool = False


class ReviewRequest(BaseModel):
    rating: Rating


class AddCardRequest(BaseModel):
    front: str = Field(min_length=1)
    back: str


class AddCardResponse(BaseModel):
    id: str


def _state(session: ReviewSession) -> SessionState:
    entry = session.current_card()
    previews = session.get_interval_previews()
    counters = session.counters()
    return SessionState(
        status=session.status,
        current_card=CardView.from_entry(entry) if entry else None,
        previews=(
            {rating.value: previews.for_rating(rating) for rating in Rating} if previews else None
        ),
        total_cards=counters.total_cards,
        reviewed_count=counters.reviewed_count,
        cumulative_reviewed_count=counters.cumulative_reviewed_count,
        total_new_cards=counters.total_new_cards,
        new_cards_available_today=counters.new_cards_available_today,
        new_cards_per_day=counters.new_cards_per_day,
        current_index=counters.current_index,
        progress=ProgressResponse(**session.progress().as_dict()),
    )


def _unavailable(action: str, e: StoreError) -> HTTPException:
    logger.warning(f"{action} failed: {e}")
    return HTTPException(status_code=503, detail=f"{action} failed, try again: {e}")


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


@app.post("/users/{user_id}/cards", response_model=AddCardResponse, status_code=201)
async def create_card(
    user_id: str,
    req: AddCardRequest,
    config: AppConfig = Depends(get_config),
    store: CardStore = Depends(get_store),
):
    try:
        card = await add_card(store, user_id, req.front, req.back, config=config.scheduler_config())
    except StoreError as e:
        raise _unavailable("Adding card", e)
    return AddCardResponse(id=card.id)


@app.post("/sessions/{user_id}", response_model=SessionState)
async def start_session(
    user_id: str,
    req: StartSessionRequest | None = None,
    config: AppConfig = Depends(get_config),
    store: CardStore = Depends(get_store),
):
    """
    Start a new sitting for the user, replacing any existing one.
    """
    if req is not None and req.new_cards_per_day is not None:
        config = config.model_copy(update={"new_cards_per_day": req.new_cards_per_day})

    session = create_review_session(config, store, user_id=user_id)
    try:
        await session.build()
    except StoreError as e:
        raise _unavailable("Loading cards", e)

    _sessions[user_id] = session
    return _state(session)


@app.get("/sessions/{user_id}", response_model=SessionState)
async def get_session_state(session: ReviewSession = Depends(get_session)):
    return _state(session)


@app.delete("/sessions/{user_id}", status_code=204)
async def end_session(user_id: str):
    if _sessions.pop(user_id, None) is None:
        raise HTTPException(status_code=404, detail=f"No active session for {user_id}")


@app.get("/sessions/{user_id}/progress", response_model=ProgressResponse)
async def get_progress(session: ReviewSession = Depends(get_session)):
    return ProgressResponse(**session.progress().as_dict())


@app.post("/sessions/{user_id}/review", response_model=SessionState)
async def submit_review(req: ReviewRequest, session: ReviewSession = Depends(get_session)):
    """
    Rate the current card. The client must have revealed it first.
    """
    try:
        await session.submit_review(req.rating)
    except NoCurrentCardError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreError as e:
        raise _unavailable("Saving rating", e)
    return _state(session)


@app.post("/sessions/{user_id}/skip", response_model=SessionState)
async def skip_card(session: ReviewSession = Depends(get_session)):
    session.skip_card()
    return _state(session)


@app.post("/sessions/{user_id}/new", response_model=SessionState)
async def start_new_cards(req: NewCardsRequest, session: ReviewSession = Depends(get_session)):
    try:
        await session.start_new_cards_session(ignore_limit=req.ignore_limit)
    except StoreError as e:
        raise _unavailable("Loading new cards", e)
    return _state(session)


@app.delete("/sessions/{user_id}/cards/{card_id}", response_model=SessionState)
async def delete_card(
    card_id: str,
    session: ReviewSession = Depends(get_session),
    store: CardStore = Depends(get_store),
):
    """
    Delete a card for good and drop it from the sitting.
    """
    try:
        await store.delete_card(card_id)
    except StoreError as e:
        raise _unavailable("Deleting card", e)
    session.remove_card(card_id)
    return _state(session)
