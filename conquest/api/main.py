"""
FastAPI backend for the conquest engine.
Provides REST API endpoints for game state management and player input.
"""

import json
import logging
import threading
import uuid
from typing import Any, Callable

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .database import get_db, init_db
from .models import Game as GameModel

from conquest.config import DEFAULT_MAP_ID
from conquest.engine.actions import Action
from conquest.engine.definitions import list_maps, load_map, map_from_dict, map_to_dict
from conquest.engine.errors import ActionResult, RulesError
from conquest.engine.queries import get_game_summary
from conquest.engine.session import GameSession
from conquest.engine.state import GameState
from conquest.engine.stats import CombatStatistics

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Conquest API",
    description="Rules engine API for a territorial conquest board game",
    version="1.0.0",
)

# CORS configuration for frontend
CORS_ORIGINS = ["http://localhost:5173", "http://localhost:5174", "http://localhost:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = getattr(request, "method", "?")
    url = getattr(request, "url", None)
    path = url.path if url else "?"
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            logger.error("[500] %s %s", method, path)
        return response
    except Exception:
        logger.exception("[500] %s %s (exception)", method, path)
        raise


# In-memory cache of live sessions (also persisted in DB)
sessions: dict[str, GameSession] = {}
# Combat statistics per live session; rebuilt empty when a game is reloaded from DB
game_stats: dict[str, CombatStatistics] = {}
# One lock per game so load -> act -> save is not interleaved.
# Reentrant: _run holds it while get_session takes it again for the load.
_game_locks: dict[str, "threading.RLock"] = {}
_registry_lock = threading.Lock()


def _game_lock(game_id: str) -> "threading.RLock":
    with _registry_lock:
        if game_id not in _game_locks:
            _game_locks[game_id] = threading.RLock()
        return _game_locks[game_id]


# ===== Pydantic Models =====

class PlayerSpec(BaseModel):
    name: str
    color: str | None = None


class CreateGameRequest(BaseModel):
    name: str = "New game"
    players: list[PlayerSpec]
    map_id: str | None = None
    victory_threshold: float | None = None
    seed: int | None = None  # if set, territories are dealt immediately


class TerritoryRequest(BaseModel):
    territory_id: str


class AssignRequest(BaseModel):
    seed: int | None = None


class PlaceRequest(BaseModel):
    territory_id: str
    count: int = 1


class CombatStartRequest(BaseModel):
    attacker_id: str
    defender_id: str


class ExchangeRequest(BaseModel):
    attacker_remaining: int
    defender_remaining: int


class ConquestRequest(BaseModel):
    armies: int = Field(..., description="Armies to move into the conquered territory")


class CountRequest(BaseModel):
    count: int


class FortifyRequest(BaseModel):
    source: str
    destination: str
    count: int


# ===== Helpers =====

def _attach_stats(game_id: str, session: GameSession) -> None:
    stats = CombatStatistics()
    stats.attach(session.bus)
    game_stats[game_id] = stats


def get_session(game_id: str, db: Session) -> GameSession:
    """Get the live session for a game, loading it from DB if needed; 404 if not found."""
    with _game_lock(game_id):
        if game_id in sessions:
            return sessions[game_id]
        return _load_session(game_id, db)


def _load_session(game_id: str, db: Session) -> GameSession:
    row = db.query(GameModel).filter(GameModel.id == game_id).first()
    if not row:
        raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    try:
        state = GameState.from_json(row.game_state)
        config = json.loads(row.config) if row.config else {}
        if config.get("map"):
            map_def = map_from_dict(config["map"])
        else:
            map_def = load_map(state.map_id or DEFAULT_MAP_ID)
        log = json.loads(row.action_log) if row.action_log else []
    except (ValueError, KeyError, TypeError, FileNotFoundError):
        logger.exception("Stored game %s could not be loaded", game_id)
        raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    session = GameSession(state, map_def)
    session.action_log = [Action.from_dict(a) for a in log if isinstance(a, dict)]
    _attach_stats(game_id, session)
    sessions[game_id] = session
    return session


def save_session(game_id: str, session: GameSession, db: Session) -> None:
    """Persist game state and action log to DB."""
    row = db.query(GameModel).filter(GameModel.id == game_id).first()
    if row:
        row.game_state = session.state.to_json(indent=None)
        row.action_log = json.dumps([a.to_dict() for a in session.action_log])
        if session.state.winner is not None:
            row.status = "finished"
        db.commit()


def _run(game_id: str, db: Session, command: Callable[[GameSession], ActionResult]) -> Any:
    """Run one input against a game; save on success, 400 with the error result on failure."""
    with _game_lock(game_id):
        session = get_session(game_id, db)
        result = command(session)
        if not result.success:
            return JSONResponse(status_code=400, content=result.to_dict())
        save_session(game_id, session, db)
        return {**result.to_dict(), "state": session.snapshot()}


@app.on_event("startup")
def on_startup():
    init_db()


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Conquest API", "version": "1.0.0"}


@app.get("/maps")
def get_maps():
    """List available maps. Use map_id in POST /games."""
    return {"maps": list_maps()}


@app.post("/games")
def create_game(request: CreateGameRequest, db: Session = Depends(get_db)):
    """Create a new game. Returns game_id and the initial state."""
    map_id = request.map_id or DEFAULT_MAP_ID
    try:
        map_def = load_map(map_id)
    except FileNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        session = GameSession.new_game(
            [p.model_dump() for p in request.players],
            map_def=map_def,
            victory_threshold=request.victory_threshold,
            seed=request.seed,
        )
    except RulesError as e:
        return JSONResponse(status_code=400, content=ActionResult.from_error(e).to_dict())

    game_id = str(uuid.uuid4())
    row = GameModel(
        id=game_id,
        name=request.name,
        status="active",
        game_state=session.state.to_json(indent=None),
        config=json.dumps({"map_id": map_def.id, "map": map_to_dict(map_def)}),
        action_log=json.dumps([a.to_dict() for a in session.action_log]),
    )
    db.add(row)
    db.commit()
    _attach_stats(game_id, session)
    sessions[game_id] = session
    logger.info("Created game %s (%s) on map %s with %d players",
                game_id, request.name, map_def.id, len(request.players))
    return {"game_id": game_id, "name": request.name, "state": session.snapshot()}


@app.get("/games")
def list_games(db: Session = Depends(get_db)):
    rows = db.query(GameModel).order_by(GameModel.created_at.desc()).all()
    out = []
    for r in rows:
        try:
            state = json.loads(r.game_state)
        except (json.JSONDecodeError, TypeError):
            state = {}
        out.append({
            "id": r.id,
            "name": r.name,
            "status": r.status,
            "created_at": r.created_at.isoformat() if r.created_at else None,
            "turn_number": state.get("turn_number"),
            "phase": state.get("phase"),
            "current_player": state.get("current_player"),
            "winner": state.get("winner"),
        })
    return {"games": out}


@app.get("/games/{game_id}")
def get_game_state(game_id: str, db: Session = Depends(get_db)):
    session = get_session(game_id, db)
    return {"state": session.snapshot(), "map": map_to_dict(session.map)}


@app.get("/games/{game_id}/summary")
def get_summary(game_id: str, db: Session = Depends(get_db)):
    session = get_session(game_id, db)
    return get_game_summary(session.state, session.map)


@app.get("/games/{game_id}/available-actions")
def get_available_actions(game_id: str, db: Session = Depends(get_db)):
    return get_session(game_id, db).available_actions()


@app.get("/games/{game_id}/stats")
def get_stats(game_id: str, db: Session = Depends(get_db)):
    """
    Combat statistics collected since the game was loaded into this server.
    For a combat already running at load time, only the rounds fought after the
    load are counted, so longest_battle_rounds can undercount that battle.
    """
    get_session(game_id, db)
    return game_stats[game_id].to_dict()


@app.delete("/games/{game_id}")
def delete_game(game_id: str, db: Session = Depends(get_db)):
    with _game_lock(game_id):
        row = db.query(GameModel).filter(GameModel.id == game_id).first()
        if not row:
            raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
        db.delete(row)
        db.commit()
        sessions.pop(game_id, None)
        game_stats.pop(game_id, None)
    return {"deleted": game_id}


@app.post("/games/{game_id}/click")
def do_click(game_id: str, request: TerritoryRequest, db: Session = Depends(get_db)):
    """A click on a territory, interpreted according to the current phase."""
    return _run(game_id, db, lambda s: s.territory_clicked(request.territory_id))


@app.post("/games/{game_id}/claim")
def do_claim(game_id: str, request: TerritoryRequest, db: Session = Depends(get_db)):
    return _run(game_id, db, lambda s: s.claim_territory(request.territory_id))


@app.post("/games/{game_id}/assign")
def do_assign(game_id: str, request: AssignRequest, db: Session = Depends(get_db)):
    """Deal all unclaimed territories at random."""
    return _run(game_id, db, lambda s: s.assign_territories(request.seed))


@app.post("/games/{game_id}/place")
def do_place(game_id: str, request: PlaceRequest, db: Session = Depends(get_db)):
    return _run(game_id, db, lambda s: s.place_armies(request.territory_id, request.count))


@app.post("/games/{game_id}/combat/start")
def do_start_combat(game_id: str, request: CombatStartRequest, db: Session = Depends(get_db)):
    return _run(game_id, db, lambda s: s.start_combat(request.attacker_id, request.defender_id))


@app.post("/games/{game_id}/combat/exchange")
def do_exchange(game_id: str, request: ExchangeRequest, db: Session = Depends(get_db)):
    return _run(
        game_id, db,
        lambda s: s.exchange_submitted(request.attacker_remaining, request.defender_remaining),
    )


@app.post("/games/{game_id}/combat/conquest")
def do_conquest(game_id: str, request: ConquestRequest, db: Session = Depends(get_db)):
    return _run(game_id, db, lambda s: s.conquest_armies_submitted(request.armies))


@app.post("/games/{game_id}/combat/end")
def do_end_combat(game_id: str, db: Session = Depends(get_db)):
    return _run(game_id, db, lambda s: s.end_combat())


@app.post("/games/{game_id}/fortify")
def do_fortify(game_id: str, request: FortifyRequest, db: Session = Depends(get_db)):
    return _run(game_id, db, lambda s: s.fortify(request.source, request.destination, request.count))


@app.post("/games/{game_id}/fortify/selected")
def do_fortify_selected(game_id: str, request: CountRequest, db: Session = Depends(get_db)):
    """Fortify along the source/destination chosen with clicks."""
    return _run(game_id, db, lambda s: s.fortify_armies_submitted(request.count))


@app.post("/games/{game_id}/fortify/skip")
def do_skip_fortification(game_id: str, db: Session = Depends(get_db)):
    return _run(game_id, db, lambda s: s.skip_fortification())


@app.post("/games/{game_id}/advance-phase")
def do_advance_phase(game_id: str, db: Session = Depends(get_db)):
    return _run(game_id, db, lambda s: s.phase_advance_requested())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
