"""
Sternhalma AI Service - FastAPI Application
Provides game creation, legal move listing, AI move selection, position
evaluation and training step endpoints
"""

import logging
import os
import time
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, ConfigDict, Field

from .ai.cache import EvolvedGenomeCache
from .ai.factory import AIFactory
from .ai.heuristic_weights import load_genome_file
from .board import create_game, create_game_from_layout
from .config import ServiceSettings, load_settings
from .errors import (
    InvalidCoordinateError,
    InvalidMoveError,
    InvalidStateError,
    RulesViolationError,
    SternhalmaError,
    StorageError,
)
from .geometry import parse_coord_key
from .metrics import AI_MOVE_LATENCY, AI_MOVE_REQUESTS, observe_ai_move_start
from .models import (
    BestGenomeRecord,
    BoardLayoutModel,
    Difficulty,
    GameStateModel,
    Genome,
    MoveModel,
    Personality,
    RuleSetModel,
)
from .rules.move_generator import get_valid_moves
from .training.persistence import JsonFileTrainingStore
from .training.scheduler import TrainingScheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SERVICE_VERSION = "1.0.0"

# Create FastAPI app
app = FastAPI(
    title="Sternhalma AI Service",
    description="Move generation, AI move selection and genome training for Sternhalma",
    version=SERVICE_VERSION,
)

cors_origins = os.getenv("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Dependencies
# =============================================================================


@lru_cache(maxsize=1)
def get_settings() -> ServiceSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_evolved_cache() -> EvolvedGenomeCache:
    settings = get_settings()
    store = JsonFileTrainingStore(settings.training_state_dir)

    def _load() -> Optional[Genome]:
        record = store.load_best_genome()
        if record is not None:
            return record.genome
        try:
            return load_genome_file()
        except (OSError, ValueError) as e:
            raise StorageError("Unreadable evolved genome file") from e

    return EvolvedGenomeCache(_load, ttl_seconds=settings.genome_cache_ttl_seconds)


@lru_cache(maxsize=1)
def get_scheduler() -> TrainingScheduler:
    return TrainingScheduler.from_settings(
        get_settings(), evolved_cache=get_evolved_cache()
    )


def _http_error(e: SternhalmaError) -> HTTPException:
    if isinstance(e, (RulesViolationError, InvalidMoveError)):
        status = 400
    elif isinstance(e, (InvalidStateError, InvalidCoordinateError)):
        status = 422
    else:
        status = 500
    return HTTPException(status_code=status, detail=e.to_dict())


# =============================================================================
# Request / response models
# =============================================================================


class NewGameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    player_count: int = Field(2, alias="playerCount")
    active_players: Optional[List[int]] = Field(None, alias="activePlayers")
    layout: Optional[BoardLayoutModel] = None
    rules: Optional[RuleSetModel] = None
    game_id: Optional[str] = Field(None, alias="gameId")


class GameResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game_state: GameStateModel = Field(alias="gameState")


class ValidMovesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game_state: GameStateModel = Field(alias="gameState")
    from_pos: str = Field(alias="from")


class ValidMovesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    moves: List[MoveModel]


class MoveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game_state: GameStateModel = Field(alias="gameState")
    difficulty: Difficulty = Difficulty.MEDIUM
    personality: Optional[Personality] = None
    genome: Optional[Genome] = None
    seed: Optional[int] = None


class MoveResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    move: Optional[MoveModel]
    evaluation: float
    thinking_time_ms: int = Field(alias="thinkingTimeMs")
    difficulty: Difficulty
    player_number: int = Field(alias="playerNumber")


class EvaluationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game_state: GameStateModel = Field(alias="gameState")
    player_number: Optional[int] = Field(None, alias="playerNumber")
    genome: Optional[Genome] = None


class EvaluationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    score: float
    breakdown: Dict[str, float]


class TrainingStepResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    games_played: int = Field(alias="gamesPlayed")
    generation: int
    matchup_index: int = Field(alias="matchupIndex")
    schedule_length: int = Field(alias="scheduleLength")
    games_completed_in_generation: int = Field(alias="gamesCompletedInGeneration")
    cold_start: bool = Field(alias="coldStart")
    generation_completed: bool = Field(alias="generationCompleted")
    cycle_completed: bool = Field(alias="cycleCompleted")
    best_fitness: Optional[float] = Field(None, alias="bestFitness")
    new_best: bool = Field(alias="newBest")
    persisted: bool


# =============================================================================
# Endpoints
# =============================================================================


@app.get("/")
async def root():
    """Service info"""
    return {
        "service": "Sternhalma AI Service",
        "status": "running",
        "version": SERVICE_VERSION,
    }


@app.get("/health")
async def health_check():
    """Health check for container orchestration"""
    return {"status": "healthy"}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@app.post("/game/new", response_model=GameResponse, response_model_by_alias=True)
async def new_game(request: NewGameRequest):
    """Create a game on the standard board or a custom layout."""
    try:
        rules = request.rules.to_rules() if request.rules is not None else None
        if request.layout is not None:
            state = create_game_from_layout(
                request.layout.to_layout(), rules=rules, game_id=request.game_id
            )
        else:
            state = create_game(
                request.player_count,
                active_players=request.active_players,
                rules=rules,
                game_id=request.game_id,
            )
    except SternhalmaError as e:
        raise _http_error(e) from e
    logger.info(f"New game {state.game_id}: players {list(state.active_players)}")
    return GameResponse(game_state=GameStateModel.from_state(state))


@app.post("/moves/valid", response_model=ValidMovesResponse, response_model_by_alias=True)
async def valid_moves(request: ValidMovesRequest):
    """Legal destinations for the piece at ``from`` (current player only)."""
    try:
        state = request.game_state.to_state()
        moves = get_valid_moves(state, parse_coord_key(request.from_pos))
    except SternhalmaError as e:
        raise _http_error(e) from e
    return ValidMovesResponse(moves=[MoveModel.from_move(m) for m in moves])


@app.post("/ai/move", response_model=MoveResponse, response_model_by_alias=True)
def get_ai_move(
    request: MoveRequest,
    evolved_cache: EvolvedGenomeCache = Depends(get_evolved_cache),
):
    """
    Get AI-selected move for the current player.

    Args:
        request: MoveRequest containing game state and AI configuration.

    Returns:
        MoveResponse with the selected move (null when the player has no
        legal move) and the position evaluation.
    """
    start_time = time.time()
    label = observe_ai_move_start(request.difficulty.value)
    try:
        state = request.game_state.to_state()
        ai = AIFactory.create(
            request.difficulty,
            state.current_player,
            genome=request.genome,
            personality=request.personality,
            rng_seed=request.seed,
            evolved_cache=evolved_cache,
        )
        move = ai.select_move(state)
        evaluation = ai.evaluate_position(state)
    except SternhalmaError as e:
        AI_MOVE_REQUESTS.labels(label, "error").inc()
        AI_MOVE_LATENCY.labels(label).observe(time.time() - start_time)
        logger.error(f"Error generating AI move: {e}", exc_info=True)
        raise _http_error(e) from e

    duration_seconds = time.time() - start_time
    outcome = "success" if move is not None else "no_move"
    AI_MOVE_REQUESTS.labels(label, outcome).inc()
    AI_MOVE_LATENCY.labels(label).observe(duration_seconds)
    if move is None:
        logger.warning(f"No legal move for player {state.current_player} in {state.game_id}")

    thinking_time = int(duration_seconds * 1000)
    logger.info(
        f"AI move: difficulty={request.difficulty.value}, player={state.current_player}, "
        f"time={thinking_time}ms, eval={evaluation:.2f}"
    )
    return MoveResponse(
        move=MoveModel.from_move(move) if move is not None else None,
        evaluation=evaluation,
        thinking_time_ms=thinking_time,
        difficulty=request.difficulty,
        player_number=state.current_player,
    )


@app.post("/ai/evaluate", response_model=EvaluationResponse)
async def evaluate_position(request: EvaluationRequest):
    """
    Evaluate a position from one player's perspective (default: the player
    to move)
    """
    try:
        state = request.game_state.to_state()
        player = (
            request.player_number
            if request.player_number is not None
            else state.current_player
        )
        ai = AIFactory.create(Difficulty.MEDIUM, player, genome=request.genome)
        breakdown = ai.get_evaluation_breakdown(state)
    except SternhalmaError as e:
        logger.error(f"Error evaluating position: {e}", exc_info=True)
        raise _http_error(e) from e
    return EvaluationResponse(score=breakdown["total"], breakdown=breakdown)


@app.post("/training/step", response_model=TrainingStepResponse, response_model_by_alias=True)
def training_step(scheduler: TrainingScheduler = Depends(get_scheduler)):
    """Run one scheduler invocation against the configured store."""
    try:
        telemetry = scheduler.run_once()
    except SternhalmaError as e:
        logger.error(f"Training step failed: {e}", exc_info=True)
        raise _http_error(e) from e
    return TrainingStepResponse.model_validate(telemetry.as_dict())


@app.get("/training/best-genome")
async def best_genome(scheduler: TrainingScheduler = Depends(get_scheduler)) -> Dict[str, Any]:
    """The persisted best genome record."""
    record: Optional[BestGenomeRecord] = scheduler.best_genome()
    if record is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "No best genome yet"})
    return record.model_dump(by_alias=True, mode="json")


if __name__ == "__main__":
    import uvicorn

    # `python -m sternhalma.main` binds to all interfaces on STERNHALMA_PORT.
    try:
        port = int(os.getenv("STERNHALMA_PORT", "8001"))
    except ValueError:
        logger.warning("Invalid STERNHALMA_PORT; falling back to 8001")
        port = 8001

    uvicorn.run(app, host="0.0.0.0", port=port)
