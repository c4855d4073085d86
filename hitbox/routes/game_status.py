import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import InvalidInput
from ..db import get_db
from ..models import GAME_STATUSES, GameStatus, User
from ..schemas import (
    GameStatusCountsOut,
    GameStatusGroupsOut,
    GameStatusIn,
    GameStatusOut,
    GameStatusValueOut,
    MessageOut,
)
from ..services.game_ids import parse_game_ref
from ..services.game_resolver import GameResolver
from ..services.profiles import status_counts
from ..services.serializers import game_summary, load_games
from .deps import get_current_user, get_game_resolver

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=GameStatusGroupsOut)
def my_statuses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entries = (
        db.query(GameStatus)
        .filter(GameStatus.user_id == current_user.id)
        .order_by(GameStatus.updated_at.desc())
        .all()
    )
    games = load_games(db, (entry.game_id for entry in entries))
    grouped = {status: [] for status in GAME_STATUSES}
    for entry in entries:
        if entry.status not in grouped:
            continue
        grouped[entry.status].append(
            {
                "id": entry.id,
                "status": entry.status,
                "game": game_summary(games.get(entry.game_id)),
                "updated_at": entry.updated_at,
            }
        )
    return grouped


@router.get("/counts", response_model=GameStatusCountsOut)
def my_status_counts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return status_counts(db, current_user.id)


@router.get("/game/{game_id}", response_model=GameStatusValueOut)
def status_for_game(
    game_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    resolver: GameResolver = Depends(get_game_resolver),
):
    game = resolver.find_local(db, parse_game_ref(game_id))
    if game is None:
        return {"status": None}
    entry = (
        db.query(GameStatus.status)
        .filter(GameStatus.user_id == current_user.id, GameStatus.game_id == game.id)
        .first()
    )
    return {"status": entry.status if entry else None}


@router.post("", response_model=GameStatusOut)
def set_status(
    payload: GameStatusIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    resolver: GameResolver = Depends(get_game_resolver),
):
    if payload.game_id in (None, "") or not payload.status:
        raise InvalidInput("gameId and status are required")
    if payload.status not in GAME_STATUSES:
        raise InvalidInput("Invalid status")

    ref = parse_game_ref(payload.game_id)
    game = resolver.resolve(db, ref)
    game_id = game.id

    entry = (
        db.query(GameStatus)
        .filter(GameStatus.user_id == current_user.id, GameStatus.game_id == game_id)
        .first()
    )
    if entry is None:
        db.add(GameStatus(user_id=current_user.id, game_id=game_id, status=payload.status))
        try:
            db.commit()
        except IntegrityError:
            # the same user set a status for this game concurrently
            db.rollback()
            entry = (
                db.query(GameStatus)
                .filter(GameStatus.user_id == current_user.id, GameStatus.game_id == game_id)
                .one()
            )
    if entry is not None and entry.status != payload.status:
        entry.status = payload.status
        db.commit()

    logger.debug("User %s marked game %s as %s", current_user.id, game_id, payload.status)
    return {"status": payload.status, "game": game_id}


@router.delete("/{game_id}", response_model=MessageOut)
def remove_status(
    game_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    resolver: GameResolver = Depends(get_game_resolver),
):
    game = resolver.find_local(db, parse_game_ref(game_id))
    if game is not None:
        db.query(GameStatus).filter(
            GameStatus.user_id == current_user.id, GameStatus.game_id == game.id
        ).delete(synchronize_session=False)
        db.commit()
    return {"message": "Status removed"}
