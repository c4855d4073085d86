from functools import partial
from typing import List, Optional

from anyio import from_thread
from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import Conflict, NotFound
from ..db import get_db
from ..models import Game
from ..schemas import GameCreate, GameOut, RemoteGameOut
from ..services.game_ids import LocalGameId, parse_game_ref
from ..services.game_resolver import GameResolver
from ..services.igdb import IGDBClient, get_igdb_client
from ..services.mappers import remote_game_payload
from ..services.serializers import game_payload
from .deps import get_game_resolver

router = APIRouter()


@router.get("", response_model=List[RemoteGameOut])
def browse_games(
    search: Optional[str] = Query(None),
    genre: Optional[str] = Query(None),
    platform: Optional[str] = Query(None),
    ordering: Optional[str] = Query(None),
    sort: Optional[str] = Query(None),
    dates: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=50),
    db: Session = Depends(get_db),
    client: IGDBClient = Depends(get_igdb_client),
):
    rows = from_thread.run(
        partial(
            client.search_games,
            search=search,
            genre=genre,
            platform=platform,
            ordering=ordering or sort,
            dates=dates,
            page=page,
            page_size=page_size,
        )
    )
    rows = [row for row in rows if row.get("id") is not None]
    igdb_ids = [int(row["id"]) for row in rows]
    local = {}
    if igdb_ids:
        local = {
            game.igdb_id: game
            for game in db.query(Game).filter(Game.igdb_id.in_(igdb_ids)).all()
        }
    return [remote_game_payload(row, local.get(int(row["id"]))) for row in rows]


@router.get("/{game_id}", response_model=RemoteGameOut)
def get_game(
    game_id: str,
    db: Session = Depends(get_db),
    resolver: GameResolver = Depends(get_game_resolver),
    client: IGDBClient = Depends(get_igdb_client),
):
    ref = parse_game_ref(game_id)
    game = resolver.find_local(db, ref)
    if game is not None:
        return {**game_payload(game), "local_id": game.id}
    if isinstance(ref, LocalGameId):
        raise NotFound("Game not found")
    # browse detail stays remote-only until someone reviews, tracks or lists it
    row = from_thread.run(client.fetch_game, ref.external_id)
    if not row:
        raise NotFound("Game not found")
    return remote_game_payload(row)


@router.post("", response_model=GameOut)
def create_game(payload: GameCreate, db: Session = Depends(get_db)):
    game = Game(**payload.model_dump(), average_rating=0.0)
    db.add(game)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Game already exists")
    db.refresh(game)
    return game_payload(game)
